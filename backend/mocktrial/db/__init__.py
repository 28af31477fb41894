# backend/mocktrial/db/__init__.py

"""
Database Module

Contains SQLAlchemy models, Pydantic schemas, and database configuration.
"""

from mocktrial.db.database import Base, engine, SessionLocal, get_db, init_db
from mocktrial.db import models, schemas

__all__ = [
    'Base',
    'engine',
    'SessionLocal',
    'get_db',
    'init_db',
    'models',
    'schemas',
]
