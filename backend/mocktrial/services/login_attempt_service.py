"""
services/login_attempt_service.py

Failed-login bookkeeping for account lockout. The login flow itself lives in
the auth service; it calls in here after each failure and success.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from mocktrial.core.config import settings
from mocktrial.db.models import LoginAttempt, UserType
from mocktrial.utils.validators import normalize_email

logger = logging.getLogger(__name__)


def record_failed_attempt(db: Session, email: str, user_type: str, ip_address: Optional[str] = None) -> None:
    db.add(LoginAttempt(email=normalize_email(email), user_type=UserType(user_type), ip_address=ip_address))
    db.commit()


def get_recent_failed_attempts(db: Session, email: str, user_type: str, minutes: Optional[int] = None) -> int:
    since = datetime.utcnow() - timedelta(minutes=minutes or settings.LOGIN_LOCKOUT_MINUTES)
    return (
        db.query(func.count(LoginAttempt.id))
        .filter(
            LoginAttempt.email == normalize_email(email),
            LoginAttempt.user_type == UserType(user_type),
            LoginAttempt.attempted_at > since,
        )
        .scalar()
        or 0
    )


def is_locked_out(db: Session, email: str, user_type: str) -> bool:
    return get_recent_failed_attempts(db, email, user_type) >= settings.LOGIN_MAX_FAILED_ATTEMPTS


def clear_failed_attempts(db: Session, email: str, user_type: str) -> int:
    deleted = (
        db.query(LoginAttempt)
        .filter(LoginAttempt.email == normalize_email(email), LoginAttempt.user_type == UserType(user_type))
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted


def get_lockout_time(db: Session, email: str, user_type: str, lockout_minutes: Optional[int] = None) -> Optional[datetime]:
    """When the account unlocks: the latest failure plus the lockout window."""
    latest = (
        db.query(func.max(LoginAttempt.attempted_at))
        .filter(LoginAttempt.email == normalize_email(email), LoginAttempt.user_type == UserType(user_type))
        .scalar()
    )
    if latest is None:
        return None
    return latest + timedelta(minutes=lockout_minutes or settings.LOGIN_LOCKOUT_MINUTES)


def cleanup_old_attempts(db: Session, days: Optional[int] = None) -> int:
    """Never raises."""
    cutoff = datetime.utcnow() - timedelta(days=days or settings.LOGIN_ATTEMPT_RETENTION_DAYS)
    try:
        deleted = db.query(LoginAttempt).filter(LoginAttempt.attempted_at < cutoff).delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Login attempt cleanup failed")
        return 0
    logger.info("Cleaned up %s old login attempts", deleted)
    return deleted
