import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("MAINTENANCE_SCHEDULER_ENABLED", "false")
os.environ.setdefault("LOG_JSON", "false")

import uuid
from datetime import date, datetime, timedelta

import httpx
import jwt
import pytest

from mocktrial.core.config import settings
from mocktrial.db.database import Base, SessionLocal, engine, init_db
from mocktrial.db.models import Admin, AdminApprovalStatus, AttorneyStatus
from mocktrial.main import app
from mocktrial.services import attorney_service, case_service, juror_service


@pytest.fixture(autouse=True)
def _schema():
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def make_token(user_id, user_type: str, minutes: int = 30) -> str:
    payload = {
        "sub": str(user_id),
        "user_type": user_type,
        "exp": datetime.utcnow() + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def auth_headers(user_id, user_type: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, user_type)}"}


def future_date(days: int = 30) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def case_payload(**overrides) -> dict:
    data = {
        "case_type": "Civil",
        "case_jurisdiction": "State",
        "case_tier": "Tier 1",
        "state": "TX",
        "county": "Harris",
        "case_title": "Smith v. Jones",
        "scheduled_date": future_date(),
        "scheduled_time": "10:00",
        "timezone_offset": 0,
    }
    data.update(overrides)
    return data


@pytest.fixture
def attorney(db):
    return attorney_service.create_attorney(db, {
        "email": f"atty-{uuid.uuid4().hex[:8]}@example.com",
        "password_hash": "x" * 60,
        "first_name": "Alex",
        "last_name": "Morgan",
        "phone_number": "555-0100",
        "state": "TX",
        "county": "Harris",
        "state_bar_number": uuid.uuid4().hex[:10],
    })


@pytest.fixture
def admin(db):
    row = Admin(
        username=f"admin_{uuid.uuid4().hex[:6]}",
        email=f"admin-{uuid.uuid4().hex[:8]}@example.com",
        password_hash="x" * 60,
        first_name="Sam",
        last_name="Reed",
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def make_juror(db):
    def _make(county: str = "Harris", name: str = "Juror"):
        return juror_service.create_juror(db, {
            "name": name,
            "email": f"juror-{uuid.uuid4().hex[:8]}@example.com",
            "password_hash": "x" * 60,
            "phone_number": "555-0101",
            "county": county,
            "state": "TX",
        })
    return _make


@pytest.fixture
def make_case(db, attorney):
    def _make(**overrides):
        return case_service.create_case(db, str(attorney.id), case_payload(**overrides))
    return _make


@pytest.fixture
def open_case(db, make_case, admin):
    """Approved case with the war room open, ready for applications."""
    case = make_case(required_jurors=6)
    case_service.update_case_status(
        db, str(case.id), admin_approval_status="approved", admin_id=str(admin.id)
    )
    db.refresh(case)
    assert case.attorney_status == AttorneyStatus.war_room
    assert case.admin_approval_status == AdminApprovalStatus.approved
    return case
