"""
services/admin_service.py

Admin accounts and the admin dashboard counters.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from mocktrial.db.models import (
    AdminApprovalStatus,
    Admin,
    ApplicationStatus,
    Attorney,
    Case,
    JurorApplication,
    Juror,
    MeetingStatus,
    Notification,
    Payment,
    PaymentStatus,
    TrialMeeting,
    UserType,
)
from mocktrial.services import account_service as accounts
from mocktrial.utils.exceptions import ConflictError, ValidationError
from mocktrial.utils.helpers import coerce_json_list, iso, to_uuid
from mocktrial.utils.timezones import is_valid_zone, local_today
from mocktrial.utils.validators import normalize_email, validate_email

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{3,30}$")

PROFILE_FIELDS = {
    "first_name": accounts.text_or_none,
    "last_name": accounts.text_or_none,
    "email": accounts.text_or_none,
}


def admin_to_api(a: Admin) -> Dict[str, Any]:
    return {
        "id": str(a.id),
        "username": a.username,
        "email": a.email,
        "firstName": a.first_name,
        "lastName": a.last_name,
        "role": a.role,
        "permissions": coerce_json_list(a.permissions),
        "timezone": a.timezone,
        "isActive": a.is_active,
        "lastLoginAt": iso(a.last_login_at),
        "createdAt": iso(a.created_at),
    }


def validate_admin_data(data: Dict[str, Any]) -> None:
    errors = []
    username = str(data.get("username") or "").strip()
    email = str(data.get("email") or "").strip()
    if not username:
        errors.append("Username is required")
    if not email:
        errors.append("Email is required")
    if not data.get("password_hash"):
        errors.append("Password hash is required")
    if email and not validate_email(email):
        errors.append("Invalid email format")
    if username and not USERNAME_PATTERN.match(username):
        errors.append("Username must be 3-30 characters (letters, numbers, _ or - only)")
    if errors:
        raise ValidationError(errors, prefix="Admin validation failed")


def create_admin(db: Session, data: Dict[str, Any]) -> Admin:
    validate_admin_data(data)
    email = normalize_email(data["email"])
    username = data["username"].strip()
    if accounts.email_exists(db, Admin, email):
        raise ConflictError("Email is already registered", code="DUPLICATE_EMAIL")
    if username_exists(db, username):
        raise ConflictError("Username is already taken", code="DUPLICATE_USERNAME")

    admin = Admin(
        username=username,
        email=email,
        password_hash=data["password_hash"],
        first_name=(data.get("first_name") or "").strip() or username,
        last_name=(data.get("last_name") or "").strip(),
        role=data.get("role") or "admin",
        permissions=list(data.get("permissions") or []),
        timezone=accounts.text_or_none(data.get("timezone")),
    )
    db.add(admin)
    accounts.commit_unique(db, "Email or username is already registered", "DUPLICATE_ADMIN")
    db.refresh(admin)
    logger.info("Admin created: %s (%s)", admin.id, admin.username)
    return admin


def get_admin(db: Session, admin_id: str) -> Optional[Admin]:
    return accounts.get_live(db, Admin, admin_id, "admin")


def get_admin_by_username(db: Session, username: str) -> Optional[Admin]:
    if not username or not username.strip():
        raise ValidationError(["Valid username is required"], prefix="Admin validation failed")
    return (
        db.query(Admin)
        .filter(func.lower(Admin.username) == username.strip().lower(), Admin.is_deleted == False)  # noqa: E712
        .first()
    )


def email_exists(db: Session, email: str, exclude_id: Optional[str] = None) -> bool:
    return accounts.email_exists(db, Admin, email, exclude_id)


def username_exists(db: Session, username: str, exclude_id: Optional[str] = None) -> bool:
    query = db.query(Admin.id).filter(func.lower(Admin.username) == (username or "").strip().lower())
    exclude = to_uuid(exclude_id)
    if exclude is not None:
        query = query.filter(Admin.id != exclude)
    return query.first() is not None


def update_profile(db: Session, admin_id: str, data: Dict[str, Any]) -> Admin:
    admin = accounts.get_live_or_404(db, Admin, admin_id, "admin")
    return accounts.update_fields(db, admin, data, PROFILE_FIELDS, "admin")


def update_permissions(db: Session, admin_id: str, permissions: List[str]) -> Admin:
    if not isinstance(permissions, list) or not all(isinstance(p, str) for p in permissions):
        raise ValidationError(["Permissions must be a list of strings"], prefix="Admin update failed")
    admin = accounts.get_live_or_404(db, Admin, admin_id, "admin")
    admin.permissions = sorted(set(permissions))
    db.commit()
    db.refresh(admin)
    return admin


def update_timezone(db: Session, admin_id: str, timezone_name: str) -> Admin:
    if not is_valid_zone(timezone_name):
        raise ValidationError(["Invalid timezone"], prefix="Admin update failed")
    admin = accounts.get_live_or_404(db, Admin, admin_id, "admin")
    admin.timezone = timezone_name
    db.commit()
    db.refresh(admin)
    return admin


def update_last_login(db: Session, admin_id: str) -> None:
    accounts.touch_last_login(db, accounts.get_live_or_404(db, Admin, admin_id, "admin"))


def set_active_status(db: Session, admin_id: str, is_active: bool) -> Admin:
    return accounts.set_active(db, accounts.get_live_or_404(db, Admin, admin_id, "admin"), bool(is_active))


def soft_delete(db: Session, admin_id: str) -> bool:
    admin = get_admin(db, admin_id)
    if admin is None:
        return False
    return accounts.soft_delete(db, admin)


def get_all_admins(db: Session, page: int = 1, limit: int = 20, search: Optional[str] = None) -> Dict[str, Any]:
    return accounts.paginate(
        db, Admin, admin_to_api,
        page=page, limit=limit, search=search,
        search_fields=(Admin.username, Admin.email, Admin.first_name, Admin.last_name),
    )


# ============================================================================
# Dashboard
# ============================================================================

def _todays_trials(db: Session, now: Optional[datetime] = None) -> int:
    """Cases scheduled for "today" in their attorney's own timezone."""
    now = now or datetime.now(timezone.utc)
    utc_today = now.date()
    rows = (
        db.query(Case.scheduled_date, Attorney.timezone, Attorney.state)
        .join(Attorney, Case.attorney_id == Attorney.id)
        .filter(
            Case.is_deleted == False,  # noqa: E712
            Case.scheduled_date.between(utc_today - timedelta(days=1), utc_today + timedelta(days=1)),
        )
        .all()
    )
    return sum(1 for scheduled, tz, state in rows if scheduled == local_today(tz or state, now))


def get_dashboard_stats(db: Session) -> Dict[str, Any]:
    live_case = Case.is_deleted == False  # noqa: E712
    active_attorney = (Attorney.is_deleted == False) & (Attorney.is_active == True)  # noqa: E712
    active_juror = (Juror.is_deleted == False) & (Juror.is_active == True)  # noqa: E712

    completed_revenue = (
        db.query(func.coalesce(func.sum(Payment.amount), 0.0))
        .filter(Payment.status.in_([PaymentStatus.completed, PaymentStatus.refunded]))
        .scalar()
    )
    return {
        "verifiedAttorneys": db.query(func.count(Attorney.id)).filter(active_attorney, Attorney.is_verified == True).scalar(),  # noqa: E712
        "pendingAttorneys": db.query(func.count(Attorney.id)).filter(active_attorney, Attorney.is_verified == False).scalar(),  # noqa: E712
        "verifiedJurors": db.query(func.count(Juror.id)).filter(active_juror, Juror.is_verified == True).scalar(),  # noqa: E712
        "pendingJurors": db.query(func.count(Juror.id)).filter(active_juror, Juror.is_verified == False).scalar(),  # noqa: E712
        "pendingCases": db.query(func.count(Case.id)).filter(live_case, Case.admin_approval_status == AdminApprovalStatus.pending).scalar(),
        "approvedCases": db.query(func.count(Case.id)).filter(live_case, Case.admin_approval_status == AdminApprovalStatus.approved).scalar(),
        "pendingApplications": db.query(func.count(JurorApplication.id)).filter(JurorApplication.status == ApplicationStatus.pending).scalar(),
        "activeTrials": db.query(func.count(TrialMeeting.id)).filter(TrialMeeting.status == MeetingStatus.active).scalar(),
        "scheduledTrials": db.query(func.count(TrialMeeting.id)).filter(TrialMeeting.status == MeetingStatus.created).scalar(),
        "unreadNotifications": db.query(func.count(Notification.id)).filter(
            Notification.is_read == False, Notification.user_type == UserType.admin  # noqa: E712
        ).scalar(),
        "todaysTrials": _todays_trials(db),
        "activeAdmins": db.query(func.count(Admin.id)).filter(Admin.is_active == True, Admin.is_deleted == False).scalar(),  # noqa: E712
        "netRevenue": round(float(completed_revenue or 0), 2),
    }
