"""
services/attorney_service.py

Attorney accounts. Passwords arrive already hashed; this service never sees
plain text.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import case as sql_case, func
from sqlalchemy.orm import Session

from mocktrial.db.models import Attorney, VerificationStatus
from mocktrial.services import account_service as accounts
from mocktrial.utils.exceptions import ConflictError, ValidationError
from mocktrial.utils.helpers import enum_value, iso, to_uuid
from mocktrial.utils.timezones import is_valid_zone
from mocktrial.utils.validators import normalize_email, validate_email

logger = logging.getLogger(__name__)

TIER_LEVELS = ("free", "basic", "professional", "enterprise")

PROFILE_FIELDS = {
    "first_name": accounts.text_or_none,
    "middle_name": accounts.text_or_none,
    "last_name": accounts.text_or_none,
    "law_firm_name": accounts.text_or_none,
    "phone_number": accounts.text_or_none,
    "office_address_1": accounts.text_or_none,
    "office_address_2": accounts.text_or_none,
    "city": accounts.text_or_none,
    "county": accounts.text_or_none,
    "zip_code": accounts.text_or_none,
    "state_bar_number": accounts.text_or_none,
    "email": accounts.text_or_none,
}


def attorney_to_api(a: Attorney) -> Dict[str, Any]:
    return {
        "id": str(a.id),
        "email": a.email,
        "firstName": a.first_name,
        "middleName": a.middle_name,
        "lastName": a.last_name,
        "fullName": a.full_name,
        "lawFirmName": a.law_firm_name,
        "phoneNumber": a.phone_number,
        "state": a.state,
        "county": a.county,
        "city": a.city,
        "zipCode": a.zip_code,
        "officeAddress1": a.office_address_1,
        "officeAddress2": a.office_address_2,
        "stateBarNumber": a.state_bar_number,
        "timezone": a.timezone,
        "isVerified": a.is_verified,
        "verificationStatus": enum_value(a.verification_status),
        "tierLevel": a.tier_level,
        "isActive": a.is_active,
        "lastLoginAt": iso(a.last_login_at),
        "createdAt": iso(a.created_at),
    }


def validate_attorney_data(data: Dict[str, Any]) -> None:
    errors = []
    for key, label in (
        ("email", "Email"),
        ("first_name", "First name"),
        ("last_name", "Last name"),
        ("phone_number", "Phone number"),
        ("state", "State"),
        ("state_bar_number", "State bar number"),
        ("password_hash", "Password"),
    ):
        if not str(data.get(key) or "").strip():
            errors.append(f"{label} is required")
    if data.get("email") and not validate_email(data["email"]):
        errors.append("Invalid email format")
    if data.get("phone_number") and not accounts.PHONE_PATTERN.match(data["phone_number"]):
        errors.append("Invalid phone number format")
    if data.get("timezone") and not is_valid_zone(data["timezone"]):
        errors.append("Invalid timezone")
    if errors:
        raise ValidationError(errors)


def create_attorney(db: Session, data: Dict[str, Any]) -> Attorney:
    validate_attorney_data(data)
    email = normalize_email(data["email"])
    if accounts.email_exists(db, Attorney, email):
        raise ConflictError("Email is already registered", code="DUPLICATE_EMAIL")
    if state_bar_number_exists(db, data["state_bar_number"]):
        raise ConflictError("State bar number is already registered", code="DUPLICATE_BAR_NUMBER")

    attorney = Attorney(
        email=email,
        password_hash=data["password_hash"],
        first_name=data["first_name"].strip(),
        middle_name=accounts.text_or_none(data.get("middle_name")),
        last_name=data["last_name"].strip(),
        law_firm_name=accounts.text_or_none(data.get("law_firm_name")),
        phone_number=data["phone_number"].strip(),
        state=data["state"].strip(),
        county=accounts.text_or_none(data.get("county")),
        city=accounts.text_or_none(data.get("city")),
        zip_code=accounts.text_or_none(data.get("zip_code")),
        office_address_1=accounts.text_or_none(data.get("office_address_1")),
        office_address_2=accounts.text_or_none(data.get("office_address_2")),
        state_bar_number=data["state_bar_number"].strip(),
        timezone=accounts.text_or_none(data.get("timezone")),
        user_agreement_accepted=bool(data.get("user_agreement_accepted")),
        agreement_accepted_at=datetime.utcnow() if data.get("user_agreement_accepted") else None,
    )
    db.add(attorney)
    accounts.commit_unique(db, "Email or state bar number is already registered", "DUPLICATE_ATTORNEY")
    db.refresh(attorney)
    logger.info("Attorney created: %s", attorney.id)
    return attorney


def get_attorney(db: Session, attorney_id: str) -> Optional[Attorney]:
    return accounts.get_live(db, Attorney, attorney_id, "attorney")


def email_exists(db: Session, email: str, exclude_id: Optional[str] = None) -> bool:
    return accounts.email_exists(db, Attorney, email, exclude_id)


def state_bar_number_exists(db: Session, bar_number: str, exclude_id: Optional[str] = None) -> bool:
    query = db.query(Attorney.id).filter(func.upper(Attorney.state_bar_number) == (bar_number or "").strip().upper())
    exclude = to_uuid(exclude_id)
    if exclude is not None:
        query = query.filter(Attorney.id != exclude)
    return query.first() is not None


def update_profile(db: Session, attorney_id: str, data: Dict[str, Any]) -> Attorney:
    attorney = accounts.get_live_or_404(db, Attorney, attorney_id, "attorney")
    return accounts.update_fields(db, attorney, data, PROFILE_FIELDS, "attorney")


def update_timezone(db: Session, attorney_id: str, timezone_name: str) -> Attorney:
    if not is_valid_zone(timezone_name):
        raise ValidationError(["Invalid timezone"], prefix="Attorney update failed")
    attorney = accounts.get_live_or_404(db, Attorney, attorney_id, "attorney")
    attorney.timezone = timezone_name
    db.commit()
    db.refresh(attorney)
    return attorney


def update_last_login(db: Session, attorney_id: str) -> None:
    accounts.touch_last_login(db, accounts.get_live_or_404(db, Attorney, attorney_id, "attorney"))


def update_verification_status(db: Session, attorney_id: str, status: str) -> Attorney:
    if status not in VerificationStatus._value2member_map_:
        valid = ", ".join(s.value for s in VerificationStatus)
        raise ValidationError([f"Invalid verification status. Must be one of: {valid}"], prefix="Attorney update failed")
    attorney = accounts.get_live_or_404(db, Attorney, attorney_id, "attorney")
    attorney.verification_status = VerificationStatus(status)
    attorney.is_verified = status == VerificationStatus.verified.value
    attorney.verified_at = datetime.utcnow() if attorney.is_verified else None
    db.commit()
    db.refresh(attorney)
    logger.info("Attorney %s verification -> %s", attorney.id, status)
    return attorney


def update_tier(db: Session, attorney_id: str, tier_level: str) -> Attorney:
    if tier_level not in TIER_LEVELS:
        raise ValidationError(
            [f"Invalid tier level. Must be one of: {', '.join(TIER_LEVELS)}"], prefix="Attorney update failed"
        )
    attorney = accounts.get_live_or_404(db, Attorney, attorney_id, "attorney")
    attorney.tier_level = tier_level
    db.commit()
    db.refresh(attorney)
    return attorney


def deactivate(db: Session, attorney_id: str) -> Attorney:
    return accounts.set_active(db, accounts.get_live_or_404(db, Attorney, attorney_id, "attorney"), False)


def reactivate(db: Session, attorney_id: str) -> Attorney:
    return accounts.set_active(db, accounts.get_live_or_404(db, Attorney, attorney_id, "attorney"), True)


def soft_delete(db: Session, attorney_id: str) -> bool:
    attorney = get_attorney(db, attorney_id)
    if attorney is None:
        return False
    return accounts.soft_delete(db, attorney)


def get_all_attorneys(
    db:                  Session,
    page:                int           = 1,
    limit:               int           = 20,
    search:              Optional[str] = None,
    verification_status: Optional[str] = None,
) -> Dict[str, Any]:
    filters = []
    if verification_status:
        filters.append(Attorney.verification_status == VerificationStatus(verification_status))
    return accounts.paginate(
        db, Attorney, attorney_to_api,
        page=page, limit=limit, search=search,
        search_fields=(Attorney.first_name, Attorney.last_name, Attorney.email, Attorney.law_firm_name),
        filters=filters,
    )


def get_attorney_stats(db: Session) -> Dict[str, int]:
    def _sum(condition):
        return func.coalesce(func.sum(sql_case((condition, 1), else_=0)), 0)

    row = (
        db.query(
            func.count(Attorney.id),
            _sum(Attorney.is_active == True),  # noqa: E712
            _sum(Attorney.is_verified == True),  # noqa: E712
            _sum(Attorney.verification_status == VerificationStatus.pending),
        )
        .filter(Attorney.is_deleted == False)  # noqa: E712
        .one()
    )
    total, active, verified, pending = (int(v or 0) for v in row)
    return {"total": total, "active": active, "verified": verified, "pendingVerification": pending}
