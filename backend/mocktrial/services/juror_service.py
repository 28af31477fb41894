"""
services/juror_service.py

Juror accounts, onboarding tasks and screening answers.

Onboarding completes itself once both the intro video and the quiz are done.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import case as sql_case, func
from sqlalchemy.orm import Session

from mocktrial.db.models import Juror, VerificationStatus
from mocktrial.services import account_service as accounts
from mocktrial.utils.exceptions import ConflictError, ValidationError
from mocktrial.utils.helpers import coerce_json_dict, enum_value, iso
from mocktrial.utils.validators import clamp, normalize_email, validate_email

logger = logging.getLogger(__name__)

ONBOARDING_TASKS = {
    "intro_video": "intro_video_completed",
    "juror_quiz": "juror_quiz_completed",
    "onboarding": "onboarding_completed",
    "profile": "profile_complete",
}

PROFILE_FIELDS = {
    "name": accounts.text_or_none,
    "email": accounts.text_or_none,
    "phone_number": accounts.text_or_none,
    "address_1": accounts.text_or_none,
    "address_2": accounts.text_or_none,
    "city": accounts.text_or_none,
    "state": accounts.text_or_none,
    "zip_code": accounts.text_or_none,
    "county": accounts.text_or_none,
    "payment_method": accounts.text_or_none,
    "marital_status": accounts.text_or_none,
    "spouse_employer": accounts.text_or_none,
    "employer_name": accounts.text_or_none,
    "employer_address": accounts.text_or_none,
    "years_in_county": accounts.int_or_none,
    "age_range": accounts.text_or_none,
    "gender": accounts.text_or_none,
    "education": accounts.text_or_none,
}


def juror_to_api(j: Juror) -> Dict[str, Any]:
    return {
        "id": str(j.id),
        "name": j.name,
        "email": j.email,
        "phoneNumber": j.phone_number,
        "city": j.city,
        "state": j.state,
        "county": j.county,
        "zipCode": j.zip_code,
        "maritalStatus": j.marital_status,
        "employerName": j.employer_name,
        "yearsInCounty": j.years_in_county,
        "ageRange": j.age_range,
        "gender": j.gender,
        "education": j.education,
        "paymentMethod": j.payment_method,
        "criteriaResponses": coerce_json_dict(j.criteria_responses),
        "introVideoCompleted": j.intro_video_completed,
        "jurorQuizCompleted": j.juror_quiz_completed,
        "onboardingCompleted": j.onboarding_completed,
        "profileComplete": j.profile_complete,
        "isVerified": j.is_verified,
        "verificationStatus": enum_value(j.verification_status),
        "isActive": j.is_active,
        "lastLoginAt": iso(j.last_login_at),
        "createdAt": iso(j.created_at),
    }


def validate_juror_data(data: Dict[str, Any]) -> None:
    errors = []
    for key, label in (
        ("name", "Name"),
        ("email", "Email"),
        ("phone_number", "Phone number"),
        ("county", "County"),
        ("state", "State"),
        ("password_hash", "Password"),
    ):
        if not str(data.get(key) or "").strip():
            errors.append(f"{label} is required")
    if data.get("email") and not validate_email(data["email"]):
        errors.append("Invalid email format")
    if data.get("phone_number") and not accounts.PHONE_PATTERN.match(data["phone_number"]):
        errors.append("Invalid phone number format")
    if errors:
        raise ValidationError(errors, prefix="Juror validation failed")


def create_juror(db: Session, data: Dict[str, Any]) -> Juror:
    validate_juror_data(data)
    email = normalize_email(data["email"])
    if accounts.email_exists(db, Juror, email):
        raise ConflictError("Email is already registered", code="DUPLICATE_EMAIL")

    juror = Juror(
        email=email,
        password_hash=data["password_hash"],
        name=data["name"].strip(),
        phone_number=data["phone_number"].strip(),
        county=data["county"].strip(),
        state=data["state"].strip(),
        city=accounts.text_or_none(data.get("city")),
        zip_code=accounts.text_or_none(data.get("zip_code")),
        address_1=accounts.text_or_none(data.get("address_1")),
        address_2=accounts.text_or_none(data.get("address_2")),
        criteria_responses=coerce_json_dict(data.get("criteria_responses")) or None,
        user_agreement_accepted=bool(data.get("user_agreement_accepted")),
        agreement_accepted_at=datetime.utcnow() if data.get("user_agreement_accepted") else None,
    )
    db.add(juror)
    accounts.commit_unique(db, "Email is already registered", "DUPLICATE_EMAIL")
    db.refresh(juror)
    logger.info("Juror created: %s (county=%s)", juror.id, juror.county)
    return juror


def get_juror(db: Session, juror_id: str) -> Optional[Juror]:
    return accounts.get_live(db, Juror, juror_id, "juror")


def email_exists(db: Session, email: str, exclude_id: Optional[str] = None) -> bool:
    return accounts.email_exists(db, Juror, email, exclude_id)


def update_profile(db: Session, juror_id: str, data: Dict[str, Any]) -> Juror:
    juror = accounts.get_live_or_404(db, Juror, juror_id, "juror")
    return accounts.update_fields(db, juror, data, PROFILE_FIELDS, "juror")


def update_last_login(db: Session, juror_id: str) -> None:
    accounts.touch_last_login(db, accounts.get_live_or_404(db, Juror, juror_id, "juror"))


def update_verification_status(db: Session, juror_id: str, status: str) -> Juror:
    if status not in VerificationStatus._value2member_map_:
        valid = ", ".join(s.value for s in VerificationStatus)
        raise ValidationError([f"Invalid verification status. Must be one of: {valid}"], prefix="Juror update failed")
    juror = accounts.get_live_or_404(db, Juror, juror_id, "juror")
    juror.verification_status = VerificationStatus(status)
    juror.is_verified = status == VerificationStatus.verified.value
    juror.verified_at = datetime.utcnow() if juror.is_verified else None
    db.commit()
    db.refresh(juror)
    return juror


def update_task_completion(db: Session, juror_id: str, task: str, completed: bool = True) -> Juror:
    column = ONBOARDING_TASKS.get(task)
    if column is None:
        raise ValidationError(
            [f"Invalid task type. Must be one of: {', '.join(ONBOARDING_TASKS)}"], prefix="Juror update failed"
        )
    juror = accounts.get_live_or_404(db, Juror, juror_id, "juror")
    setattr(juror, column, bool(completed))
    if task in ("intro_video", "juror_quiz"):
        juror.onboarding_completed = bool(juror.intro_video_completed and juror.juror_quiz_completed)
    db.commit()
    db.refresh(juror)
    return juror


def update_criteria_responses(db: Session, juror_id: str, responses: Dict[str, Any]) -> Juror:
    if not isinstance(responses, dict):
        raise ValidationError(["Criteria responses must be an object"], prefix="Juror update failed")
    juror = accounts.get_live_or_404(db, Juror, juror_id, "juror")
    juror.criteria_responses = responses
    db.commit()
    db.refresh(juror)
    return juror


def deactivate(db: Session, juror_id: str) -> Juror:
    return accounts.set_active(db, accounts.get_live_or_404(db, Juror, juror_id, "juror"), False)


def reactivate(db: Session, juror_id: str) -> Juror:
    return accounts.set_active(db, accounts.get_live_or_404(db, Juror, juror_id, "juror"), True)


def soft_delete(db: Session, juror_id: str) -> bool:
    juror = get_juror(db, juror_id)
    if juror is None:
        return False
    return accounts.soft_delete(db, juror)


def get_active_jurors_by_county(db: Session, county: str, limit: int = 50) -> List[Dict[str, Any]]:
    if not county or not county.strip():
        raise ValidationError(["County is required"], prefix="Juror validation failed")
    rows = (
        db.query(Juror)
        .filter(
            func.lower(Juror.county) == county.strip().lower(),
            Juror.is_active == True,  # noqa: E712
            Juror.is_deleted == False,  # noqa: E712
            Juror.onboarding_completed == True,  # noqa: E712
        )
        .order_by(Juror.name.asc())
        .limit(clamp(limit, 1, 200, 50))
        .all()
    )
    return [juror_to_api(j) for j in rows]


def get_all_jurors(
    db:                  Session,
    page:                int           = 1,
    limit:               int           = 20,
    search:              Optional[str] = None,
    county:              Optional[str] = None,
    verification_status: Optional[str] = None,
) -> Dict[str, Any]:
    filters = []
    if county:
        filters.append(func.lower(Juror.county) == county.strip().lower())
    if verification_status:
        filters.append(Juror.verification_status == VerificationStatus(verification_status))
    return accounts.paginate(
        db, Juror, juror_to_api,
        page=page, limit=limit, search=search,
        search_fields=(Juror.name, Juror.email, Juror.county),
        filters=filters,
    )


def get_juror_statistics(db: Session) -> Dict[str, int]:
    def _sum(condition):
        return func.coalesce(func.sum(sql_case((condition, 1), else_=0)), 0)

    row = (
        db.query(
            func.count(Juror.id),
            _sum(Juror.is_active == True),  # noqa: E712
            _sum(Juror.verification_status == VerificationStatus.pending),
            _sum(Juror.verification_status == VerificationStatus.verified),
            _sum(Juror.verification_status == VerificationStatus.rejected),
            _sum(Juror.onboarding_completed == True),  # noqa: E712
            _sum(Juror.intro_video_completed == True),  # noqa: E712
            _sum(Juror.juror_quiz_completed == True),  # noqa: E712
        )
        .filter(Juror.is_deleted == False)  # noqa: E712
        .one()
    )
    keys = ["total", "active", "pending", "verified", "rejected", "onboardingCompleted",
            "introVideoCompleted", "jurorQuizCompleted"]
    stats = {key: int(value or 0) for key, value in zip(keys, row)}
    stats["inactive"] = stats["total"] - stats["active"]
    return stats
