"""
services/application_service.py

Juror applications to sit on a case, and the attorney/admin review of them.

Called by:
  - api/v1/endpoints/applications.py
  - services/case_service.py (approved juror counts)

At most one application per (juror, case): the unique constraint
``uq_juror_applications_juror_case`` decides, a second insert surfaces as
``DuplicateApplicationError``.

Approvals never push a case past its ``required_jurors``. The case row is
locked (``SELECT ... FOR UPDATE`` on PostgreSQL) while the approved count is
read and the status flipped, so two reviewers racing for the last seat
resolve first-approved-wins.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mocktrial.core.config import settings
from mocktrial.db.models import (
    AdminApprovalStatus,
    ApplicationStatus,
    AttorneyStatus,
    Case,
    Juror,
    JurorApplication,
)
from mocktrial.db.schemas import parse_voir_dire_responses
from mocktrial.services.event_service import record_event
from mocktrial.services.notification_service import notify
from mocktrial.utils.exceptions import (
    BusinessRuleError,
    CaseNotFoundError,
    DuplicateApplicationError,
    NotFoundError,
    ValidationError,
)
from mocktrial.utils.helpers import coerce_json_list, enum_value, format_date, iso, str_or_none, to_uuid, uuid_list
from mocktrial.utils.validators import format_time

logger = logging.getLogger(__name__)

REVIEW_DECISIONS = (ApplicationStatus.approved.value, ApplicationStatus.rejected.value)


def _application_to_api(app: JurorApplication, include_juror: bool = False, include_case: bool = False) -> Dict[str, Any]:
    out = {
        "id": str(app.id),
        "jurorId": str(app.juror_id),
        "caseId": str(app.case_id),
        "status": enum_value(app.status),
        "voirDire1Responses": coerce_json_list(app.voir_dire_1_responses),
        "voirDire2Responses": coerce_json_list(app.voir_dire_2_responses),
        "appliedAt": iso(app.applied_at),
        "reviewedAt": iso(app.reviewed_at),
        "reviewedBy": str_or_none(app.reviewed_by),
        "reviewComments": app.review_comments,
    }
    if include_juror and app.juror is not None:
        out.update({
            "jurorName": app.juror.name,
            "jurorEmail": app.juror.email,
            "county": app.juror.county,
            "state": app.juror.state,
        })
    if include_case and app.case is not None:
        out.update({
            "caseTitle": app.case.case_title,
            "scheduledDate": format_date(app.case.scheduled_date),
            "scheduledTime": format_time(app.case.scheduled_time),
            "attorneyStatus": enum_value(app.case.attorney_status),
        })
    return out


def _validate_status(status: str) -> ApplicationStatus:
    if status not in ApplicationStatus._value2member_map_:
        valid = ", ".join(s.value for s in ApplicationStatus)
        raise ValidationError([f"Invalid status. Must be one of: {valid}"], prefix="Application validation failed")
    return ApplicationStatus(status)


def _parse_responses(value: Any, label: str, errors: List[str]) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        errors.append(f"{label} responses must be an array")
        return []
    try:
        return parse_voir_dire_responses(value)
    except PydanticValidationError:
        errors.append(f"{label} responses must be an array")
        return []


def _lock_case(db: Session, case_id) -> Optional[Case]:
    return db.query(Case).filter(Case.id == case_id).with_for_update().first()


def _approved_count(db: Session, case_id) -> int:
    return (
        db.query(func.count(JurorApplication.id))
        .filter(
            JurorApplication.case_id == case_id,
            JurorApplication.status == ApplicationStatus.approved,
        )
        .scalar()
        or 0
    )


# ============================================================================
# Create
# ============================================================================

def create_application(
    db:                    Session,
    juror_id:              str,
    case_id:               str,
    voir_dire_1_responses: Optional[List[Any]] = None,
    voir_dire_2_responses: Optional[List[Any]] = None,
) -> JurorApplication:
    errors: List[str] = []
    jid, cid = to_uuid(juror_id), to_uuid(case_id)
    if jid is None:
        errors.append("Valid juror ID is required")
    if cid is None:
        errors.append("Valid case ID is required")
    vd1 = _parse_responses(voir_dire_1_responses, "Voir Dire 1", errors)
    vd2 = _parse_responses(voir_dire_2_responses, "Voir Dire 2", errors)
    if errors:
        raise ValidationError(errors, prefix="Application validation failed")

    juror = db.get(Juror, jid)
    if juror is None or juror.is_deleted:
        raise NotFoundError("Juror", juror_id)
    case = db.get(Case, cid)
    if case is None or case.is_deleted:
        raise CaseNotFoundError(case_id)
    if (
        case.admin_approval_status != AdminApprovalStatus.approved
        or case.attorney_status != AttorneyStatus.war_room
    ):
        raise BusinessRuleError("This case is not accepting applications", code="CASE_NOT_OPEN")

    if has_juror_applied_to_case(db, juror_id, case_id):
        raise DuplicateApplicationError()

    application = JurorApplication(
        juror_id=jid,
        case_id=cid,
        status=ApplicationStatus.pending,
        voir_dire_1_responses=vd1,
        voir_dire_2_responses=vd2,
    )
    db.add(application)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateApplicationError() from e
    db.refresh(application)

    logger.info("Application created: %s (juror=%s, case=%s)", application.id, juror_id, case_id)
    record_event(
        db, case_id, "juror_applied", f"{juror.name} applied to the case",
        triggered_by=juror_id, user_type="juror",
        metadata={"applicationId": str(application.id)},
    )
    notify(
        db,
        user_id=str(case.attorney_id),
        user_type="attorney",
        notification_type="application_received",
        title="New juror application",
        message=f"{juror.name} applied to '{case.case_title}'.",
        case_id=case_id,
    )
    return application


# ============================================================================
# Read
# ============================================================================

def get_application(db: Session, application_id: str) -> Optional[JurorApplication]:
    aid = to_uuid(application_id)
    if aid is None:
        return None
    return db.query(JurorApplication).filter(JurorApplication.id == aid).first()


def find_by_juror_and_case(db: Session, juror_id: str, case_id: str) -> Optional[JurorApplication]:
    jid, cid = to_uuid(juror_id), to_uuid(case_id)
    if jid is None or cid is None:
        raise ValidationError(["Valid juror ID and case ID are required"], prefix="Application validation failed")
    return (
        db.query(JurorApplication)
        .filter(JurorApplication.juror_id == jid, JurorApplication.case_id == cid)
        .first()
    )


def has_juror_applied_to_case(db: Session, juror_id: str, case_id: str) -> bool:
    jid, cid = to_uuid(juror_id), to_uuid(case_id)
    if jid is None or cid is None:
        return False
    return (
        db.query(JurorApplication.id)
        .filter(JurorApplication.juror_id == jid, JurorApplication.case_id == cid)
        .first()
        is not None
    )


def get_applications_by_case(db: Session, case_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
    cid = to_uuid(case_id)
    if cid is None:
        raise ValidationError(["Valid case ID is required"], prefix="Application validation failed")
    query = db.query(JurorApplication).filter(JurorApplication.case_id == cid)
    if status:
        query = query.filter(JurorApplication.status == _validate_status(status))
    rows = query.order_by(JurorApplication.applied_at.asc()).all()
    return [_application_to_api(a, include_juror=True) for a in rows]


def get_applications_by_juror(db: Session, juror_id: str) -> List[Dict[str, Any]]:
    jid = to_uuid(juror_id)
    if jid is None:
        raise ValidationError(["Valid juror ID is required"], prefix="Application validation failed")
    rows = (
        db.query(JurorApplication)
        .filter(JurorApplication.juror_id == jid)
        .order_by(JurorApplication.applied_at.desc())
        .all()
    )
    return [_application_to_api(a, include_case=True) for a in rows]


def get_approved_jurors_for_case(db: Session, case_id: str) -> List[Dict[str, Any]]:
    cid = to_uuid(case_id)
    if cid is None:
        raise ValidationError(["Valid case ID is required"], prefix="Application validation failed")
    rows = (
        db.query(JurorApplication)
        .filter(
            JurorApplication.case_id == cid,
            JurorApplication.status == ApplicationStatus.approved,
        )
        .order_by(JurorApplication.reviewed_at.asc())
        .all()
    )
    return [_application_to_api(a, include_juror=True) for a in rows]


def get_pending_applications_count(db: Session, case_id: str) -> int:
    cid = to_uuid(case_id)
    if cid is None:
        raise ValidationError(["Valid case ID is required"], prefix="Application validation failed")
    return (
        db.query(func.count(JurorApplication.id))
        .filter(
            JurorApplication.case_id == cid,
            JurorApplication.status == ApplicationStatus.pending,
        )
        .scalar()
        or 0
    )


def get_application_stats_by_case(db: Session, case_id: str) -> Dict[str, int]:
    cid = to_uuid(case_id)
    if cid is None:
        raise ValidationError(["Valid case ID is required"], prefix="Application validation failed")
    rows = (
        db.query(JurorApplication.status, func.count(JurorApplication.id))
        .filter(JurorApplication.case_id == cid)
        .group_by(JurorApplication.status)
        .all()
    )
    counts = {enum_value(s): n for s, n in rows}
    stats = {s.value: counts.get(s.value, 0) for s in ApplicationStatus}
    stats["total"] = sum(counts.values())
    return stats


# ============================================================================
# Update
# ============================================================================

def update_application_status(
    db:             Session,
    application_id: str,
    status:         str,
    reviewed_by:    Optional[str] = None,
    comments:       Optional[str] = None,
) -> bool:
    """Unconditional status write used by admin tooling."""
    aid = to_uuid(application_id)
    if aid is None:
        raise ValidationError(["Valid application ID is required"], prefix="Application validation failed")
    new_status = _validate_status(status)
    if reviewed_by is not None and to_uuid(reviewed_by) is None:
        raise ValidationError(["Valid reviewer ID is required"], prefix="Application validation failed")

    updated = (
        db.query(JurorApplication)
        .filter(JurorApplication.id == aid)
        .update(
            {
                "status": new_status,
                "reviewed_by": to_uuid(reviewed_by),
                "reviewed_at": datetime.utcnow(),
                "review_comments": (comments or "").strip() or None,
                "updated_at": datetime.utcnow(),
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return updated > 0


def review_application(
    db:             Session,
    case_id:        str,
    application_id: str,
    decision:       str,
    reviewer_id:    str,
    comments:       Optional[str] = None,
) -> Dict[str, Any]:
    """
    Approve or reject one pending application for a case.

    Returns the application plus the new approved count and whether the
    case now has enough jurors to start the trial.
    """
    if decision not in REVIEW_DECISIONS:
        raise ValidationError(['Decision must be either "approved" or "rejected"'], prefix="Application review failed")

    case = _lock_case(db, to_uuid(case_id))
    if case is None or case.is_deleted:
        raise CaseNotFoundError(case_id)

    application = get_application(db, application_id)
    if application is None or application.case_id != case.id:
        raise NotFoundError("Application", application_id)
    if application.status != ApplicationStatus.pending:
        raise BusinessRuleError(
            f"Application has already been {enum_value(application.status)}", code="ALREADY_REVIEWED"
        )

    required = case.required_jurors or settings.DEFAULT_REQUIRED_JURORS
    if decision == ApplicationStatus.approved.value and _approved_count(db, case.id) >= required:
        db.rollback()
        raise BusinessRuleError(f"Case already has the required {required} jurors", code="CASE_FULL")

    application.status = ApplicationStatus(decision)
    application.reviewed_by = to_uuid(reviewer_id)
    application.reviewed_at = datetime.utcnow()
    application.review_comments = (comments or "").strip() or None
    db.commit()
    db.refresh(application)

    _after_review(db, case, application, reviewer_id, comments)

    approved = _approved_count(db, case.id)
    logger.info(
        "Application %s %s (case=%s, approved=%s/%s)",
        application.id, decision, case.id, approved, required,
    )
    return {
        "application": _application_to_api(application),
        "approvedCount": approved,
        "requiredJurors": required,
        "canProceedToTrial": approved >= required,
    }


def _after_review(db: Session, case: Case, application: JurorApplication, reviewer_id, comments) -> None:
    approved = application.status == ApplicationStatus.approved
    decision = enum_value(application.status)
    record_event(
        db, str(case.id),
        "juror_approved" if approved else "juror_rejected",
        f"Juror application {decision}" + (f": {comments}" if comments else ""),
        triggered_by=str_or_none(reviewer_id), user_type="attorney",
        metadata={"jurorId": str(application.juror_id), "applicationId": str(application.id)},
    )
    if approved:
        message = f"Congratulations! You've been selected for the case \"{case.case_title}\"."
    else:
        message = f"Your application for case \"{case.case_title}\" was not selected."
        if comments:
            message += f" Reason: {comments}"
    notify(
        db,
        user_id=str(application.juror_id),
        user_type="juror",
        notification_type="application_approved" if approved else "application_rejected",
        title="Application Approved" if approved else "Application Rejected",
        message=message,
        case_id=str(case.id),
    )


def withdraw_application(db: Session, application_id: str, juror_id: str) -> bool:
    """Jurors may only withdraw their own pending applications."""
    aid, jid = to_uuid(application_id), to_uuid(juror_id)
    if aid is None or jid is None:
        raise ValidationError(["Valid application ID and juror ID are required"], prefix="Application validation failed")

    updated = (
        db.query(JurorApplication)
        .filter(
            JurorApplication.id == aid,
            JurorApplication.juror_id == jid,
            JurorApplication.status == ApplicationStatus.pending,
        )
        .update(
            {"status": ApplicationStatus.withdrawn, "updated_at": datetime.utcnow()},
            synchronize_session=False,
        )
    )
    db.commit()
    return updated > 0


# ============================================================================
# Batch review
# ============================================================================

def check_batch_size(application_ids, verb: str) -> None:
    """Cap the raw request size, before any id is filtered out."""
    if isinstance(application_ids, list) and len(application_ids) > settings.BATCH_REVIEW_LIMIT:
        raise BusinessRuleError(
            f"Cannot {verb} more than {settings.BATCH_REVIEW_LIMIT} applications at once",
            code="BATCH_TOO_LARGE",
        )


def _batch_ids(application_ids, reviewed_by, verb: str) -> list:
    if not isinstance(application_ids, list) or not application_ids:
        raise ValidationError(["Valid application IDs array is required"], prefix="Batch review failed")
    if to_uuid(reviewed_by) is None:
        raise ValidationError(["Valid reviewer ID is required"], prefix="Batch review failed")
    check_batch_size(application_ids, verb)
    ids = uuid_list(application_ids)
    if not ids:
        raise ValidationError(["No valid application IDs provided"], prefix="Batch review failed")
    return ids


def batch_approve_applications(
    db:              Session,
    application_ids: List[str],
    reviewed_by:     str,
    comments:        Optional[str] = None,
) -> int:
    """
    Approve pending applications, oldest first per case, stopping at each
    case's ``required_jurors``. Returns the number approved.
    """
    ids = _batch_ids(application_ids, reviewed_by, "approve")

    pending = (
        db.query(JurorApplication)
        .filter(
            JurorApplication.id.in_(ids),
            JurorApplication.status == ApplicationStatus.pending,
        )
        .order_by(JurorApplication.applied_at.asc())
        .all()
    )
    by_case = defaultdict(list)
    for app in pending:
        by_case[app.case_id].append(app)

    now = datetime.utcnow()
    approved: List[JurorApplication] = []
    for case_id, apps in by_case.items():
        case = _lock_case(db, case_id)
        if case is None or case.is_deleted:
            continue
        seats = (case.required_jurors or settings.DEFAULT_REQUIRED_JURORS) - _approved_count(db, case_id)
        for app in apps[:max(0, seats)]:
            app.status = ApplicationStatus.approved
            app.reviewed_by = to_uuid(reviewed_by)
            app.reviewed_at = now
            app.review_comments = (comments or "").strip() or None
            approved.append(app)
        if len(apps) > seats:
            logger.info("Batch approve stopped at capacity for case %s (%s skipped)", case_id, len(apps) - max(0, seats))
    db.commit()

    for app in approved:
        _after_review(db, app.case, app, reviewed_by, comments)
    logger.info("Batch approved %s of %s applications", len(approved), len(ids))
    return len(approved)


def batch_reject_applications(
    db:              Session,
    application_ids: List[str],
    reviewed_by:     str,
    comments:        Optional[str] = None,
) -> int:
    ids = _batch_ids(application_ids, reviewed_by, "reject")
    rejected = (
        db.query(JurorApplication)
        .filter(
            JurorApplication.id.in_(ids),
            JurorApplication.status == ApplicationStatus.pending,
        )
        .all()
    )
    now = datetime.utcnow()
    for app in rejected:
        app.status = ApplicationStatus.rejected
        app.reviewed_by = to_uuid(reviewed_by)
        app.reviewed_at = now
        app.review_comments = (comments or "").strip() or None
    db.commit()

    for app in rejected:
        _after_review(db, app.case, app, reviewed_by, comments)
    logger.info("Batch rejected %s of %s applications", len(rejected), len(ids))
    return len(rejected)


def application_to_api(application: JurorApplication) -> Dict[str, Any]:
    return _application_to_api(application)
