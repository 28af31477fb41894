"""
services/reschedule_request_service.py

Attorney-initiated reschedule requests for an approved case. The admin
approves (the case moves to the new slot) or rejects with a comment.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from mocktrial.db.models import AttorneyRescheduleRequest, Case, RescheduleRequestStatus
from mocktrial.services import case_service
from mocktrial.services.event_service import record_event
from mocktrial.services.notification_service import notify
from mocktrial.utils.exceptions import BusinessRuleError, ForbiddenError, NotFoundError, ValidationError
from mocktrial.utils.helpers import enum_value, format_date, iso, str_or_none, to_uuid
from mocktrial.utils.validators import format_time, parse_date, parse_time

logger = logging.getLogger(__name__)

PREFIX = "Reschedule request validation failed"


def _request_to_api(r: AttorneyRescheduleRequest, case: Optional[Case] = None) -> Dict[str, Any]:
    out = {
        "id": str(r.id),
        "caseId": str(r.case_id),
        "attorneyId": str(r.attorney_id),
        "newScheduledDate": format_date(r.new_scheduled_date),
        "newScheduledTime": format_time(r.new_scheduled_time),
        "originalScheduledDate": format_date(r.original_scheduled_date),
        "originalScheduledTime": format_time(r.original_scheduled_time),
        "reason": r.reason,
        "attorneyComments": r.attorney_comments,
        "status": enum_value(r.status),
        "adminId": str_or_none(r.admin_id),
        "adminComments": r.admin_comments,
        "respondedAt": iso(r.responded_at),
        "createdAt": iso(r.created_at),
    }
    if case is not None:
        out["caseTitle"] = case.case_title
        out["county"] = case.county
    return out


def _request_id(request_id: str):
    rid = to_uuid(request_id)
    if rid is None:
        raise ValidationError(["Valid request ID is required"], prefix=PREFIX)
    return rid


def _pending_or_error(db: Session, request_id: str) -> AttorneyRescheduleRequest:
    request = db.get(AttorneyRescheduleRequest, _request_id(request_id))
    if request is None:
        raise NotFoundError("Reschedule request", request_id)
    if request.status != RescheduleRequestStatus.pending:
        raise BusinessRuleError(f"Reschedule request is already {enum_value(request.status)}", code="ALREADY_REVIEWED")
    return request


# ============================================================================
# Create
# ============================================================================

def create_request(
    db:                Session,
    case_id:           str,
    attorney_id:       str,
    new_date:          Any,
    new_time:          Any,
    reason:            Optional[str] = None,
    attorney_comments: Optional[str] = None,
) -> AttorneyRescheduleRequest:
    errors = []
    if to_uuid(case_id) is None:
        errors.append("Valid case ID is required")
    if to_uuid(attorney_id) is None:
        errors.append("Valid attorney ID is required")
    if not new_date:
        errors.append("New scheduled date is required")
    if not new_time:
        errors.append("New scheduled time is required")
    parsed_date = parsed_time = None
    if new_date and new_time:
        try:
            parsed_date, parsed_time = parse_date(new_date), parse_time(new_time)
        except ValueError:
            errors.append("Invalid date or time format")
    if errors:
        raise ValidationError(errors, prefix=PREFIX)

    case = case_service.get_live_case(db, case_id)
    if case.attorney_id != to_uuid(attorney_id):
        raise ForbiddenError("Not authorized to reschedule this case")
    if has_pending_request(db, case_id):
        raise BusinessRuleError("A reschedule request is already pending for this case", code="RESCHEDULE_PENDING")

    request = AttorneyRescheduleRequest(
        case_id=case.id,
        attorney_id=case.attorney_id,
        new_scheduled_date=parsed_date,
        new_scheduled_time=parsed_time,
        original_scheduled_date=case.scheduled_date,
        original_scheduled_time=case.scheduled_time,
        reason=(reason or "").strip() or None,
        attorney_comments=(attorney_comments or "").strip() or None,
    )
    db.add(request)
    db.commit()
    db.refresh(request)

    logger.info("Attorney reschedule request %s created for case %s", request.id, case.id)
    return request


# ============================================================================
# Read
# ============================================================================

def get_request(db: Session, request_id: str) -> Optional[AttorneyRescheduleRequest]:
    return db.get(AttorneyRescheduleRequest, _request_id(request_id))


def get_requests_by_case(db: Session, case_id: str) -> List[Dict[str, Any]]:
    cid = to_uuid(case_id)
    if cid is None:
        raise ValidationError(["Valid case ID is required"], prefix=PREFIX)
    rows = (
        db.query(AttorneyRescheduleRequest)
        .filter(AttorneyRescheduleRequest.case_id == cid)
        .order_by(AttorneyRescheduleRequest.created_at.desc())
        .all()
    )
    return [_request_to_api(r) for r in rows]


def get_pending_requests(db: Session) -> List[Dict[str, Any]]:
    rows = (
        db.query(AttorneyRescheduleRequest, Case)
        .join(Case, AttorneyRescheduleRequest.case_id == Case.id)
        .filter(AttorneyRescheduleRequest.status == RescheduleRequestStatus.pending, Case.is_deleted == False)  # noqa: E712
        .order_by(AttorneyRescheduleRequest.created_at.asc())
        .all()
    )
    return [_request_to_api(r, c) for r, c in rows]


def get_requests_by_attorney(db: Session, attorney_id: str) -> List[Dict[str, Any]]:
    aid = to_uuid(attorney_id)
    if aid is None:
        raise ValidationError(["Valid attorney ID is required"], prefix=PREFIX)
    rows = (
        db.query(AttorneyRescheduleRequest, Case)
        .join(Case, AttorneyRescheduleRequest.case_id == Case.id)
        .filter(AttorneyRescheduleRequest.attorney_id == aid)
        .order_by(AttorneyRescheduleRequest.created_at.desc())
        .all()
    )
    return [_request_to_api(r, c) for r, c in rows]


def has_pending_request(db: Session, case_id: str) -> bool:
    return (
        db.query(AttorneyRescheduleRequest.id)
        .filter(
            AttorneyRescheduleRequest.case_id == to_uuid(case_id),
            AttorneyRescheduleRequest.status == RescheduleRequestStatus.pending,
        )
        .first()
        is not None
    )


# ============================================================================
# Review
# ============================================================================

def approve_request(db: Session, request_id: str, admin_id: str, admin_comments: Optional[str] = None) -> AttorneyRescheduleRequest:
    """Moves the case first; a taken slot leaves the request pending."""
    if to_uuid(admin_id) is None:
        raise ValidationError(["Valid admin ID is required"], prefix=PREFIX)
    request = _pending_or_error(db, request_id)

    case = case_service.move_case_to_slot(
        db, str(request.case_id), request.new_scheduled_date, request.new_scheduled_time
    )

    request.status = RescheduleRequestStatus.approved
    request.admin_id = to_uuid(admin_id)
    request.admin_comments = (admin_comments or "").strip() or None
    request.responded_at = datetime.utcnow()
    db.commit()
    db.refresh(request)

    logger.info("Reschedule request %s approved by admin %s", request.id, admin_id)
    record_event(
        db, str(case.id), "case_updated",
        f"Case rescheduled to {format_date(case.scheduled_date)} {format_time(case.scheduled_time)}",
        triggered_by=admin_id, user_type="admin",
        metadata={"requestId": str(request.id)},
    )
    notify(
        db,
        user_id=str(request.attorney_id),
        user_type="attorney",
        notification_type="case_approved",
        title="Reschedule approved",
        message=f"Your case '{case.case_title}' has been moved to the requested time.",
        case_id=str(case.id),
    )
    return request


def reject_request(db: Session, request_id: str, admin_id: str, admin_comments: str) -> AttorneyRescheduleRequest:
    errors = []
    if to_uuid(admin_id) is None:
        errors.append("Valid admin ID is required")
    if not admin_comments or not admin_comments.strip():
        errors.append("Admin comments are required for rejection")
    if errors:
        raise ValidationError(errors, prefix=PREFIX)
    request = _pending_or_error(db, request_id)

    request.status = RescheduleRequestStatus.rejected
    request.admin_id = to_uuid(admin_id)
    request.admin_comments = admin_comments.strip()
    request.responded_at = datetime.utcnow()
    db.commit()
    db.refresh(request)

    logger.info("Reschedule request %s rejected by admin %s", request.id, admin_id)
    notify(
        db,
        user_id=str(request.attorney_id),
        user_type="attorney",
        notification_type="case_rejected",
        title="Reschedule request declined",
        message=request.admin_comments,
        case_id=str(request.case_id),
    )
    return request


def request_to_api(request: AttorneyRescheduleRequest) -> Dict[str, Any]:
    return _request_to_api(request)
