"""
services/case_reschedule_service.py

Admin-initiated reschedule records: why the slot was refused, which
alternatives were offered, and how the attorney answered.

Accepting a suggested slot goes through ``case_service.confirm_reschedule``
so the slot checks and the unique index apply the same way as anywhere else.
Records are never hard-deleted; "delete" marks them resolved.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import case as sql_case, func
from sqlalchemy.orm import Session

from mocktrial.db.models import Case, CaseRescheduleRequest, RescheduleResponse
from mocktrial.db.schemas import dump_slots, parse_slot
from mocktrial.services import case_service
from mocktrial.utils.exceptions import NotFoundError, ValidationError
from mocktrial.utils.helpers import coerce_json_dict, coerce_json_list, enum_value, iso, to_uuid

logger = logging.getLogger(__name__)

PREFIX = "Reschedule validation failed"
MAX_MESSAGE_LENGTH = 1000


def _reschedule_to_api(r: CaseRescheduleRequest, case: Optional[Case] = None) -> Dict[str, Any]:
    out = {
        "id": str(r.id),
        "caseId": str(r.case_id),
        "rejectionReason": r.rejection_reason,
        "adminComments": r.admin_comments,
        "suggestedSlots": coerce_json_list(r.suggested_slots),
        "selectedSlot": coerce_json_dict(r.selected_slot) or None,
        "attorneyResponse": enum_value(r.attorney_response),
        "createdAt": iso(r.created_at),
        "updatedAt": iso(r.updated_at),
    }
    if case is not None:
        out["caseTitle"] = case.case_title
        out["attorneyId"] = str(case.attorney_id)
    return out


def _request_id(request_id: str):
    rid = to_uuid(request_id)
    if rid is None:
        raise ValidationError(["Valid request ID is required"], prefix=PREFIX)
    return rid


def _get_or_404(db: Session, request_id: str) -> CaseRescheduleRequest:
    request = db.get(CaseRescheduleRequest, _request_id(request_id))
    if request is None:
        raise NotFoundError("Reschedule request")
    return request


def _slot(value: Any):
    try:
        return parse_slot(value)
    except ValueError as e:
        raise ValidationError([str(e).splitlines()[0]], prefix=PREFIX) from e


def _append_comment(existing: Optional[str], addition: str) -> str:
    return f"{existing} | {addition}" if existing else addition


# ============================================================================
# Create / read
# ============================================================================

def create_reschedule_request(
    db:               Session,
    case_id:          str,
    rejection_reason: str,
    admin_comments:   Optional[str]       = None,
    suggested_slots:  Optional[List[Any]] = None,
) -> CaseRescheduleRequest:
    errors = []
    if to_uuid(case_id) is None:
        errors.append("Valid case ID is required")
    if not rejection_reason or not rejection_reason.strip():
        errors.append("Rejection reason is required")
    if errors:
        raise ValidationError(errors, prefix=PREFIX)

    slots = [_slot(s) for s in (suggested_slots if isinstance(suggested_slots, list) else [])]
    case = case_service.get_live_case(db, case_id)

    request = CaseRescheduleRequest(
        case_id=case.id,
        rejection_reason=rejection_reason.strip(),
        admin_comments=(admin_comments or "").strip() or None,
        suggested_slots=dump_slots(slots),
        attorney_response=RescheduleResponse.pending,
    )
    db.add(request)
    db.commit()
    db.refresh(request)

    logger.info("Case reschedule request %s created for case %s (%s slots)", request.id, case.id, len(slots))
    return request


def get_reschedule_request(db: Session, request_id: str) -> Optional[CaseRescheduleRequest]:
    return db.get(CaseRescheduleRequest, _request_id(request_id))


def get_reschedule_request_by_case(db: Session, case_id: str) -> Optional[CaseRescheduleRequest]:
    """Latest record for the case."""
    cid = to_uuid(case_id)
    if cid is None:
        raise ValidationError(["Valid case ID is required"], prefix=PREFIX)
    return (
        db.query(CaseRescheduleRequest)
        .filter(CaseRescheduleRequest.case_id == cid)
        .order_by(CaseRescheduleRequest.created_at.desc())
        .first()
    )


def get_pending_reschedules_by_attorney(db: Session, attorney_id: str) -> List[Dict[str, Any]]:
    aid = to_uuid(attorney_id)
    if aid is None:
        raise ValidationError(["Valid attorney ID is required"], prefix=PREFIX)
    rows = (
        db.query(CaseRescheduleRequest, Case)
        .join(Case, CaseRescheduleRequest.case_id == Case.id)
        .filter(
            Case.attorney_id == aid,
            Case.is_deleted == False,  # noqa: E712
            CaseRescheduleRequest.attorney_response == RescheduleResponse.pending,
        )
        .order_by(CaseRescheduleRequest.created_at.desc())
        .all()
    )
    return [_reschedule_to_api(r, c) for r, c in rows]


def get_all_reschedule_requests(db: Session, status: Optional[str] = None) -> List[Dict[str, Any]]:
    query = db.query(CaseRescheduleRequest, Case).join(Case, CaseRescheduleRequest.case_id == Case.id)
    if status:
        if status not in RescheduleResponse._value2member_map_:
            raise ValidationError([f"Invalid status: {status}"], prefix=PREFIX)
        query = query.filter(CaseRescheduleRequest.attorney_response == RescheduleResponse(status))
    rows = query.order_by(CaseRescheduleRequest.created_at.desc()).all()
    return [_reschedule_to_api(r, c) for r, c in rows]


# ============================================================================
# Attorney responses
# ============================================================================

def accept_suggested_slot(db: Session, request_id: str, selected_slot: Any) -> CaseRescheduleRequest:
    request = _get_or_404(db, request_id)
    slot = _slot(selected_slot)

    # Raises SlotUnavailableError and leaves the request pending if the slot is gone
    case_service.confirm_reschedule(db, str(request.case_id), slot)

    request.selected_slot = slot.to_json()
    request.attorney_response = RescheduleResponse.accepted
    db.commit()
    db.refresh(request)
    logger.info("Reschedule request %s accepted: %s %s", request.id, slot.date, slot.time)
    return request


def request_different_slots(db: Session, request_id: str, message: str) -> CaseRescheduleRequest:
    _request_id(request_id)
    text = (message or "").strip()
    if not text:
        raise ValidationError(["Message is required"], prefix=PREFIX)
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError([f"Message too long (max {MAX_MESSAGE_LENGTH} characters)"], prefix=PREFIX)

    request = _get_or_404(db, request_id)
    request.admin_comments = _append_comment(request.admin_comments, f"Attorney reply: {text}")
    request.attorney_response = RescheduleResponse.requested_different
    db.commit()
    db.refresh(request)
    return request


def reject_reschedule(db: Session, request_id: str, reason: Optional[str] = None) -> CaseRescheduleRequest:
    """Attorney withdraws the case instead of moving it."""
    request = _get_or_404(db, request_id)
    text = (reason or "").strip() or "No reason provided"
    request.admin_comments = _append_comment(request.admin_comments, f"Attorney withdrew case: {text}")
    request.attorney_response = RescheduleResponse.rejected
    db.commit()
    db.refresh(request)
    logger.info("Reschedule request %s rejected by attorney", request.id)
    return request


def delete_reschedule_request(db: Session, request_id: str) -> bool:
    updated = (
        db.query(CaseRescheduleRequest)
        .filter(CaseRescheduleRequest.id == _request_id(request_id))
        .update({"attorney_response": RescheduleResponse.resolved}, synchronize_session=False)
    )
    db.commit()
    return updated > 0


def get_reschedule_statistics(db: Session) -> Dict[str, int]:
    response = CaseRescheduleRequest.attorney_response
    columns = [func.count(CaseRescheduleRequest.id)] + [
        func.coalesce(func.sum(sql_case((response == r, 1), else_=0)), 0) for r in RescheduleResponse
    ]
    row = db.query(*columns).one()
    keys = ["total", "pending", "accepted", "requestedDifferent", "rejected", "resolved"]
    return {key: int(value or 0) for key, value in zip(keys, row)}


def reschedule_to_api(request: CaseRescheduleRequest) -> Dict[str, Any]:
    return _reschedule_to_api(request)
