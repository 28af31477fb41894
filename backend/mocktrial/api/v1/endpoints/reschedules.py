"""
Reschedule endpoints.

Two flows share this router:
  - attorney-requests: an attorney asks to move an approved case, an admin
    approves or rejects.
  - case-requests: an admin rejects a submitted slot and suggests others,
    the attorney accepts one, asks for different ones, or withdraws.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import (
    Principal,
    load_case,
    require_admin,
    require_attorney,
    require_roles,
)
from mocktrial.db.database import get_db
from mocktrial.db.models import CaseRescheduleRequest
from mocktrial.services import case_reschedule_service, reschedule_request_service
from mocktrial.utils.exceptions import NotFoundError

router = APIRouter()

require_case_staff = require_roles("attorney", "admin")


class AttorneyRequestCreate(BaseModel):
    case_id: str
    new_date: str
    new_time: str
    reason: Optional[str] = None
    attorney_comments: Optional[str] = None


class AdminReview(BaseModel):
    admin_comments: Optional[str] = None


class CaseRequestCreate(BaseModel):
    case_id: str
    rejection_reason: str
    admin_comments: Optional[str] = None
    suggested_slots: List[Dict[str, Any]] = Field(default_factory=list)


class SlotSelection(BaseModel):
    selected_slot: Dict[str, Any]


class AttorneyMessage(BaseModel):
    message: str


class WithdrawRequest(BaseModel):
    reason: Optional[str] = None


# ============================================================================
# Attorney-initiated
# ============================================================================

@router.post("/attorney-requests", status_code=201)
def create_attorney_request(
    payload: AttorneyRequestCreate,
    principal: Principal = Depends(require_attorney),
    db: Session = Depends(get_db),
):
    request = reschedule_request_service.create_request(
        db,
        payload.case_id,
        principal.id,
        payload.new_date,
        payload.new_time,
        reason=payload.reason,
        attorney_comments=payload.attorney_comments,
    )
    return {"success": True, "data": reschedule_request_service.request_to_api(request)}


@router.get("/attorney-requests/pending")
def pending_attorney_requests(
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": reschedule_request_service.get_pending_requests(db)}


@router.get("/attorney-requests/mine")
def my_attorney_requests(
    principal: Principal = Depends(require_attorney),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": reschedule_request_service.get_requests_by_attorney(db, principal.id)}


@router.get("/attorney-requests/case/{case_id}")
def attorney_requests_for_case(
    case_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    return {
        "success": True,
        "data": {
            "requests": reschedule_request_service.get_requests_by_case(db, case_id),
            "hasPending": reschedule_request_service.has_pending_request(db, case_id),
        },
    }


@router.get("/attorney-requests/{request_id}")
def get_attorney_request(
    request_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    request = reschedule_request_service.get_request(db, request_id)
    if request is None:
        raise NotFoundError("Reschedule request", request_id)
    load_case(db, str(request.case_id), principal)
    return {"success": True, "data": reschedule_request_service.request_to_api(request)}


@router.post("/attorney-requests/{request_id}/approve")
def approve_attorney_request(
    request_id: str,
    payload: AdminReview,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    request = reschedule_request_service.approve_request(
        db, request_id, principal.id, admin_comments=payload.admin_comments
    )
    return {"success": True, "data": reschedule_request_service.request_to_api(request)}


@router.post("/attorney-requests/{request_id}/reject")
def reject_attorney_request(
    request_id: str,
    payload: AdminReview,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    request = reschedule_request_service.reject_request(
        db, request_id, principal.id, payload.admin_comments or ""
    )
    return {"success": True, "data": reschedule_request_service.request_to_api(request)}


# ============================================================================
# Admin-initiated
# ============================================================================

def _case_request_for(db: Session, request_id: str, principal: Principal) -> CaseRescheduleRequest:
    request = case_reschedule_service.get_reschedule_request(db, request_id)
    if request is None:
        raise NotFoundError("Reschedule request", request_id)
    load_case(db, str(request.case_id), principal)
    return request


@router.post("/case-requests", status_code=201)
def create_case_request(
    payload: CaseRequestCreate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    request = case_reschedule_service.create_reschedule_request(
        db,
        payload.case_id,
        payload.rejection_reason,
        admin_comments=payload.admin_comments,
        suggested_slots=payload.suggested_slots,
    )
    return {"success": True, "data": case_reschedule_service.reschedule_to_api(request)}


@router.get("/case-requests")
def all_case_requests(
    status: Optional[str] = Query(None),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": case_reschedule_service.get_all_reschedule_requests(db, status=status)}


@router.get("/case-requests/statistics")
def case_request_statistics(
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": case_reschedule_service.get_reschedule_statistics(db)}


@router.get("/case-requests/mine")
def my_case_requests(
    principal: Principal = Depends(require_attorney),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": case_reschedule_service.get_pending_reschedules_by_attorney(db, principal.id)}


@router.get("/case-requests/case/{case_id}")
def latest_case_request(
    case_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    request = case_reschedule_service.get_reschedule_request_by_case(db, case_id)
    if request is None:
        raise NotFoundError("Reschedule request for case", case_id)
    return {"success": True, "data": case_reschedule_service.reschedule_to_api(request)}


@router.post("/case-requests/{request_id}/accept")
def accept_slot(
    request_id: str,
    payload: SlotSelection,
    principal: Principal = Depends(require_attorney),
    db: Session = Depends(get_db),
):
    _case_request_for(db, request_id, principal)
    request = case_reschedule_service.accept_suggested_slot(db, request_id, payload.selected_slot)
    return {"success": True, "data": case_reschedule_service.reschedule_to_api(request)}


@router.post("/case-requests/{request_id}/request-different")
def request_different(
    request_id: str,
    payload: AttorneyMessage,
    principal: Principal = Depends(require_attorney),
    db: Session = Depends(get_db),
):
    _case_request_for(db, request_id, principal)
    request = case_reschedule_service.request_different_slots(db, request_id, payload.message)
    return {"success": True, "data": case_reschedule_service.reschedule_to_api(request)}


@router.post("/case-requests/{request_id}/withdraw")
def withdraw_case(
    request_id: str,
    payload: WithdrawRequest,
    principal: Principal = Depends(require_attorney),
    db: Session = Depends(get_db),
):
    _case_request_for(db, request_id, principal)
    request = case_reschedule_service.reject_reschedule(db, request_id, reason=payload.reason)
    return {"success": True, "data": case_reschedule_service.reschedule_to_api(request)}


@router.delete("/case-requests/{request_id}")
def resolve_case_request(
    request_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not case_reschedule_service.delete_reschedule_request(db, request_id):
        raise NotFoundError("Reschedule request", request_id)
    return {"success": True, "message": "Reschedule request resolved"}
