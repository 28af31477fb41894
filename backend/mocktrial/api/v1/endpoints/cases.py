"""
Case management endpoints
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import (
    Principal,
    get_current_principal,
    load_case,
    require_admin,
    require_attorney,
    require_juror,
)
from mocktrial.db.database import get_db
from mocktrial.db.schemas import CaseCreate, CaseDetailsUpdate
from mocktrial.services import case_service, juror_service
from mocktrial.utils.exceptions import CaseNotFoundError, NotFoundError

router = APIRouter()


class CaseStatusUpdate(BaseModel):
    attorney_status: Optional[str] = None
    admin_approval_status: Optional[str] = None
    admin_comments: Optional[str] = None
    jury_charge_status: Optional[str] = None


class TransitionRequest(BaseModel):
    new_status: str


class RescheduleRequest(BaseModel):
    alternate_slots: List[Dict[str, Any]] = Field(default_factory=list)


class ConfirmRescheduleRequest(BaseModel):
    selected_slot: Dict[str, Any]


# ============================================================================
# Create & List
# ============================================================================

@router.post("/", status_code=201)
def create_case(
    payload: CaseCreate,
    principal: Principal = Depends(require_attorney),
    db: Session = Depends(get_db),
):
    case = case_service.create_case(db, principal.id, payload.model_dump())
    return {"success": True, "data": case_service.case_to_api(case)}


@router.get("/")
def list_cases(
    admin_approval_status: Optional[str] = Query(None),
    attorney_status: Optional[str] = Query(None),
    county: Optional[str] = Query(None),
    case_type: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    data = case_service.get_all_cases(
        db,
        page=page,
        limit=limit,
        admin_approval_status=admin_approval_status,
        attorney_status=attorney_status,
        county=county,
        case_type=case_type,
        search=search,
    )
    return {"success": True, "data": data}


@router.get("/mine")
def my_cases(
    status: Optional[str] = Query(None, description="Filter by attorney status"),
    admin_approval_status: Optional[str] = Query(None),
    principal: Principal = Depends(require_attorney),
    db: Session = Depends(get_db),
):
    cases = case_service.get_cases_by_attorney(
        db, principal.id, status=status, admin_approval_status=admin_approval_status
    )
    return {"success": True, "data": cases}


@router.get("/available")
def available_cases(
    principal: Principal = Depends(require_juror),
    db: Session = Depends(get_db),
):
    """Cases the calling juror can still apply to"""
    juror = juror_service.get_juror(db, principal.id)
    if juror is None:
        raise NotFoundError("Juror", principal.id)
    cases = case_service.get_available_cases_for_jurors(
        db, juror.county, juror_id=principal.id, state=juror.state
    )
    return {"success": True, "data": cases}


@router.get("/pending-approval")
def pending_approval(
    limit: int = Query(50, ge=1, le=200),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": case_service.get_cases_pending_admin_approval(db, limit=limit)}


@router.get("/statistics")
def case_statistics(
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": case_service.get_case_statistics(db)}


@router.get("/reschedule-required")
def reschedule_required(
    principal: Principal = Depends(require_attorney),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": case_service.get_reschedule_cases_for_attorney(db, principal.id)}


@router.get("/slot-availability")
def slot_availability(
    scheduled_date: str = Query(..., description="YYYY-MM-DD (UTC)"),
    scheduled_time: str = Query(..., description="HH:MM or HH:MM:SS (UTC)"),
    exclude_case_id: Optional[str] = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    data = case_service.check_slot_availability(
        db, scheduled_date, scheduled_time, exclude_case_id=exclude_case_id
    )
    return {"success": True, "data": data}


# ============================================================================
# Single case
# ============================================================================

@router.get("/{case_id}")
def get_case(
    case_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal, allow_jurors=True)
    detail = case_service.get_case_detail(db, case_id)
    if detail is None:
        raise CaseNotFoundError(case_id)
    return {"success": True, "data": detail}


@router.patch("/{case_id}")
def update_case(
    case_id: str,
    payload: CaseDetailsUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    case = case_service.update_case_details(db, case_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "data": case_service.case_to_api(case)}


@router.delete("/{case_id}")
def delete_case(
    case_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    case_service.soft_delete_case(db, case_id)
    return {"success": True, "message": "Case deleted"}


@router.patch("/{case_id}/status")
def update_status(
    case_id: str,
    payload: CaseStatusUpdate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Admin approval/rejection and field-level status edits"""
    case = case_service.update_case_status(
        db,
        case_id,
        attorney_status=payload.attorney_status,
        admin_approval_status=payload.admin_approval_status,
        admin_comments=payload.admin_comments,
        admin_id=principal.id,
        jury_charge_status=payload.jury_charge_status,
    )
    return {"success": True, "data": case_service.case_to_api(case)}


@router.get("/{case_id}/transition-check")
def transition_check(
    case_id: str,
    new_status: str = Query(...),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    result = case_service.validate_case_state_transition(db, case_id, new_status)
    return {"success": True, "data": {"valid": result.valid, "message": result.message}}


@router.post("/{case_id}/transition")
def transition(
    case_id: str,
    payload: TransitionRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    case = case_service.transition_case_status(db, case_id, payload.new_status, actor_id=principal.id)
    return {"success": True, "data": case_service.case_to_api(case)}


@router.post("/{case_id}/reschedule")
def request_reschedule(
    case_id: str,
    payload: RescheduleRequest,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    case_service.request_reschedule(db, case_id, principal.id, payload.alternate_slots)
    return {"success": True, "message": "Reschedule requested"}


@router.post("/{case_id}/confirm-reschedule")
def confirm_reschedule(
    case_id: str,
    payload: ConfirmRescheduleRequest,
    principal: Principal = Depends(require_attorney),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    confirmed = case_service.confirm_reschedule(db, case_id, payload.selected_slot)
    return {"success": True, "data": {"confirmed": confirmed}}
