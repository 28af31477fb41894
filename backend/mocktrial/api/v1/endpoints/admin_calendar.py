"""
Admin calendar endpoints: blocked slots and free 30-minute trial slots
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import Principal, get_current_principal, require_admin
from mocktrial.db.database import get_db
from mocktrial.services import admin_calendar_service
from mocktrial.utils.exceptions import NotFoundError

router = APIRouter()


class BlockRequest(BaseModel):
    blocked_date: str
    blocked_time: str
    duration_minutes: Optional[int] = None
    case_id: Optional[str] = None
    reason: Optional[str] = None


@router.post("/blocks", status_code=201)
def block_slot(
    payload: BlockRequest,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    slot = admin_calendar_service.block_slot(
        db,
        payload.blocked_date,
        payload.blocked_time,
        duration_minutes=payload.duration_minutes,
        case_id=payload.case_id,
        reason=payload.reason,
    )
    return {"success": True, "data": admin_calendar_service.slot_to_api(slot)}


@router.delete("/blocks/{slot_id}")
def unblock_slot(
    slot_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not admin_calendar_service.unblock_slot(db, slot_id):
        raise NotFoundError("Calendar slot", slot_id)
    return {"success": True, "message": "Slot unblocked"}


@router.get("/blocks")
def blocked_slots(
    start_date: str = Query(...),
    end_date: str = Query(...),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": admin_calendar_service.get_blocked_slots(db, start_date, end_date)}


@router.get("/available")
def available_slots(
    start_date: str = Query(...),
    end_date: str = Query(...),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": admin_calendar_service.get_available_slots(db, start_date, end_date)}


@router.get("/is-available")
def is_available(
    slot_date: str = Query(...),
    slot_time: str = Query(...),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    available = admin_calendar_service.is_slot_available(db, slot_date, slot_time)
    return {"success": True, "data": {"available": available}}


@router.get("/case/{case_id}")
def slots_for_case(
    case_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": admin_calendar_service.get_slots_for_case(db, case_id)}


@router.delete("/case/{case_id}")
def unblock_case(
    case_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    released = admin_calendar_service.unblock_slots_for_case(db, case_id)
    return {"success": True, "data": {"released": released}}
