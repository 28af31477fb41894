"""
Case timeline / event log endpoints
"""
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import Principal, get_current_principal, load_case, require_admin
from mocktrial.db.database import get_db
from mocktrial.services import event_service

router = APIRouter()


class EventCreate(BaseModel):
    case_id: Optional[str] = None
    event_type: str
    description: str
    metadata: Optional[Dict[str, Any]] = None


@router.post("/", status_code=201)
def create_event(
    payload: EventCreate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = event_service.create_event(
        db,
        payload.case_id,
        payload.event_type,
        payload.description,
        triggered_by=principal.id,
        user_type="admin",
        metadata=payload.metadata,
    )
    return {"success": True, "data": event_service.event_to_api(event)}


@router.get("/case/{case_id}")
def case_timeline(
    case_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    return {"success": True, "data": event_service.get_events_by_case(db, case_id)}


@router.get("/recent")
def recent(
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": event_service.get_recent_events(db, limit=limit)}


@router.get("/user/{user_id}")
def by_user(
    user_id: str,
    limit: int = Query(50, ge=1, le=100),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": event_service.get_events_by_user(db, user_id, limit=limit)}


@router.get("/type/{event_type}")
def by_type(
    event_type: str,
    limit: int = Query(50, ge=1, le=100),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": event_service.get_events_by_type(db, event_type, limit=limit)}


@router.get("/statistics")
def statistics(
    days: int = Query(7, ge=1, le=365),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": event_service.get_event_statistics(db, days=days)}


@router.get("/daily-counts")
def daily_counts(
    start: datetime = Query(...),
    end: datetime = Query(...),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": event_service.get_event_count_by_date_range(db, start, end)}
