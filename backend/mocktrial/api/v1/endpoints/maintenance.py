"""
Maintenance endpoints (admin only): run the archive/purge pass and the
trial reminders on demand
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import Principal, require_admin
from mocktrial.db.database import get_db
from mocktrial.services import (
    event_service,
    maintenance_service,
    notification_service,
    trial_reminder_service,
)

router = APIRouter()


@router.post("/run")
def run_maintenance(
    notification_days: Optional[int] = Query(None, ge=1),
    event_days: Optional[int] = Query(None, ge=1),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    summary = maintenance_service.run_maintenance(
        db, notification_archive_days=notification_days, event_archive_days=event_days
    )
    return {"success": True, "data": summary}


@router.post("/notifications/archive")
def archive_notifications(
    days: int = Query(90, ge=1),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": {"archived": notification_service.archive_old_notifications(db, days)}}


@router.post("/notifications/purge")
def purge_notifications(
    days: int = Query(90, ge=1),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": {"deleted": notification_service.purge_archived_notifications(db, days)}}


@router.post("/events/archive")
def archive_events(
    days: int = Query(365, ge=1),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": {"archived": event_service.archive_old_events(db, days)}}


@router.post("/events/purge")
def purge_events(
    days: int = Query(365, ge=1),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": {"deleted": event_service.purge_archived_events(db, days)}}


@router.post("/reminders")
def send_reminders(
    today: Optional[date] = Query(None, description="Treat this UTC date as today"),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": trial_reminder_service.send_trial_reminders(db, today=today)}
