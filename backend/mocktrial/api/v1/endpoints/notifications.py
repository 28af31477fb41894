"""
Notification endpoints

Callers only ever see their own inbox; the admin routes cover broadcast
and reporting.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import Principal, get_current_principal, require_admin
from mocktrial.db.database import get_db
from mocktrial.services import notification_service
from mocktrial.utils.exceptions import NotFoundError

router = APIRouter()


class NotificationCreate(BaseModel):
    user_id: str
    user_type: str
    notification_type: str
    title: str
    message: str
    case_id: Optional[str] = None


class BulkNotificationCreate(BaseModel):
    notifications: List[Dict[str, Any]] = Field(default_factory=list)


@router.get("/")
def my_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    items = notification_service.get_notifications_for_user(
        db, principal.id, principal.user_type, unread_only=unread_only, limit=limit, offset=offset
    )
    return {"success": True, "data": items}


@router.get("/unread-count")
def unread_count(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    count = notification_service.get_unread_count(db, principal.id, principal.user_type)
    return {"success": True, "data": {"count": count}}


@router.post("/read-all")
def mark_all_read(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    updated = notification_service.mark_all_as_read(db, principal.id, principal.user_type)
    return {"success": True, "data": {"updated": updated}}


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    if not notification_service.mark_as_read(db, notification_id, principal.id):
        raise NotFoundError("Unread notification", notification_id)
    return {"success": True, "message": "Notification marked as read"}


@router.delete("/{notification_id}")
def dismiss(
    notification_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    if not notification_service.delete_notification(db, notification_id, principal.id):
        raise NotFoundError("Notification", notification_id)
    return {"success": True, "message": "Notification deleted"}


# ============================================================================
# Admin
# ============================================================================

@router.post("/", status_code=201)
def create_notification(
    payload: NotificationCreate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    notification = notification_service.create_notification(
        db,
        payload.user_id,
        payload.user_type,
        payload.notification_type,
        payload.title,
        payload.message,
        case_id=payload.case_id,
    )
    return {"success": True, "data": notification_service.notification_to_api(notification)}


@router.post("/bulk", status_code=201)
def create_bulk(
    payload: BulkNotificationCreate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    created = notification_service.create_bulk_notifications(db, payload.notifications)
    return {"success": True, "data": {"created": created}}


@router.get("/recent")
def recent(
    limit: int = Query(50, ge=1, le=100),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": notification_service.get_recent_notifications(db, limit=limit)}


@router.get("/by-type/{notification_type}")
def by_type(
    notification_type: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    data = notification_service.get_notifications_by_type(db, notification_type, limit=limit, offset=offset)
    return {"success": True, "data": data}


@router.get("/statistics")
def statistics(
    days: int = Query(7, ge=1, le=365),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": notification_service.get_notification_statistics(db, days=days)}
