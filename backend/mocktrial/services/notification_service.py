"""
services/notification_service.py

In-app notifications for attorneys, jurors and admins.

Notifications are never hard-deleted while live: dismissing one or letting it
age out moves it into ``notifications_archive``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import TIMESTAMP, case, func, insert, literal, select
from sqlalchemy.orm import Session

from mocktrial.db.models import Notification, NotificationArchive, NotificationType, UserType
from mocktrial.utils.exceptions import ValidationError
from mocktrial.utils.helpers import enum_value, iso, str_or_none, to_uuid
from mocktrial.utils.validators import clamp

logger = logging.getLogger(__name__)

MIN_ARCHIVE_DAYS = 30
MIN_PURGE_DAYS = 90


def _notification_to_api(n: Notification) -> Dict[str, Any]:
    return {
        "id": str(n.id),
        "userId": str(n.user_id),
        "userType": enum_value(n.user_type),
        "caseId": str_or_none(n.case_id),
        "type": enum_value(n.notification_type),
        "title": n.title,
        "message": n.message,
        "isRead": n.is_read,
        "readAt": iso(n.read_at),
        "createdAt": iso(n.created_at),
    }


def _validate(user_id, user_type, notification_type, title, message) -> None:
    errors = []
    if to_uuid(user_id) is None:
        errors.append("Valid user ID is required")
    if user_type not in UserType._value2member_map_:
        errors.append("Invalid user type. Must be one of: attorney, juror, admin")
    if notification_type not in NotificationType._value2member_map_:
        errors.append("Notification type is required")
    if not title or not str(title).strip():
        errors.append("Title is required")
    if not message or not str(message).strip():
        errors.append("Message is required")
    if errors:
        raise ValidationError(errors, prefix="Notification validation failed")


def _build(user_id, user_type, notification_type, title, message, case_id=None) -> Notification:
    _validate(user_id, user_type, notification_type, title, message)
    return Notification(
        user_id=to_uuid(user_id),
        user_type=UserType(user_type),
        case_id=to_uuid(case_id),
        notification_type=NotificationType(notification_type),
        title=str(title).strip(),
        message=str(message).strip(),
    )


# ============================================================================
# Create
# ============================================================================

def create_notification(
    db:                Session,
    user_id:           str,
    user_type:         str,
    notification_type: str,
    title:             str,
    message:           str,
    case_id:           Optional[str] = None,
) -> Notification:
    notification = _build(user_id, user_type, notification_type, title, message, case_id)
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def notify(db: Session, **kwargs) -> Optional[Notification]:
    """Fire-and-forget notification used as a side effect. Never raises."""
    try:
        return create_notification(db, **kwargs)
    except Exception as e:
        db.rollback()
        logger.warning("Notification write failed (%s): %s", kwargs.get("notification_type"), e)
        return None


def create_bulk_notifications(db: Session, items: List[Dict[str, Any]]) -> int:
    """Insert many notifications in one commit; any invalid item rejects the batch."""
    if not items:
        raise ValidationError(["Valid notification list is required"], prefix="Notification validation failed")

    rows = [
        _build(
            item.get("user_id"),
            item.get("user_type"),
            item.get("notification_type"),
            item.get("title"),
            item.get("message"),
            item.get("case_id"),
        )
        for item in items
    ]
    db.add_all(rows)
    db.commit()
    logger.info("Created %s notifications in bulk", len(rows))
    return len(rows)


# ============================================================================
# Read
# ============================================================================

def get_notifications_for_user(
    db:          Session,
    user_id:     str,
    user_type:   str,
    unread_only: bool = False,
    limit:       int  = 50,
    offset:      int  = 0,
) -> List[Dict[str, Any]]:
    limit = clamp(limit, 1, 100, 50)
    offset = max(0, int(offset or 0))
    query = db.query(Notification).filter(
        Notification.user_id == to_uuid(user_id),
        Notification.user_type == UserType(user_type),
    )
    if unread_only:
        query = query.filter(Notification.is_read == False)  # noqa: E712
    rows = query.order_by(Notification.created_at.desc()).offset(offset).limit(limit).all()
    return [_notification_to_api(n) for n in rows]


def get_unread_count(db: Session, user_id: str, user_type: str) -> int:
    return (
        db.query(func.count(Notification.id))
        .filter(
            Notification.user_id == to_uuid(user_id),
            Notification.user_type == UserType(user_type),
            Notification.is_read == False,  # noqa: E712
        )
        .scalar()
        or 0
    )


def get_notifications_by_type(
    db: Session, notification_type: str, limit: int = 20, offset: int = 0
) -> List[Dict[str, Any]]:
    if notification_type not in NotificationType._value2member_map_:
        raise ValidationError(["Valid notification type is required"], prefix="Notification validation failed")
    limit = clamp(limit, 1, 100, 20)
    rows = (
        db.query(Notification)
        .filter(Notification.notification_type == NotificationType(notification_type))
        .order_by(Notification.created_at.desc())
        .offset(max(0, int(offset or 0)))
        .limit(limit)
        .all()
    )
    return [_notification_to_api(n) for n in rows]


def get_recent_notifications(db: Session, limit: int = 50) -> List[Dict[str, Any]]:
    limit = clamp(limit, 1, 100, 50)
    rows = db.query(Notification).order_by(Notification.created_at.desc()).limit(limit).all()
    return [_notification_to_api(n) for n in rows]


def get_notification_statistics(db: Session, days: int = 7) -> List[Dict[str, Any]]:
    days = clamp(days, 1, 365, 7)
    since = datetime.utcnow() - timedelta(days=days)
    unread = func.sum(case((Notification.is_read == False, 1), else_=0))  # noqa: E712
    rows = (
        db.query(
            Notification.notification_type,
            Notification.user_type,
            func.count(Notification.id),
            unread,
        )
        .filter(Notification.created_at >= since)
        .group_by(Notification.notification_type, Notification.user_type)
        .all()
    )
    return [
        {
            "type": enum_value(t),
            "userType": enum_value(u),
            "total": total,
            "unread": int(unread_count or 0),
        }
        for t, u, total, unread_count in rows
    ]


# ============================================================================
# Update
# ============================================================================

def mark_as_read(db: Session, notification_id: str, user_id: str) -> bool:
    """Only the owner can mark a notification read."""
    updated = (
        db.query(Notification)
        .filter(
            Notification.id == to_uuid(notification_id),
            Notification.user_id == to_uuid(user_id),
            Notification.is_read == False,  # noqa: E712
        )
        .update({"is_read": True, "read_at": datetime.utcnow()}, synchronize_session=False)
    )
    db.commit()
    return updated > 0


def mark_all_as_read(db: Session, user_id: str, user_type: str) -> int:
    updated = (
        db.query(Notification)
        .filter(
            Notification.user_id == to_uuid(user_id),
            Notification.user_type == UserType(user_type),
            Notification.is_read == False,  # noqa: E712
        )
        .update({"is_read": True, "read_at": datetime.utcnow()}, synchronize_session=False)
    )
    db.commit()
    return updated


# ============================================================================
# Archive
# ============================================================================

def _archive_where(db: Session, *criteria) -> int:
    live = Notification.__table__
    columns = [c.name for c in live.columns]
    db.execute(
        insert(NotificationArchive.__table__).from_select(
            columns + ["archived_at"],
            select(*live.columns, literal(datetime.utcnow(), TIMESTAMP())).where(*criteria),
        )
    )
    return db.query(Notification).filter(*criteria).delete(synchronize_session=False)


def delete_notification(db: Session, notification_id: str, user_id: str) -> bool:
    """Dismiss a notification: moved to the archive, owner only."""
    nid, uid = to_uuid(notification_id), to_uuid(user_id)
    if nid is None or uid is None:
        return False
    moved = _archive_where(db, Notification.id == nid, Notification.user_id == uid)
    db.commit()
    return moved > 0


def archive_old_notifications(db: Session, days_to_keep: int = 90) -> int:
    """
    Move *read* notifications older than ``days_to_keep`` (min 30) into the
    archive. Unread rows stay live regardless of age. Returns 0 on failure.
    """
    days = max(MIN_ARCHIVE_DAYS, int(days_to_keep or 90))
    cutoff = datetime.utcnow() - timedelta(days=days)
    try:
        archived = _archive_where(
            db,
            Notification.created_at < cutoff,
            Notification.is_read == True,  # noqa: E712
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Notification archive failed (days_to_keep=%s)", days)
        return 0

    if archived:
        logger.info("Archived %s read notifications older than %s days", archived, days)
    return archived


def purge_archived_notifications(db: Session, days_to_keep: int = 90) -> int:
    """Delete archive rows older than ``days_to_keep`` (min 90)."""
    days = max(MIN_PURGE_DAYS, int(days_to_keep or 90))
    cutoff = datetime.utcnow() - timedelta(days=days)
    try:
        deleted = (
            db.query(NotificationArchive)
            .filter(NotificationArchive.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Archived notification purge failed (days_to_keep=%s)", days)
        return 0
    return deleted


def notification_to_api(notification: Notification) -> Dict[str, Any]:
    return _notification_to_api(notification)
