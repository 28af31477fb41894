"""
services/event_service.py

Append-only case timeline.

Called by:
  - case / application / verdict / payment services (``record_event``)
  - api/v1/endpoints/events.py
  - jobs/maintenance_job.py (archive + purge)

``record_event`` is fire-and-forget: a failed timeline write is logged and
never aborts the operation that triggered it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, insert, literal, select, TIMESTAMP
from sqlalchemy.orm import Session

from mocktrial.db.models import ActorType, Event, EventArchive, EventType
from mocktrial.utils.exceptions import ValidationError
from mocktrial.utils.helpers import enum_value, iso, str_or_none, to_uuid, truncate_text
from mocktrial.utils.validators import clamp

logger = logging.getLogger(__name__)

MIN_ARCHIVE_DAYS = 30
MIN_PURGE_DAYS = 365


def _event_to_api(event: Event) -> Dict[str, Any]:
    return {
        "id": str(event.id),
        "caseId": str_or_none(event.case_id),
        "eventType": enum_value(event.event_type),
        "description": event.description,
        "triggeredBy": str_or_none(event.triggered_by),
        "userType": enum_value(event.user_type),
        "metadata": event.event_metadata,
        "createdAt": iso(event.created_at),
    }


# ============================================================================
# Create
# ============================================================================

def create_event(
    db:           Session,
    case_id:      Optional[str],
    event_type:   str,
    description:  str,
    triggered_by: Optional[str] = None,
    user_type:    str           = "system",
    metadata:     Optional[Dict[str, Any]] = None,
) -> Event:
    errors = []
    if event_type not in EventType._value2member_map_:
        errors.append("Invalid event type")
    if not description or not description.strip():
        errors.append("Description is required")
    if user_type not in ActorType._value2member_map_:
        errors.append("Invalid user type")
    if errors:
        raise ValidationError(errors, prefix="Event validation failed")

    event = Event(
        case_id=to_uuid(case_id),
        event_type=EventType(event_type),
        description=truncate_text(description.strip(), 1000),
        triggered_by=to_uuid(triggered_by),
        user_type=ActorType(user_type),
        event_metadata=metadata,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def record_event(
    db:           Session,
    case_id:      Optional[str],
    event_type:   str,
    description:  str,
    triggered_by: Optional[str] = None,
    user_type:    str           = "system",
    metadata:     Optional[Dict[str, Any]] = None,
) -> Optional[Event]:
    """Side-channel timeline write. Never raises."""
    try:
        return create_event(db, case_id, event_type, description, triggered_by, user_type, metadata)
    except Exception as e:
        db.rollback()
        logger.warning("Event write failed (%s, case=%s): %s", event_type, case_id, e)
        return None


# ============================================================================
# Read
# ============================================================================

def get_events_by_case(db: Session, case_id: str) -> List[Dict[str, Any]]:
    rows = (
        db.query(Event)
        .filter(Event.case_id == to_uuid(case_id))
        .order_by(Event.created_at.asc())
        .all()
    )
    return [_event_to_api(e) for e in rows]


def get_recent_events(db: Session, limit: int = 10) -> List[Dict[str, Any]]:
    limit = clamp(limit, 1, 100, 10)
    rows = db.query(Event).order_by(Event.created_at.desc()).limit(limit).all()
    return [_event_to_api(e) for e in rows]


def get_events_by_user(db: Session, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
    limit = clamp(limit, 1, 100, 50)
    rows = (
        db.query(Event)
        .filter(Event.triggered_by == to_uuid(user_id))
        .order_by(Event.created_at.desc())
        .limit(limit)
        .all()
    )
    return [_event_to_api(e) for e in rows]


def get_events_by_type(db: Session, event_type: str, limit: int = 50) -> List[Dict[str, Any]]:
    if event_type not in EventType._value2member_map_:
        raise ValidationError(["Invalid event type"], prefix="Event validation failed")
    limit = clamp(limit, 1, 100, 50)
    rows = (
        db.query(Event)
        .filter(Event.event_type == EventType(event_type))
        .order_by(Event.created_at.desc())
        .limit(limit)
        .all()
    )
    return [_event_to_api(e) for e in rows]


def get_event_statistics(db: Session, days: int = 7) -> List[Dict[str, Any]]:
    """Per-type counts over the last ``days`` (1..365)."""
    days = clamp(days, 1, 365, 7)
    since = datetime.utcnow() - timedelta(days=days)
    rows = (
        db.query(
            Event.event_type,
            func.count(Event.id),
            func.count(func.distinct(Event.case_id)),
            func.max(Event.created_at),
        )
        .filter(Event.created_at >= since)
        .group_by(Event.event_type)
        .order_by(func.count(Event.id).desc())
        .all()
    )
    return [
        {
            "eventType": enum_value(event_type),
            "count": count,
            "uniqueCases": unique_cases,
            "lastOccurrence": iso(last),
        }
        for event_type, count, unique_cases, last in rows
    ]


def get_event_count_by_date_range(
    db: Session, start: datetime, end: datetime
) -> List[Dict[str, Any]]:
    """Counts grouped by (day, type) between ``start`` and ``end`` inclusive."""
    day = func.date(Event.created_at)
    rows = (
        db.query(day, Event.event_type, func.count(Event.id))
        .filter(Event.created_at >= start, Event.created_at <= end)
        .group_by(day, Event.event_type)
        .order_by(day.desc())
        .all()
    )
    return [
        {"date": str(d), "eventType": enum_value(t), "count": c}
        for d, t, c in rows
    ]


# ============================================================================
# Maintenance
# ============================================================================

def archive_old_events(db: Session, days_to_keep: int = 365) -> int:
    """
    Copy events older than ``days_to_keep`` (min 30) into ``events_archive``
    and remove them from the live table. Returns the number archived, 0 on
    failure.
    """
    days = max(MIN_ARCHIVE_DAYS, int(days_to_keep or 365))
    cutoff = datetime.utcnow() - timedelta(days=days)
    live = Event.__table__
    columns = [c.name for c in live.columns]

    try:
        stmt = insert(EventArchive.__table__).from_select(
            columns + ["archived_at"],
            select(*live.columns, literal(datetime.utcnow(), TIMESTAMP())).where(
                live.c.created_at < cutoff
            ),
        )
        db.execute(stmt)
        archived = (
            db.query(Event)
            .filter(Event.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Event archive failed (days_to_keep=%s)", days)
        return 0

    if archived:
        logger.info("Archived %s events older than %s days", archived, days)
    return archived


def purge_archived_events(db: Session, days_to_keep: int = 365) -> int:
    """Delete archived events older than ``days_to_keep`` (min 365)."""
    days = max(MIN_PURGE_DAYS, int(days_to_keep or 365))
    cutoff = datetime.utcnow() - timedelta(days=days)
    try:
        deleted = (
            db.query(EventArchive)
            .filter(EventArchive.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Archived event purge failed (days_to_keep=%s)", days)
        return 0
    return deleted


def event_to_api(event: Event) -> Dict[str, Any]:
    return _event_to_api(event)
