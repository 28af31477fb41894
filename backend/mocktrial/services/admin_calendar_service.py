"""
services/admin_calendar_service.py

Admin calendar: slots the admin team has blocked, either by hand or because
an approved case occupies them.

Called by:
  - api/v1/endpoints/admin_calendar.py
  - services/case_service.py (reserve on approval, release on reject/delete)

Manual blocks are weekday-only and inside business hours (09:00-17:00).
Case reservations skip both checks. At most one active block per
(date, time); unblocking is a soft release, the row stays for history.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mocktrial.db.models import AdminCalendarSlot, Case
from mocktrial.utils.exceptions import BusinessRuleError, SlotAlreadyBlockedError, ValidationError
from mocktrial.utils.helpers import enum_value, format_date, iso, str_or_none, to_uuid
from mocktrial.utils.validators import format_time, parse_date, parse_time

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 480
MIN_DURATION_MINUTES = 30
MAX_DURATION_MINUTES = 480
MAX_RANGE_DAYS = 90
BUSINESS_HOURS = (9, 17)

# 30-minute grid offered to attorneys, 09:00 through 17:00 inclusive
SLOT_GRID = [time(h, m) for h in range(9, 17) for m in (0, 30)] + [time(17, 0)]


def _slot_to_api(slot: AdminCalendarSlot, case: Optional[Case] = None) -> Dict[str, Any]:
    out = {
        "id": str(slot.id),
        "blockedDate": format_date(slot.blocked_date),
        "blockedTime": format_time(slot.blocked_time),
        "durationMinutes": slot.duration_minutes,
        "caseId": str_or_none(slot.case_id),
        "reason": slot.reason,
        "isActive": slot.is_active,
        "createdAt": iso(slot.created_at),
        "releasedAt": iso(slot.released_at),
    }
    if case is not None:
        out["caseTitle"] = case.case_title
        out["attorneyStatus"] = enum_value(case.attorney_status)
    return out


def _parse_slot(blocked_date, blocked_time) -> tuple[date, time]:
    errors = []
    parsed_date = parsed_time = None
    if not blocked_date or not blocked_time:
        errors.append("Date and time are required")
    else:
        try:
            parsed_date = parse_date(blocked_date)
        except ValueError:
            errors.append("Invalid date format. Use YYYY-MM-DD")
        try:
            parsed_time = parse_time(blocked_time)
        except ValueError:
            errors.append("Invalid time format. Use HH:MM:SS")
    if errors:
        raise ValidationError(errors, prefix="Calendar validation failed")
    return parsed_date, parsed_time


def _parse_range(start_date, end_date) -> tuple[date, date]:
    try:
        start, end = parse_date(start_date), parse_date(end_date)
    except (ValueError, AttributeError) as e:
        raise ValidationError(["Invalid date format. Use YYYY-MM-DD"], prefix="Calendar validation failed") from e
    if start > end:
        raise BusinessRuleError("Start date must be before or equal to end date", code="INVALID_DATE_RANGE")
    return start, end


def is_weekday(d: date) -> bool:
    return d.weekday() < 5


def is_business_hours(t: time) -> bool:
    return BUSINESS_HOURS[0] <= t.hour < BUSINESS_HOURS[1]


# ============================================================================
# Block / unblock
# ============================================================================

def block_slot(
    db:                       Session,
    blocked_date:             Union[str, date],
    blocked_time:             Union[str, time],
    duration_minutes:         Optional[int] = None,
    case_id:                  Optional[str] = None,
    reason:                   Optional[str] = None,
    skip_business_hours_check: bool         = False,
) -> AdminCalendarSlot:
    slot_date, slot_time = _parse_slot(blocked_date, blocked_time)

    if not skip_business_hours_check:
        if not is_weekday(slot_date):
            raise BusinessRuleError("Cannot block slots on weekends", code="WEEKEND_SLOT")
        if not is_business_hours(slot_time):
            raise BusinessRuleError(
                "Can only block slots during business hours (9 AM - 5 PM)", code="OUTSIDE_BUSINESS_HOURS"
            )

    duration = duration_minutes or DEFAULT_DURATION_MINUTES
    if not MIN_DURATION_MINUTES <= duration <= MAX_DURATION_MINUTES:
        raise ValidationError(
            [f"Duration must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes"],
            prefix="Calendar validation failed",
        )

    if not is_slot_available(db, slot_date, slot_time):
        raise SlotAlreadyBlockedError()

    slot = AdminCalendarSlot(
        blocked_date=slot_date,
        blocked_time=slot_time,
        duration_minutes=duration,
        case_id=to_uuid(case_id),
        reason=reason,
        is_active=True,
    )
    db.add(slot)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise SlotAlreadyBlockedError() from e
    db.refresh(slot)

    logger.info(
        "Calendar slot blocked: %s %s (duration=%s, case=%s)",
        slot_date, slot_time, duration, case_id,
    )
    return slot


def unblock_slot(db: Session, slot_id: str) -> bool:
    """Release a block. False when it doesn't exist or is already released."""
    sid = to_uuid(slot_id)
    if sid is None:
        raise ValidationError(["Valid calendar ID is required"], prefix="Calendar validation failed")

    slot = db.query(AdminCalendarSlot).filter(
        AdminCalendarSlot.id == sid,
        AdminCalendarSlot.is_active == True,  # noqa: E712
    ).first()
    if slot is None:
        return False

    slot.is_active = False
    slot.released_at = datetime.utcnow()
    db.commit()
    logger.info("Calendar slot released: %s", sid)
    return True


def block_slot_for_case(db: Session, case_id: str, scheduled_date, scheduled_time) -> AdminCalendarSlot:
    if to_uuid(case_id) is None:
        raise ValidationError(["Valid case ID is required"], prefix="Calendar validation failed")
    return block_slot(
        db,
        scheduled_date,
        scheduled_time,
        duration_minutes=DEFAULT_DURATION_MINUTES,
        case_id=case_id,
        reason="Approved case trial scheduled",
        skip_business_hours_check=True,
    )


def unblock_slots_for_case(db: Session, case_id: str) -> int:
    cid = to_uuid(case_id)
    if cid is None:
        raise ValidationError(["Valid case ID is required"], prefix="Calendar validation failed")
    released = (
        db.query(AdminCalendarSlot)
        .filter(
            AdminCalendarSlot.case_id == cid,
            AdminCalendarSlot.is_active == True,  # noqa: E712
        )
        .update({"is_active": False, "released_at": datetime.utcnow()}, synchronize_session=False)
    )
    db.commit()
    return released


def reserve_slot_for_case(db: Session, case_id: str, scheduled_date, scheduled_time) -> Optional[AdminCalendarSlot]:
    """Side-effect variant used on approval. Never raises."""
    try:
        return block_slot_for_case(db, case_id, scheduled_date, scheduled_time)
    except Exception as e:
        db.rollback()
        logger.warning("Could not reserve calendar slot for case %s: %s", case_id, e)
        return None


def release_slots_for_case(db: Session, case_id: str) -> int:
    """Side-effect variant used on reject/delete. Never raises."""
    try:
        return unblock_slots_for_case(db, case_id)
    except Exception as e:
        db.rollback()
        logger.warning("Could not release calendar slots for case %s: %s", case_id, e)
        return 0


# ============================================================================
# Read
# ============================================================================

def is_slot_available(db: Session, slot_date, slot_time) -> bool:
    slot_date, slot_time = _parse_slot(slot_date, slot_time)
    return (
        db.query(AdminCalendarSlot.id)
        .filter(
            AdminCalendarSlot.blocked_date == slot_date,
            AdminCalendarSlot.blocked_time == slot_time,
            AdminCalendarSlot.is_active == True,  # noqa: E712
        )
        .first()
        is None
    )


def get_blocked_slots(db: Session, start_date, end_date) -> List[Dict[str, Any]]:
    start, end = _parse_range(start_date, end_date)
    rows = (
        db.query(AdminCalendarSlot, Case)
        .outerjoin(Case, AdminCalendarSlot.case_id == Case.id)
        .filter(
            AdminCalendarSlot.blocked_date >= start,
            AdminCalendarSlot.blocked_date <= end,
            AdminCalendarSlot.is_active == True,  # noqa: E712
        )
        .order_by(AdminCalendarSlot.blocked_date, AdminCalendarSlot.blocked_time)
        .all()
    )
    return [_slot_to_api(slot, case) for slot, case in rows]


def get_available_slots(db: Session, start_date, end_date) -> List[Dict[str, Any]]:
    """Free weekday slots on the 30-minute grid, range capped at 90 days."""
    start, end = _parse_range(start_date, end_date)
    if (end - start).days > MAX_RANGE_DAYS:
        raise BusinessRuleError(f"Date range cannot exceed {MAX_RANGE_DAYS} days", code="INVALID_DATE_RANGE")

    blocked = {
        (slot.blocked_date, slot.blocked_time)
        for slot in db.query(AdminCalendarSlot).filter(
            AdminCalendarSlot.blocked_date >= start,
            AdminCalendarSlot.blocked_date <= end,
            AdminCalendarSlot.is_active == True,  # noqa: E712
        )
    }

    available = []
    current = start
    while current <= end:
        if is_weekday(current):
            for slot_time in SLOT_GRID:
                if (current, slot_time) in blocked:
                    continue
                available.append({
                    "date": current.isoformat(),
                    "time": format_time(slot_time),
                    "available": True,
                    "dayOfWeek": current.strftime("%A"),
                })
        current += timedelta(days=1)
    return available


def get_slots_for_case(db: Session, case_id: str) -> List[Dict[str, Any]]:
    rows = (
        db.query(AdminCalendarSlot)
        .filter(AdminCalendarSlot.case_id == to_uuid(case_id))
        .order_by(AdminCalendarSlot.blocked_date, AdminCalendarSlot.blocked_time)
        .all()
    )
    return [_slot_to_api(s) for s in rows]


def slot_to_api(slot: AdminCalendarSlot) -> Dict[str, Any]:
    return _slot_to_api(slot)
