from datetime import date, timedelta

import pytest

from mocktrial.services import admin_calendar_service
from mocktrial.utils.exceptions import BusinessRuleError, SlotAlreadyBlockedError, ValidationError


def next_weekday(weekday: int = 0) -> date:
    """Next date (at least a week out) falling on ``weekday`` (0 = Monday)."""
    d = date.today() + timedelta(days=7)
    while d.weekday() != weekday:
        d += timedelta(days=1)
    return d


def test_block_and_unblock(db):
    monday = next_weekday(0).isoformat()
    slot = admin_calendar_service.block_slot(db, monday, "10:00", reason="Training")
    assert slot.duration_minutes == 480
    assert admin_calendar_service.is_slot_available(db, monday, "10:00:00") is False

    with pytest.raises(SlotAlreadyBlockedError):
        admin_calendar_service.block_slot(db, monday, "10:00")

    assert admin_calendar_service.unblock_slot(db, str(slot.id)) is True
    assert admin_calendar_service.unblock_slot(db, str(slot.id)) is False
    assert admin_calendar_service.is_slot_available(db, monday, "10:00") is True
    # Re-blocking a released slot is allowed
    admin_calendar_service.block_slot(db, monday, "10:00")


def test_weekend_and_after_hours_rejected(db):
    with pytest.raises(BusinessRuleError) as exc:
        admin_calendar_service.block_slot(db, next_weekday(5).isoformat(), "10:00")
    assert exc.value.code == "WEEKEND_SLOT"

    with pytest.raises(BusinessRuleError) as exc:
        admin_calendar_service.block_slot(db, next_weekday(1).isoformat(), "17:00")
    assert exc.value.code == "OUTSIDE_BUSINESS_HOURS"


def test_case_blocks_skip_business_hours(db, make_case):
    case = make_case()
    slot = admin_calendar_service.block_slot_for_case(db, str(case.id), next_weekday(5), "20:00")
    assert slot.case_id == case.id
    assert admin_calendar_service.unblock_slots_for_case(db, str(case.id)) == 1


def test_duration_bounds(db):
    with pytest.raises(ValidationError):
        admin_calendar_service.block_slot(db, next_weekday(2).isoformat(), "09:00", duration_minutes=15)


def test_available_slots_skip_weekends_and_blocks(db):
    monday = next_weekday(0)
    admin_calendar_service.block_slot(db, monday.isoformat(), "09:30")
    slots = admin_calendar_service.get_available_slots(db, monday.isoformat(), (monday + timedelta(days=6)).isoformat())
    days = {s["date"] for s in slots}
    assert len(days) == 5
    monday_times = [s["time"] for s in slots if s["date"] == monday.isoformat()]
    assert "09:30:00" not in monday_times
    assert monday_times[0] == "09:00:00" and monday_times[-1] == "17:00:00"
    assert len(monday_times) == 16


def test_range_limits(db):
    start = next_weekday(0)
    with pytest.raises(BusinessRuleError):
        admin_calendar_service.get_available_slots(db, start.isoformat(), (start - timedelta(days=1)).isoformat())
    with pytest.raises(BusinessRuleError):
        admin_calendar_service.get_available_slots(db, start.isoformat(), (start + timedelta(days=91)).isoformat())
