from datetime import date, datetime, time

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import case_payload, future_date
from mocktrial.db.models import Case
from mocktrial.services import case_service
from mocktrial.utils.exceptions import SlotUnavailableError, ValidationError


def test_local_time_rolls_back_a_day_in_utc():
    values = case_service.validate_case_data(
        "attorney",
        case_payload(scheduled_date="2025-01-01", scheduled_time="00:30", timezone_offset=330),
        now=datetime(2024, 12, 1),
    )
    assert values["scheduled_date"] == date(2024, 12, 31)
    assert values["scheduled_time"] == time(19, 0)
    assert values["timezone_offset_minutes"] == 330


def test_offset_taken_from_zone_name_when_not_given():
    data = case_payload(scheduled_date="2025-07-01", scheduled_time="09:00", timezone_name="America/Chicago")
    data.pop("timezone_offset")
    values = case_service.validate_case_data("attorney", data, now=datetime(2025, 6, 1))
    assert values["timezone_offset_minutes"] == -300
    assert values["scheduled_time"] == time(14, 0)


def test_explicit_offset_wins_over_zone_name():
    data = case_payload(
        scheduled_date="2025-07-01", scheduled_time="09:00",
        timezone_name="America/Chicago", timezone_offset=0,
    )
    values = case_service.validate_case_data("attorney", data, now=datetime(2025, 6, 1))
    assert values["scheduled_time"] == time(9, 0)


def test_every_problem_is_reported_at_once():
    with pytest.raises(ValidationError) as exc:
        case_service.validate_case_data("attorney", {"case_type": "Maritime", "case_title": "abc"})
    errors = exc.value.errors
    assert "Invalid case type. Must be 'Civil' or 'Criminal'" in errors
    assert "Case title must be at least 5 characters" in errors
    assert "Scheduled date is required" in errors
    assert "County is required" in errors
    assert exc.value.status_code == 400


def test_past_schedule_rejected():
    with pytest.raises(ValidationError) as exc:
        case_service.validate_case_data(
            "attorney",
            case_payload(scheduled_date="2024-01-01", scheduled_time="10:00"),
            now=datetime(2024, 6, 1),
        )
    assert "Scheduled date/time must be in the future" in exc.value.errors


def test_defaults_applied():
    values = case_service.validate_case_data("attorney", case_payload())
    assert values["required_jurors"] == 7
    assert len(values["voir_dire_1_questions"]) == 7
    assert values["state"] == "TX"


def test_required_jurors_bounds():
    with pytest.raises(ValidationError):
        case_service.validate_case_data("attorney", case_payload(required_jurors=13))


def test_slot_taken_by_pending_case(db, make_case):
    first = make_case()
    availability = case_service.check_slot_availability(db, future_date(), "10:00:00")
    assert availability["available"] is False
    assert availability["conflictingCaseId"] == str(first.id)

    with pytest.raises(SlotUnavailableError) as exc:
        make_case(case_title="Another case title")
    assert exc.value.status_code == 409


def test_hh_mm_and_hh_mm_ss_are_the_same_slot(db, make_case):
    make_case(scheduled_time="14:30")
    assert case_service.check_slot_availability(db, future_date(), "14:30:00")["available"] is False


def test_excluded_case_does_not_conflict_with_itself(db, make_case):
    case = make_case()
    result = case_service.check_slot_availability(db, future_date(), "10:00", exclude_case_id=str(case.id))
    assert result["available"] is True


def test_soft_delete_frees_the_slot(db, make_case):
    case = make_case()
    assert case_service.soft_delete_case(db, str(case.id)) is True
    assert case_service.check_slot_availability(db, future_date(), "10:00")["available"] is True
    # Deleted cases stay readable by id
    assert case_service.get_case(db, str(case.id)) is not None
    assert case_service.soft_delete_case(db, str(case.id)) is False


def test_rejected_case_frees_the_slot(db, make_case, admin):
    case = make_case()
    case_service.update_case_status(db, str(case.id), admin_approval_status="rejected", admin_id=str(admin.id))
    assert case_service.check_slot_availability(db, future_date(), "10:00")["available"] is True


def test_database_enforces_one_active_case_per_slot(db, make_case, attorney):
    existing = make_case()
    db.add(Case(
        attorney_id=attorney.id,
        case_type=existing.case_type,
        case_jurisdiction=existing.case_jurisdiction,
        case_tier=existing.case_tier,
        state="TX",
        county="Harris",
        case_title="Racing submission",
        scheduled_date=existing.scheduled_date,
        scheduled_time=existing.scheduled_time,
    ))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_case_created_pending_pending(make_case):
    case = make_case()
    assert case.attorney_status.value == "pending"
    assert case.admin_approval_status.value == "pending"
    assert case.scheduled_time == time(10, 0)


def test_slot_query_rejects_malformed_input(db):
    with pytest.raises(ValidationError) as exc:
        case_service.check_slot_availability(db, "2025-13-45", "10:00")
    assert exc.value.status_code == 400
    assert "Invalid date format. Use YYYY-MM-DD" in exc.value.errors

    with pytest.raises(ValidationError) as exc:
        case_service.check_slot_availability(db, future_date(), "25:99")
    assert "Invalid time format. Use HH:MM or HH:MM:SS" in exc.value.errors


def test_one_digit_hour_is_zero_padded(db, make_case):
    make_case(scheduled_time="9:00")
    result = case_service.check_slot_availability(db, future_date(), "9:00")
    assert result["available"] is False
    assert case_service.check_slot_availability(db, future_date(), "09:00:00")["available"] is False


def test_moving_a_case_into_the_past_rejected(db, make_case):
    case = make_case()
    with pytest.raises(ValidationError) as exc:
        case_service.update_case_details(db, str(case.id), {"scheduled_date": "2020-01-01"})
    assert "Scheduled date/time must be in the future" in exc.value.errors
    db.refresh(case)
    assert case.scheduled_date.isoformat() == future_date()


def test_moving_a_case_to_another_future_slot(db, make_case):
    case = make_case()
    updated = case_service.update_case_details(
        db, str(case.id), {"scheduled_date": future_date(40), "scheduled_time": "8:30"}
    )
    assert updated.scheduled_date.isoformat() == future_date(40)
    assert updated.scheduled_time == time(8, 30)
