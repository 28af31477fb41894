import uuid
from datetime import datetime

import pytest

from conftest import future_date
from mocktrial.db.models import AdminApprovalStatus, AdminCalendarSlot, AttorneyStatus
from mocktrial.services import admin_calendar_service, case_service
from mocktrial.services.case_lifecycle import (
    AdminDecision,
    CaseState,
    DecisionKind,
    apply_admin_decision,
    check_transition,
)
from mocktrial.utils.exceptions import BusinessRuleError, SlotUnavailableError, ValidationError

NOW = datetime(2025, 3, 1, 12, 0)


def test_approval_opens_war_room():
    admin_id = uuid.uuid4()
    state = CaseState(AttorneyStatus.pending, AdminApprovalStatus.pending)
    result = apply_admin_decision(state, AdminDecision(DecisionKind.approve, admin_id, "Looks good"), NOW)
    assert result.admin_approval_status == AdminApprovalStatus.approved
    assert result.attorney_status == AttorneyStatus.war_room
    assert result.approved_at == NOW
    assert result.approved_by == admin_id
    assert result.admin_comments == "Looks good"


def test_rejection_keeps_attorney_status_and_comments():
    state = CaseState(AttorneyStatus.pending, AdminApprovalStatus.pending, admin_comments="old")
    result = apply_admin_decision(state, AdminDecision(DecisionKind.reject), NOW)
    assert result.admin_approval_status == AdminApprovalStatus.rejected
    assert result.attorney_status == AttorneyStatus.pending
    assert result.rejected_at == NOW
    assert result.admin_comments == "old"


@pytest.mark.parametrize(
    "current,target,valid",
    [
        (AttorneyStatus.pending, AttorneyStatus.cancelled, True),
        (AttorneyStatus.pending, AttorneyStatus.join_trial, False),
        (AttorneyStatus.war_room, AttorneyStatus.join_trial, True),
        (AttorneyStatus.join_trial, AttorneyStatus.completed, True),
        (AttorneyStatus.completed, AttorneyStatus.war_room, False),
    ],
)
def test_transition_table(current, target, valid):
    result = check_transition(current, target, AdminApprovalStatus.approved, 7, 7)
    assert result.valid is valid


def test_join_trial_needs_enough_jurors():
    result = check_transition(AttorneyStatus.war_room, AttorneyStatus.join_trial, AdminApprovalStatus.approved, 3, 7)
    assert result.valid is False
    assert result.message == "Need 7 jurors, only 3 approved"


def test_join_trial_needs_approval():
    result = check_transition(AttorneyStatus.war_room, AttorneyStatus.join_trial, AdminApprovalStatus.pending, 7, 7)
    assert result.message == "Case must be approved by admin"


def test_admin_approval_persists_and_reserves_calendar(db, make_case, admin):
    case = make_case()
    updated = case_service.update_case_status(
        db, str(case.id), admin_approval_status="approved", admin_id=str(admin.id)
    )
    assert updated.attorney_status == AttorneyStatus.war_room
    assert updated.approved_by == admin.id
    slots = db.query(AdminCalendarSlot).filter(AdminCalendarSlot.case_id == case.id).all()
    assert len(slots) == 1 and slots[0].is_active


def test_status_update_needs_a_field(db, make_case):
    case = make_case()
    with pytest.raises(ValidationError):
        case_service.update_case_status(db, str(case.id))


def test_transition_refused_without_jurors(db, open_case):
    with pytest.raises(BusinessRuleError) as exc:
        case_service.transition_case_status(db, str(open_case.id), "join_trial")
    assert exc.value.code == "INVALID_TRANSITION"


def test_reschedule_confirm_moves_and_approves_once(db, make_case, admin):
    case = make_case()
    slots = [
        {"date": future_date(40), "time": "10:00"},
        {"date": future_date(41), "time": "11:00"},
        {"date": future_date(42), "time": "12:00"},
    ]
    case_service.request_reschedule(db, str(case.id), str(admin.id), slots)
    assert case_service.confirm_reschedule(db, str(case.id), slots[1]) is True
    db.refresh(case)
    assert case.scheduled_date.isoformat() == future_date(41)
    assert case.reschedule_required is False
    assert case.attorney_status == AttorneyStatus.war_room
    assert case_service.confirm_reschedule(db, str(case.id), slots[2]) is False


def test_reschedule_needs_zero_or_three_slots(db, make_case, admin):
    case = make_case()
    with pytest.raises(BusinessRuleError):
        case_service.request_reschedule(db, str(case.id), str(admin.id), [{"date": future_date(40), "time": "10:00"}])


def test_reschedule_confirm_rejects_taken_slot(db, make_case, admin):
    make_case(scheduled_time="15:00")
    case = make_case(scheduled_time="16:00")
    case_service.request_reschedule(db, str(case.id), str(admin.id), [])
    with pytest.raises(SlotUnavailableError):
        case_service.confirm_reschedule(db, str(case.id), {"date": future_date(), "time": "15:00"})


def test_calendar_released_when_case_deleted(db, open_case):
    case_service.soft_delete_case(db, str(open_case.id))
    assert admin_calendar_service.get_slots_for_case(db, str(open_case.id))[0]["isActive"] is False
