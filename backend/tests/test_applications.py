import pytest

from mocktrial.db.models import ApplicationStatus, Notification
from mocktrial.services import application_service
from mocktrial.utils.exceptions import BusinessRuleError, DuplicateApplicationError


def _apply(db, juror, case):
    return application_service.create_application(db, str(juror.id), str(case.id), voir_dire_1_responses=[])


def test_juror_applies_once(db, open_case, make_juror):
    juror = make_juror()
    application = _apply(db, juror, open_case)
    assert application.status == ApplicationStatus.pending
    assert application_service.has_juror_applied_to_case(db, str(juror.id), str(open_case.id))
    found = application_service.find_by_juror_and_case(db, str(juror.id), str(open_case.id))
    assert found.id == application.id
    assert application_service.get_pending_applications_count(db, str(open_case.id)) == 1

    with pytest.raises(DuplicateApplicationError) as exc:
        _apply(db, juror, open_case)
    assert exc.value.status_code == 409


def test_application_notifies_attorney(db, open_case, make_juror):
    _apply(db, make_juror(name="Pat Lee"), open_case)
    note = db.query(Notification).filter(Notification.user_id == open_case.attorney_id).first()
    assert note is not None
    assert "Pat Lee" in note.message


def test_pending_case_not_open_for_applications(db, make_case, make_juror):
    case = make_case()
    with pytest.raises(BusinessRuleError) as exc:
        _apply(db, make_juror(), case)
    assert exc.value.code == "CASE_NOT_OPEN"


def test_review_reports_progress(db, open_case, make_juror, attorney):
    application = _apply(db, make_juror(), open_case)
    result = application_service.review_application(
        db, str(open_case.id), str(application.id), "approved", str(attorney.id)
    )
    assert result["approvedCount"] == 1
    assert result["requiredJurors"] == 6
    assert result["canProceedToTrial"] is False

    with pytest.raises(BusinessRuleError) as exc:
        application_service.review_application(
            db, str(open_case.id), str(application.id), "rejected", str(attorney.id)
        )
    assert exc.value.code == "ALREADY_REVIEWED"


def test_review_stops_at_capacity(db, open_case, make_juror, attorney):
    applications = [_apply(db, make_juror(), open_case) for _ in range(7)]
    for application in applications[:6]:
        application_service.review_application(
            db, str(open_case.id), str(application.id), "approved", str(attorney.id)
        )
    with pytest.raises(BusinessRuleError) as exc:
        application_service.review_application(
            db, str(open_case.id), str(applications[6].id), "approved", str(attorney.id)
        )
    assert exc.value.code == "CASE_FULL"


def test_batch_approve_fills_remaining_seats_oldest_first(db, open_case, make_juror, attorney):
    applications = [_apply(db, make_juror(), open_case) for _ in range(8)]
    approved = application_service.batch_approve_applications(
        db, [str(a.id) for a in applications], str(attorney.id)
    )
    assert approved == 6
    stats = application_service.get_application_stats_by_case(db, str(open_case.id))
    assert stats["approved"] == 6
    assert stats["pending"] == 2


def test_batch_reject(db, open_case, make_juror, attorney):
    applications = [_apply(db, make_juror(), open_case) for _ in range(2)]
    rejected = application_service.batch_reject_applications(
        db, [str(a.id) for a in applications], str(attorney.id), comments="Conflict of interest"
    )
    assert rejected == 2


def test_withdraw_only_own_pending(db, open_case, make_juror):
    juror, other = make_juror(), make_juror()
    application = _apply(db, juror, open_case)
    assert application_service.withdraw_application(db, str(application.id), str(other.id)) is False
    assert application_service.withdraw_application(db, str(application.id), str(juror.id)) is True
    assert application_service.withdraw_application(db, str(application.id), str(juror.id)) is False


def test_batch_cap_applies_before_bad_ids_are_dropped(db, open_case, make_juror, attorney):
    valid = [str(_apply(db, make_juror(), open_case).id) for _ in range(2)]
    ids = valid + ["not-a-uuid"] * 49
    assert len(ids) == 51
    with pytest.raises(BusinessRuleError) as exc:
        application_service.batch_approve_applications(db, ids, str(attorney.id))
    assert exc.value.code == "BATCH_TOO_LARGE"
    assert application_service.get_application_stats_by_case(db, str(open_case.id))["approved"] == 0

    with pytest.raises(BusinessRuleError) as exc:
        application_service.batch_reject_applications(db, ids, str(attorney.id))
    assert exc.value.code == "BATCH_TOO_LARGE"
