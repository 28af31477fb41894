from datetime import timedelta

import pytest

from mocktrial.db.models import ApplicationStatus, JurorApplication
from mocktrial.services import application_service, case_service
from mocktrial.utils.timezones import local_today


@pytest.fixture
def approve_case(db, admin):
    def _approve(case):
        case_service.update_case_status(
            db, str(case.id), admin_approval_status="approved", admin_id=str(admin.id)
        )
        db.refresh(case)
        return case
    return _approve


def _ids(cases):
    return {c["id"] for c in cases}


def _seat(db, case, juror, status=ApplicationStatus.approved):
    db.add(JurorApplication(juror_id=juror.id, case_id=case.id, status=status))
    db.commit()


def test_county_and_state_match_ignores_case_and_whitespace(db, open_case):
    found = case_service.get_available_cases_for_jurors(db, " harris ", state=" tx ")
    assert _ids(found) == {str(open_case.id)}

    assert case_service.get_available_cases_for_jurors(db, "HARRIS", state="Tx")
    assert case_service.get_available_cases_for_jurors(db, "Dallas", state="TX") == []
    assert case_service.get_available_cases_for_jurors(db, "Harris", state="CA") == []


def test_cases_already_applied_to_are_hidden(db, open_case, make_juror):
    juror, other = make_juror(), make_juror()
    application_service.create_application(db, str(juror.id), str(open_case.id), voir_dire_1_responses=[])

    assert case_service.get_available_cases_for_jurors(db, "Harris", juror_id=str(juror.id)) == []
    still_open = case_service.get_available_cases_for_jurors(db, "Harris", juror_id=str(other.id))
    assert _ids(still_open) == {str(open_case.id)}


def test_case_with_seven_approved_jurors_is_full(db, make_case, approve_case, make_juror):
    full = approve_case(make_case(required_jurors=8))
    nearly = approve_case(make_case(required_jurors=8, scheduled_time="11:00", case_title="Doe v. Roe"))
    for _ in range(7):
        _seat(db, full, make_juror())
    for _ in range(6):
        _seat(db, nearly, make_juror())
    # Pending applications don't count toward the cap
    _seat(db, nearly, make_juror(), status=ApplicationStatus.pending)

    found = case_service.get_available_cases_for_jurors(db, "Harris")
    assert _ids(found) == {str(nearly.id)}
    assert found[0]["approvedJurors"] == 6
    assert found[0]["pendingApplications"] == 1


def test_trial_day_already_past_locally_is_hidden(db, open_case, make_case, approve_case):
    today_case = approve_case(make_case(scheduled_time="11:00", case_title="Today v. Tomorrow"))
    today_case.scheduled_date = local_today("TX")
    open_case.scheduled_date = local_today("TX") - timedelta(days=2)
    db.commit()

    found = case_service.get_available_cases_for_jurors(db, "Harris")
    assert _ids(found) == {str(today_case.id)}


def test_soft_deleted_case_disappears_from_listings(db, open_case, attorney):
    case_id = str(open_case.id)
    assert case_id in _ids(case_service.get_all_cases(db)["cases"])

    assert case_service.soft_delete_case(db, case_id) is True

    assert case_id not in _ids(case_service.get_all_cases(db)["cases"])
    assert case_id not in _ids(case_service.get_cases_by_attorney(db, str(attorney.id)))
    assert case_id not in _ids(case_service.get_available_cases_for_jurors(db, "Harris"))

    detail = case_service.get_case_detail(db, case_id)
    assert detail is not None
    assert detail["isDeleted"] is True
