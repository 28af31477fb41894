import pytest

from mocktrial.db.models import JuryChargeStatus
from mocktrial.services import application_service, jury_charge_service, verdict_service
from mocktrial.utils.exceptions import (
    BusinessRuleError,
    ForbiddenError,
    ValidationError,
    VerdictAlreadySubmittedError,
)

QUESTIONS = [
    {"question_text": "Is the defendant liable?", "question_type": "Yes/No"},
    {"question_text": "Damages awarded?", "question_type": "Numeric Response", "min_value": 0, "max_value": 1000000},
]


@pytest.fixture
def seated_juror(db, open_case, make_juror, attorney):
    juror = make_juror()
    application = application_service.create_application(db, str(juror.id), str(open_case.id), [])
    application_service.review_application(db, str(open_case.id), str(application.id), "approved", str(attorney.id))
    return juror


def _release(db, case, admin):
    questions = jury_charge_service.save_questions(db, str(case.id), QUESTIONS)
    jury_charge_service.release_jury_charge(db, str(case.id), str(admin.id))
    return questions


def test_yes_no_gets_default_options(db, open_case):
    questions = jury_charge_service.save_questions(db, str(open_case.id), QUESTIONS)
    assert questions[0]["options"] == ["Yes", "No"]
    db.refresh(open_case)
    assert open_case.jury_charge_status == JuryChargeStatus.in_progress


def test_multiple_choice_needs_two_options(db, open_case):
    with pytest.raises(ValidationError) as exc:
        jury_charge_service.save_questions(
            db, str(open_case.id),
            [{"question_text": "Pick one", "question_type": "Multiple Choice", "options": ["A"]}],
        )
    assert exc.value.errors == ["Question 1: Multiple choice questions must have at least 2 options"]


def test_released_charge_is_locked(db, open_case, admin):
    _release(db, open_case, admin)
    with pytest.raises(ForbiddenError):
        jury_charge_service.save_questions(db, str(open_case.id), QUESTIONS)
    with pytest.raises(BusinessRuleError):
        jury_charge_service.release_jury_charge(db, str(open_case.id), str(admin.id))


def test_release_needs_questions(db, open_case, admin):
    with pytest.raises(BusinessRuleError) as exc:
        jury_charge_service.release_jury_charge(db, str(open_case.id), str(admin.id))
    assert exc.value.code == "JURY_CHARGE_EMPTY"


def test_verdict_waits_for_release(db, open_case, seated_juror):
    with pytest.raises(BusinessRuleError) as exc:
        verdict_service.submit_verdict(db, str(open_case.id), str(seated_juror.id), {"x": "Yes"})
    assert exc.value.code == "JURY_CHARGE_NOT_RELEASED"


def test_verdict_submitted_once(db, open_case, admin, seated_juror):
    questions = _release(db, open_case, admin)
    responses = {questions[0]["id"]: "Yes", questions[1]["id"]: 5000}
    verdict = verdict_service.submit_verdict(db, str(open_case.id), str(seated_juror.id), responses)
    assert verdict.is_submitted

    with pytest.raises(VerdictAlreadySubmittedError):
        verdict_service.submit_verdict(db, str(open_case.id), str(seated_juror.id), responses)

    status = verdict_service.get_submission_status(db, str(open_case.id))
    assert status["submitted"] == 1 and status["pending"] == 0

    results = verdict_service.get_aggregated_results(db, str(open_case.id))
    assert results["totalVerdicts"] == 1
    assert results["questions"][1]["results"]["average"] == 5000


def test_draft_is_promoted_on_submit(db, open_case, admin, seated_juror):
    questions = _release(db, open_case, admin)
    verdict_service.save_draft(db, str(open_case.id), str(seated_juror.id), {questions[0]["id"]: "No"})
    assert verdict_service.load_draft(db, str(open_case.id), str(seated_juror.id)) is not None

    verdict_service.submit_verdict(db, str(open_case.id), str(seated_juror.id), {questions[0]["id"]: "Yes"})
    mine = verdict_service.get_verdict_by_juror(db, str(open_case.id), str(seated_juror.id))
    assert mine.responses == {questions[0]["id"]: "Yes"}


def test_unapproved_juror_cannot_submit(db, open_case, admin, make_juror):
    _release(db, open_case, admin)
    with pytest.raises(ForbiddenError):
        verdict_service.submit_verdict(db, str(open_case.id), str(make_juror().id), {})
