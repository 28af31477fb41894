from datetime import date, timedelta

from conftest import auth_headers
from mocktrial.db.models import ApplicationStatus, JurorApplication, Notification, NotificationType
from mocktrial.services import trial_reminder_service

TODAY = date(2030, 3, 10)


def _reminders(db):
    return db.query(Notification).filter(Notification.notification_type == NotificationType.trial_reminder).all()


def test_three_day_reminder_goes_to_attorney_and_approved_jurors(db, open_case, make_juror):
    seated, waiting = make_juror(), make_juror()
    db.add(JurorApplication(juror_id=seated.id, case_id=open_case.id, status=ApplicationStatus.approved))
    db.add(JurorApplication(juror_id=waiting.id, case_id=open_case.id, status=ApplicationStatus.pending))
    open_case.scheduled_date = TODAY + timedelta(days=3)
    db.commit()

    summary = trial_reminder_service.send_trial_reminders(db, today=TODAY)
    assert summary["3_days"] == 1
    assert summary["notifications"] == 2

    recipients = {n.user_id for n in _reminders(db)}
    assert recipients == {open_case.attorney_id, seated.id}
    assert all(n.title == "Trial in 3 days" for n in _reminders(db))

    db.refresh(open_case)
    assert open_case.reminder_3_days_sent is True
    assert open_case.reminder_4_days_sent is False

    again = trial_reminder_service.send_trial_reminders(db, today=TODAY)
    assert again["3_days"] == 0
    assert len(_reminders(db)) == 2


def test_each_countdown_day_sent_once(db, open_case):
    open_case.scheduled_date = TODAY + timedelta(days=4)
    db.commit()
    for offset in range(5):
        trial_reminder_service.send_trial_reminders(db, today=TODAY + timedelta(days=offset))
    titles = sorted(n.title for n in _reminders(db))
    assert titles == ["Trial in 1 day", "Trial in 2 days", "Trial in 3 days", "Trial in 4 days"]


def test_cases_outside_the_window_or_not_approved_are_skipped(db, open_case, make_case):
    open_case.scheduled_date = TODAY + timedelta(days=6)
    pending = make_case(scheduled_time="11:00", case_title="Pending v. Case")
    pending.scheduled_date = TODAY + timedelta(days=2)
    db.commit()

    summary = trial_reminder_service.send_trial_reminders(db, today=TODAY)
    assert summary["notifications"] == 0
    assert _reminders(db) == []


async def test_admin_can_trigger_reminders(client, db, open_case, admin):
    open_case.scheduled_date = TODAY + timedelta(days=1)
    db.commit()
    response = await client.post(
        "/api/v1/maintenance/reminders",
        params={"today": TODAY.isoformat()},
        headers=auth_headers(admin.id, "admin"),
    )
    assert response.status_code == 200
    assert response.json()["data"]["1_days"] == 1
