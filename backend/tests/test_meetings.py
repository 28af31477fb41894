import pytest

from mocktrial.services import incident_service, meeting_service, recording_service
from mocktrial.utils.exceptions import ActiveMeetingExistsError, BusinessRuleError


def test_one_open_meeting_per_case(db, open_case):
    meeting = meeting_service.create_meeting(db, str(open_case.id), "thread-1", "room-1")
    with pytest.raises(ActiveMeetingExistsError) as exc:
        meeting_service.create_meeting(db, str(open_case.id), "thread-2", "room-2")
    assert exc.value.status_code == 409

    meeting_service.update_meeting_status(db, str(meeting.id), "ended")
    replacement = meeting_service.create_meeting(db, str(open_case.id), "thread-2", "room-2")
    assert meeting_service.get_meeting_by_case(db, str(open_case.id)).id == replacement.id


def test_participants_join_once_and_leave(db, open_case, make_juror):
    juror = make_juror()
    meeting = meeting_service.create_meeting(db, str(open_case.id), "thread-1", "room-1")
    first = meeting_service.add_participant(db, str(meeting.id), str(juror.id), "juror", "Juror 1")
    again = meeting_service.add_participant(db, str(meeting.id), str(juror.id), "juror", "Juror 1")
    assert first.id == again.id
    assert meeting_service.count_active_participants(db, str(meeting.id)) == 1

    other = make_juror()
    assert meeting_service.remove_participant(db, str(first.id), user_id=str(other.id)) is False
    assert meeting_service.remove_participant(db, str(first.id), user_id=str(juror.id)) is True
    assert meeting_service.count_active_participants(db, str(meeting.id)) == 0


def test_incident_stats(db, open_case, admin):
    meeting = meeting_service.create_meeting(db, str(open_case.id), "thread-1", "room-1")
    incident_service.report_incident(db, str(meeting.id), str(admin.id), "admin", "technical", "Audio dropped")
    incident_service.report_incident(
        db, str(meeting.id), str(admin.id), "admin", "disruptive", "Shouting", severity="high"
    )
    stats = incident_service.get_incident_stats(db, str(meeting.id))
    assert stats["total"] == 2
    assert stats["high"] == 1


def test_single_active_recording(db, open_case, admin):
    meeting = meeting_service.create_meeting(db, str(open_case.id), "thread-1", "room-1")
    recording = recording_service.start_recording(db, str(meeting.id), started_by=str(admin.id))
    assert recording_service.is_recording(db, str(meeting.id)) is True
    with pytest.raises(BusinessRuleError):
        recording_service.start_recording(db, str(meeting.id), started_by=str(admin.id))

    stopped = recording_service.stop_recording(db, str(recording.id), recording_url="https://cdn/rec.mp4")
    assert stopped.stopped_at is not None
    assert stopped.status.value == "ready"
    assert recording_service.is_recording(db, str(meeting.id)) is False
