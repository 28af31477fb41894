from datetime import datetime, timedelta

import pytest

from mocktrial.db.models import Notification, NotificationArchive
from mocktrial.services import notification_service
from mocktrial.utils.exceptions import ValidationError


def _notify(db, user_id, **kwargs):
    return notification_service.create_notification(
        db, str(user_id), "attorney", kwargs.pop("notification_type", "case_approved"),
        "Title", "Message", **kwargs,
    )


def test_unread_count_and_mark_read(db, attorney):
    first = _notify(db, attorney.id)
    _notify(db, attorney.id)
    assert notification_service.get_unread_count(db, str(attorney.id), "attorney") == 2

    assert notification_service.mark_as_read(db, str(first.id), str(attorney.id)) is True
    assert notification_service.mark_as_read(db, str(first.id), str(attorney.id)) is False
    assert notification_service.mark_all_as_read(db, str(attorney.id), "attorney") == 1
    assert notification_service.get_unread_count(db, str(attorney.id), "attorney") == 0


def test_only_owner_marks_read(db, attorney, admin):
    note = _notify(db, attorney.id)
    assert notification_service.mark_as_read(db, str(note.id), str(admin.id)) is False


def test_invalid_type_rejected(db, attorney):
    with pytest.raises(ValidationError):
        _notify(db, attorney.id, notification_type="gossip")


def test_archive_moves_only_old_read_rows(db, attorney):
    old_read = _notify(db, attorney.id)
    old_unread = _notify(db, attorney.id)
    fresh_read = _notify(db, attorney.id)
    for note in (old_read, old_unread):
        note.created_at = datetime.utcnow() - timedelta(days=120)
    old_read.is_read = True
    fresh_read.is_read = True
    db.commit()
    old_read_id, kept_ids = old_read.id, {old_unread.id, fresh_read.id}

    assert notification_service.archive_old_notifications(db, 90) == 1

    live_ids = {n.id for n in db.query(Notification).all()}
    assert old_read_id not in live_ids
    assert kept_ids <= live_ids
    archived = db.query(NotificationArchive).one()
    assert archived.id == old_read_id
    assert archived.archived_at is not None


def test_archive_window_has_a_floor(db, attorney):
    note = _notify(db, attorney.id)
    note.created_at = datetime.utcnow() - timedelta(days=10)
    note.is_read = True
    db.commit()
    assert notification_service.archive_old_notifications(db, 1) == 0


def test_dismiss_archives(db, attorney):
    note = _notify(db, attorney.id)
    assert notification_service.delete_notification(db, str(note.id), str(attorney.id)) is True
    assert db.query(Notification).count() == 0
    assert db.query(NotificationArchive).count() == 1
