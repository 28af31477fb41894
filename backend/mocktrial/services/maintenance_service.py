"""
services/maintenance_service.py

Housekeeping pass: archive old notifications and events, purge old archive
rows, drop spent password-reset tokens and stale login attempts.

Run by:
  - services/scheduler.py (interval job)
  - jobs/maintenance_job.py (cron / manual)
  - POST /api/v1/maintenance/run (admin)

Every step swallows its own failure and reports 0, so one bad table never
stops the rest of the pass.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from mocktrial.core.config import settings
from mocktrial.services import event_service, login_attempt_service, notification_service, password_reset_service

logger = logging.getLogger(__name__)


def run_maintenance(
    db:                        Session,
    notification_archive_days: Optional[int] = None,
    event_archive_days:        Optional[int] = None,
) -> Dict[str, int]:
    notification_days = notification_archive_days or settings.NOTIFICATION_ARCHIVE_DAYS
    event_days = event_archive_days or settings.EVENT_ARCHIVE_DAYS

    summary = {
        "notificationsArchived": notification_service.archive_old_notifications(db, notification_days),
        "notificationsPurged": notification_service.purge_archived_notifications(db, notification_days),
        "eventsArchived": event_service.archive_old_events(db, event_days),
        "eventsPurged": event_service.purge_archived_events(db, event_days),
        "resetTokensRemoved": password_reset_service.cleanup_expired_tokens(db),
        "loginAttemptsRemoved": login_attempt_service.cleanup_old_attempts(db),
    }
    logger.info("Maintenance pass completed: %s", summary)
    return summary
