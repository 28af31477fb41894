"""
services/trial_reminder_service.py

Countdown reminders 4, 3, 2 and 1 days before a trial. Each reminder is an
in-app notification to the attorney and every approved juror; a per-case flag
column records that the day's reminder went out so reruns send nothing new.

Run on an interval by services/scheduler.py and on demand via
POST /maintenance/reminders.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.orm import Session

from mocktrial.db.models import (
    AdminApprovalStatus,
    ApplicationStatus,
    AttorneyStatus,
    Case,
    JurorApplication,
)
from mocktrial.services.notification_service import create_bulk_notifications
from mocktrial.utils.helpers import format_date

logger = logging.getLogger(__name__)

REMINDER_DAYS = (4, 3, 2, 1)

_FLAGS = {
    4: "reminder_4_days_sent",
    3: "reminder_3_days_sent",
    2: "reminder_2_days_sent",
    1: "reminder_1_day_sent",
}

REMINDABLE_STATUSES = (AttorneyStatus.war_room, AttorneyStatus.join_trial)


def _plural(days: int) -> str:
    return "day" if days == 1 else "days"


def _due_cases(db: Session, trial_date: date, flag: str):
    return (
        db.query(Case)
        .filter(
            Case.scheduled_date == trial_date,
            Case.admin_approval_status == AdminApprovalStatus.approved,
            Case.is_deleted == False,  # noqa: E712
            Case.attorney_status.in_(REMINDABLE_STATUSES),
            getattr(Case, flag) == False,  # noqa: E712
        )
        .all()
    )


def _remind_case(db: Session, case: Case, days: int) -> int:
    juror_ids = [
        juror_id
        for (juror_id,) in db.query(JurorApplication.juror_id).filter(
            JurorApplication.case_id == case.id,
            JurorApplication.status == ApplicationStatus.approved,
        )
    ]
    when = f"{format_date(case.scheduled_date)} at {case.scheduled_time.strftime('%H:%M')} UTC"
    title = f"Trial in {days} {_plural(days)}"

    items = [{
        "user_id": str(case.attorney_id),
        "user_type": "attorney",
        "notification_type": "trial_reminder",
        "title": title,
        "message": (
            f'Your trial "{case.case_title}" starts in {days} {_plural(days)} ({when}). '
            f"{len(juror_ids)} juror(s) approved."
        ),
        "case_id": str(case.id),
    }]
    items.extend(
        {
            "user_id": str(juror_id),
            "user_type": "juror",
            "notification_type": "trial_reminder",
            "title": title,
            "message": f'The trial "{case.case_title}" you were selected for starts in {days} {_plural(days)} ({when}).',
            "case_id": str(case.id),
        }
        for juror_id in juror_ids
    )
    sent = create_bulk_notifications(db, items)

    setattr(case, _FLAGS[days], True)
    db.commit()
    return sent


def send_trial_reminders(db: Session, today: Optional[date] = None) -> Dict[str, int]:
    """
    Send every reminder due today (UTC). Returns the number of cases
    reminded per day bucket, plus the total notifications written.

    A failure on one case is logged and rolled back; the others still go out.
    """
    today = today or datetime.utcnow().date()
    summary: Dict[str, int] = {f"{days}_days": 0 for days in REMINDER_DAYS}
    summary["notifications"] = 0

    for days in REMINDER_DAYS:
        flag = _FLAGS[days]
        for case in _due_cases(db, today + timedelta(days=days), flag):
            try:
                summary["notifications"] += _remind_case(db, case, days)
            except Exception:
                db.rollback()
                logger.exception("Trial reminder (%s days) failed for case %s", days, case.id)
                continue
            summary[f"{days}_days"] += 1
            logger.info("Sent %s-day trial reminder for case %s", days, case.id)

    return summary
