"""
services/scheduler.py

Background scheduler for the maintenance pass and the trial countdown
reminders.

Wired into the FastAPI startup/shutdown events in main.py:

    start_scheduler()
    ...
    shutdown_scheduler()

Disabled with MAINTENANCE_SCHEDULER_ENABLED=false (tests do this). The
reminder job can be switched off alone with TRIAL_REMINDERS_ENABLED=false.
"""

from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from mocktrial.core.config import settings
from mocktrial.db.database import SessionLocal
from mocktrial.services.maintenance_service import run_maintenance
from mocktrial.services.trial_reminder_service import send_trial_reminders

logger = logging.getLogger(__name__)

_scheduler: Optional[AsyncIOScheduler] = None


def start_scheduler() -> None:
    global _scheduler

    if not settings.MAINTENANCE_SCHEDULER_ENABLED:
        logger.info("Maintenance scheduler disabled")
        return

    _scheduler = AsyncIOScheduler(timezone="UTC")
    _scheduler.add_job(
        maintenance_job,
        trigger=IntervalTrigger(minutes=settings.MAINTENANCE_INTERVAL_MINUTES, timezone="UTC"),
        id="maintenance",
        name="Archive and purge old rows",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=600,
    )
    if settings.TRIAL_REMINDERS_ENABLED:
        _scheduler.add_job(
            trial_reminder_job,
            trigger=IntervalTrigger(minutes=settings.TRIAL_REMINDER_INTERVAL_MINUTES, timezone="UTC"),
            id="trial_reminders",
            name="Send trial countdown reminders",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=600,
        )
    _scheduler.start()
    logger.info("Maintenance scheduler started (every %s minutes)", settings.MAINTENANCE_INTERVAL_MINUTES)


def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Maintenance scheduler shut down")
    _scheduler = None


async def maintenance_job() -> None:
    db = SessionLocal()
    try:
        run_maintenance(db)
    except Exception:
        logger.exception("Maintenance job failed")
    finally:
        db.close()


async def trial_reminder_job() -> None:
    db = SessionLocal()
    try:
        summary = send_trial_reminders(db)
        logger.info("Trial reminder run: %s", summary)
    except Exception:
        logger.exception("Trial reminder job failed")
    finally:
        db.close()
