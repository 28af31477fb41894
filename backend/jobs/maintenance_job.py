from __future__ import annotations

import argparse

from mocktrial.core.logger import logger, setup_logging
from mocktrial.db.database import SessionLocal
from mocktrial.services.maintenance_service import run_maintenance


def run_maintenance_job(notification_days: int | None = None, event_days: int | None = None) -> dict:
    db = SessionLocal()
    try:
        summary = run_maintenance(
            db,
            notification_archive_days=notification_days,
            event_archive_days=event_days,
        )
        logger.info("Maintenance job completed: %s", summary)
        return summary
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Archive and purge old notifications, events and tokens")
    parser.add_argument("--notification-days", type=int, default=None, help="Keep read notifications this many days")
    parser.add_argument("--event-days", type=int, default=None, help="Keep events this many days")
    args = parser.parse_args()

    setup_logging()
    summary = run_maintenance_job(args.notification_days, args.event_days)
    print(summary)


if __name__ == "__main__":
    main()
