from __future__ import annotations

import argparse
from datetime import date

from mocktrial.core.logger import logger, setup_logging
from mocktrial.db.database import SessionLocal
from mocktrial.services.trial_reminder_service import send_trial_reminders


def run_trial_reminder_job(today: date | None = None) -> dict:
    db = SessionLocal()
    try:
        summary = send_trial_reminders(db, today=today)
        logger.info("Trial reminder job completed: %s", summary)
        return summary
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Send trial countdown reminders due today")
    parser.add_argument("--today", type=date.fromisoformat, default=None, help="UTC date to treat as today (YYYY-MM-DD)")
    args = parser.parse_args()

    setup_logging()
    summary = run_trial_reminder_job(args.today)
    print(summary)


if __name__ == "__main__":
    main()
