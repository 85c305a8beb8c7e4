from dotenv import load_dotenv
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

load_dotenv(".env")

import argparse
import json
import logging
import signal
from dataclasses import asdict
from datetime import date

from app.core.database import Base, SessionLocal, engine
from app.core.settings import settings, today_in_app_timezone
from app.models import activity_log, category, email_log, notification, profile, reminder, subscription, subscription_history  # noqa: F401
from app.services.dispatch import process_queued_emails, run_daily_dispatch
from app.services.email import build_sender


_stop_requested = False


def _request_stop(signum, frame) -> None:
    global _stop_requested
    _stop_requested = True


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the daily subscription reminder sweep.")
    parser.add_argument("--today", type=date.fromisoformat, default=None, help="ISO date to evaluate (default: today)")
    parser.add_argument("--process-queue", action="store_true", help="also send previously queued emails")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    signal.signal(signal.SIGTERM, _request_stop)
    signal.signal(signal.SIGINT, _request_stop)

    if settings.db_auto_create:
        Base.metadata.create_all(bind=engine)

    sender = build_sender()
    db = SessionLocal()
    try:
        summary = run_daily_dispatch(
            db,
            args.today or today_in_app_timezone(),
            sender,
            should_stop=lambda: _stop_requested,
        )
        out = {"dispatch": asdict(summary)}
        if args.process_queue and sender is not None and not _stop_requested:
            out["queue"] = asdict(process_queued_emails(db, sender))
    finally:
        db.close()

    print(json.dumps(out, default=str, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
