#!/usr/bin/env python3
"""
run_sweep.py - Deliver due note deadline reminders once.

Meant to be run from cron (hourly, like the host's scheduled trigger).

Usage examples:
  python scripts/run_sweep.py
  python scripts/run_sweep.py --env-file /path/to/.env
  python scripts/run_sweep.py --max-attempts 5 --json

Flags:
  --env-file PATH
    Load environment variables from PATH before connecting (optional).
  --max-attempts N
    Override NOTES_REMINDER_MAX_ATTEMPTS for this run.
  --json
    Print the sweep counters as JSON.

Exit codes: 0 on a completed pass, 1 when delivery is not configured,
2 when the due set could not be loaded.
"""
import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

BACKEND_DIR = Path(__file__).resolve().parents[1] / "backend"
sys.path.append(str(BACKEND_DIR))

from app.core.logging import setup_logging  # noqa: E402
from app.db import OpenSession  # noqa: E402
from app.modules.notifications.delivery import ResolveDeliveryChannel  # noqa: E402
from app.modules.notifications.sweep_service import RunSweep  # noqa: E402

logger = logging.getLogger("notifications.sweep.cli")


def ParseArgs(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Deliver due note deadline reminders.")
    parser.add_argument("--env-file", help="Path to a .env file to load first.")
    parser.add_argument("--max-attempts", type=int, help="Attempts before a reminder is marked failed.")
    parser.add_argument("--json", action="store_true", help="Print counters as JSON.")
    return parser.parse_args(argv)


def Main(argv=None) -> int:
    args = ParseArgs(argv)
    if args.env_file:
        if not load_dotenv(args.env_file, override=True):
            print(f"Env file not found or empty: {args.env_file}", file=sys.stderr)
            return 1
    setup_logging()

    channel = ResolveDeliveryChannel()
    if channel is None:
        print("Reminder delivery is not configured (TRACKER_BASE_URL and credentials).", file=sys.stderr)
        return 1

    db = OpenSession()
    try:
        result = RunSweep(db, channel, max_attempts=args.max_attempts)
    except SQLAlchemyError:
        logger.exception("sweep aborted: could not load due reminders")
        return 2
    finally:
        db.close()
        channel.Close()

    if args.json:
        print(json.dumps(asdict(result)))
    else:
        print(
            f"total={result.Total} sent={result.Sent} failed={result.Failed} "
            f"abandoned={result.Abandoned} skipped={result.Skipped}"
        )
    return 0


if __name__ == "__main__":
    sys.exit(Main())
