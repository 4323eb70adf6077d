#!/usr/bin/env python3
"""
One-off helper that sends assignment reminders by SMS.

Designed for automation environments (cron, CI jobs) that run a single cycle
for one phone number or the whole batch of active subscriptions, without
starting the HTTP server.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .core.errors import ConfigurationError, ReminderError
from .core.logging_utils import configure_logging
from .reminder_system import ReminderSystem
from .scheduler import ReminderScheduler
from .schemas import validate_phone


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send Canvas assignment reminders by SMS.")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--all",
        action="store_true",
        help="Run the daily batch for every active subscription.",
    )
    target.add_argument(
        "--phone",
        help="Send a single reminder to this phone number.",
    )
    parser.add_argument("--api-key", help="Canvas API token (required with --phone).")
    parser.add_argument("--canvas-url", help="Override the Canvas base URL.")
    parser.add_argument(
        "--days-ahead",
        type=int,
        help="Lookahead window in days (default: from config).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    args = parser.parse_args(argv)
    if args.phone and not args.api_key:
        parser.error("--api-key is required with --phone")
    return args


async def _run(args: argparse.Namespace, system: ReminderSystem) -> bool:
    if args.all:
        summary = await ReminderScheduler(system).trigger_manual_reminders()
        logging.info("Reminders dispatched: %s successful, %s failed", summary.successful, summary.failed)
        return summary.failed == 0

    result = await system.send_assignment_reminder(
        args.api_key,
        validate_phone(args.phone),
        canvas_url=args.canvas_url,
        days_ahead=args.days_ahead,
    )
    logging.info(
        "Assignments found: %s, courses checked: %s, SMS delivered: %s",
        result.assignments_found,
        result.courses_checked,
        result.sms_delivered,
    )
    logging.info("Reminder text: %s", result.reminder_text)
    return result.sms_delivered


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        system = ReminderSystem.from_environment()
        configure_logging(verbose=args.verbose, timezone=system.config.timezone)
        ok = asyncio.run(_run(args, system))
    except ConfigurationError as exc:
        logging.error("Configuration error: %s", exc)
        return 2
    except (ReminderError, ValueError) as exc:
        logging.error("Reminder failed: %s", exc)
        return 1
    except Exception as exc:  # pragma: no cover - automation guard
        logging.exception("Unexpected failure while sending reminders: %s", exc)
        return 1

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
