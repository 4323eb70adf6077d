from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

import pytz
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .core.config import parse_reminder_time
from .core.models import BatchSummary, CycleResult, Subscription
from .reminder_system import ReminderSystem

LOGGER = logging.getLogger(__name__)

JOB_ID = "daily-assignment-reminders"


class ReminderScheduler:
    """Daily cron trigger that runs one reminder cycle per active subscription."""

    def __init__(self, system: ReminderSystem, scheduler: Optional[BackgroundScheduler] = None):
        self.system = system
        self.timezone = pytz.timezone(system.config.timezone)
        self._scheduler = scheduler or BackgroundScheduler(timezone=self.timezone)

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        hour, minute = parse_reminder_time(self.system.config.reminder_time)
        trigger = CronTrigger(hour=hour, minute=minute, timezone=self.timezone)
        self._scheduler.add_job(
            self._run_job,
            trigger,
            id=JOB_ID,
            replace_existing=True,
            coalesce=True,
            misfire_grace_time=3600,
        )
        if not self._scheduler.running:
            self._scheduler.start()
        LOGGER.info(
            "Daily assignment reminders scheduled at %02d:%02d %s",
            hour,
            minute,
            self.timezone.zone,
        )

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    def next_run_time(self) -> Optional[datetime]:
        job = self._scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    def _run_job(self) -> None:
        # Runs on the scheduler thread, which has no event loop of its own.
        LOGGER.info("Running daily assignment reminder job")
        try:
            asyncio.run(self.run_daily_reminders())
        except Exception:
            LOGGER.exception("Error in daily reminder job")

    async def trigger_manual_reminders(self) -> BatchSummary:
        LOGGER.info("Manually triggering reminders")
        return await self.run_daily_reminders()

    async def run_daily_reminders(self) -> BatchSummary:
        summary = BatchSummary(started_at=datetime.now(self.timezone))
        subscriptions = self.system.registry.get_active()
        LOGGER.info("Found %s active subscriptions", len(subscriptions))
        if not subscriptions:
            return summary

        # Each cycle captures its own failure, so gather never cancels siblings.
        summary.results = list(
            await asyncio.gather(*(self._run_cycle(subscription) for subscription in subscriptions))
        )
        LOGGER.info(
            "Daily reminder job completed: %s successful, %s failed",
            summary.successful,
            summary.failed,
        )
        return summary

    async def _run_cycle(self, subscription: Subscription) -> CycleResult:
        phone = subscription.phone_number
        LOGGER.info("Sending reminder to %s", phone)
        try:
            result = await self.system.send_assignment_reminder(
                subscription.api_key,
                phone,
                canvas_url=subscription.canvas_url,
                days_ahead=subscription.days_ahead or self.system.config.default_days_ahead,
            )
        except Exception as exc:
            LOGGER.error("Failed to send reminder to %s: %s", phone, exc)
            return CycleResult(phone_number=phone, success=False, error=str(exc))

        if result.success:
            LOGGER.info("Reminder sent successfully to %s", phone)
        else:
            LOGGER.error("Reminder for %s was not delivered: %s", phone, result.error)
        return result
