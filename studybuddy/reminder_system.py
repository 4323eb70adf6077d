"""
StudyBuddy assignment reminders with Canvas, OpenAI and Textbelt.

`ReminderSystem` wires the collaborators together and runs one reminder
cycle: fetch -> aggregate -> compose -> dispatch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .canvas import CanvasClient
from .composer import ReminderComposer
from .core import ReminderConfig, Secrets, load_config, load_secrets
from .core.config import resolve_data_path
from .core.engine import AssignmentEngine
from .core.models import CycleResult
from .subscriptions import SubscriptionRegistry
from .telephony import TextbeltService

LOGGER = logging.getLogger(__name__)


@dataclass
class ReminderSystem:
    """Holds the collaborators built once at startup and runs reminder cycles."""

    config: ReminderConfig
    secrets: Secrets
    canvas: CanvasClient
    engine: AssignmentEngine
    composer: ReminderComposer
    sms: TextbeltService
    registry: SubscriptionRegistry

    @classmethod
    def from_settings(cls, config: ReminderConfig, secrets: Secrets) -> "ReminderSystem":
        canvas = CanvasClient(config.default_canvas_url, timeout=config.http_timeout_seconds)
        return cls(
            config=config,
            secrets=secrets,
            canvas=canvas,
            engine=AssignmentEngine(canvas, timezone=config.timezone),
            composer=ReminderComposer(secrets.openai_api_key, model=config.ai_model),
            sms=TextbeltService(
                secrets.textbelt_api_key,
                sender_name=config.sms_sender_name,
                timeout=config.http_timeout_seconds,
            ),
            registry=SubscriptionRegistry(resolve_data_path(config.subscriptions_path)),
        )

    @classmethod
    def from_environment(cls) -> "ReminderSystem":
        return cls.from_settings(load_config(), load_secrets())

    async def list_courses(self, api_key: str, canvas_url: Optional[str] = None) -> List[Dict[str, Any]]:
        return await self.canvas.get_raw_courses(api_key, canvas_url)

    async def send_assignment_reminder(
        self,
        api_key: str,
        phone_number: str,
        canvas_url: Optional[str] = None,
        days_ahead: Optional[int] = None,
    ) -> CycleResult:
        """
        Run one full cycle for a phone number.

        Configuration is checked before any collaborator is contacted. Upstream
        failures propagate; an SMS that Textbelt refuses is reported through
        ``sms_delivered`` rather than raised.
        """
        self.composer.ensure_configured()
        lookahead = days_ahead or self.config.default_days_ahead

        LOGGER.info("Reminder cycle for %s (next %s days)", phone_number, lookahead)
        upcoming = await self.engine.get_upcoming_assignments(api_key, canvas_url, lookahead)
        digest = self.engine.format_digest(upcoming.assignments)
        reminder_text = await self.composer.compose(digest)
        sms_result = await self.sms.send_sms(
            phone_number,
            reminder_text,
            reply_webhook_url=self.config.reply_webhook_url,
        )

        return CycleResult(
            phone_number=phone_number,
            success=sms_result.success,
            assignments_found=len(upcoming.assignments),
            courses_checked=len(upcoming.courses),
            reminder_text=reminder_text,
            sms_delivered=sms_result.success,
            text_id=sms_result.text_id,
            error=sms_result.error,
        )
