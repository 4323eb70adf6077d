"""
Handling of inbound SMS replies delivered by the Textbelt webhook.

Replies containing "stop" are acknowledged as opt-outs. Anything else is
treated as a question for the study assistant; when no generated answer can
be delivered a fixed apology goes out instead.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .composer import ReminderComposer
from .core.errors import ValidationError
from .core.models import ReplyOutcome, WebhookEvent
from .telephony import TextbeltService

LOGGER = logging.getLogger(__name__)

OPT_OUT_KEYWORD = "stop"
FALLBACK_REPLY = "Sorry, I couldn't answer that right now. Please try again later!"


def parse_webhook_event(payload: Optional[Dict[str, Any]]) -> WebhookEvent:
    if not isinstance(payload, dict):
        raise ValidationError("Webhook body must be a JSON object")
    from_number = str(payload.get("fromNumber") or "").strip()
    if not from_number:
        raise ValidationError("Webhook body is missing fromNumber")
    data = payload.get("data")
    return WebhookEvent(
        text_id=str(payload.get("textId") or ""),
        from_number=from_number,
        text=str(payload.get("text") or ""),
        data=str(data) if data is not None else None,
    )


def is_opt_out(text: str) -> bool:
    return OPT_OUT_KEYWORD in text.lower()


class ReplyRouter:
    def __init__(self, composer: ReminderComposer, sms: TextbeltService):
        self.composer = composer
        self.sms = sms

    async def handle(self, event: WebhookEvent) -> ReplyOutcome:
        LOGGER.info("Incoming SMS from %s (textId=%s): %s", event.from_number, event.text_id, event.text)

        # Opt-outs are acknowledged only; the subscription itself stays as it is.
        if is_opt_out(event.text):
            LOGGER.info("%s opted out", event.from_number)
            return ReplyOutcome(success=True, message="User opted out")

        try:
            answer = await self.composer.answer_question(event.text)
            result = await self.sms.send_sms(event.from_number, answer)
            if result.success:
                LOGGER.info("Answer sent to %s", event.from_number)
                return ReplyOutcome(success=True, message="Reply sent", text_id=result.text_id)
            LOGGER.warning("Answer to %s was rejected: %s", event.from_number, result.error)
        except Exception as exc:
            LOGGER.error("Failed to answer %s: %s", event.from_number, exc)

        return await self._send_fallback(event.from_number)

    async def _send_fallback(self, phone: str) -> ReplyOutcome:
        try:
            result = await self.sms.send_sms(phone, FALLBACK_REPLY)
        except Exception as exc:
            LOGGER.error("Fallback reply to %s failed: %s", phone, exc)
            return ReplyOutcome(success=False, message="Failed to send reply", fallback_used=True)

        if not result.success:
            LOGGER.error("Fallback reply to %s was rejected: %s", phone, result.error)
            return ReplyOutcome(success=False, message="Failed to send reply", fallback_used=True)
        return ReplyOutcome(success=True, message="Fallback reply sent", text_id=result.text_id, fallback_used=True)
