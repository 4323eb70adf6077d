from __future__ import annotations

import hashlib
import hmac
import logging
import time
from typing import Any, Dict, Optional

import httpx

from .core.errors import Upstream, UpstreamError
from .core.models import SMSResult

LOGGER = logging.getLogger(__name__)

TEXTBELT_URL = "https://textbelt.com/text"
FREE_TEXTBELT_KEY = "textbelt"
TEST_PHONE = "5555555555"
SIGNATURE_HEADER = "X-textbelt-signature"
TIMESTAMP_HEADER = "X-textbelt-timestamp"
WEBHOOK_TOLERANCE_SECONDS = 900


class TextbeltService:
    """High level helper around the Textbelt SMS API used in the reminder flow."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        sender_name: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.sender_name = sender_name
        self._timeout = timeout
        self._transport = transport

    @property
    def key(self) -> str:
        return self.api_key or FREE_TEXTBELT_KEY

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def send_sms(
        self,
        phone: str,
        message: str,
        sender: Optional[str] = None,
        reply_webhook_url: Optional[str] = None,
        webhook_data: Optional[str] = None,
        key: Optional[str] = None,
    ) -> SMSResult:
        """Send one SMS. A single attempt is made; transport failures raise UpstreamError."""
        payload: Dict[str, str] = {"phone": phone, "message": message, "key": key or self.key}
        sender_name = sender or self.sender_name
        if sender_name:
            payload["sender"] = sender_name
        if reply_webhook_url:
            payload["replyWebhookUrl"] = reply_webhook_url
        if webhook_data:
            payload["webhookData"] = webhook_data

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.post(TEXTBELT_URL, data=payload)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise UpstreamError(
                    Upstream.TEXTBELT,
                    f"HTTP error! status: {exc.response.status_code}",
                    status=exc.response.status_code,
                ) from exc
            except httpx.HTTPError as exc:
                raise UpstreamError(Upstream.TEXTBELT, str(exc) or exc.__class__.__name__) from exc

        try:
            body: Dict[str, Any] = response.json()
        except ValueError as exc:
            raise UpstreamError(Upstream.TEXTBELT, "Invalid JSON response from Textbelt") from exc

        result = _parse_send_response(body)
        if result.success:
            LOGGER.info("SMS sent to %s (textId=%s, quota=%s)", phone, result.text_id, result.quota_remaining)
        else:
            LOGGER.warning("Textbelt rejected SMS to %s: %s", phone, result.error)
        return result

    async def test_configuration(self) -> SMSResult:
        """Probe the API with the quota-free test variant of the key."""
        return await self.send_sms(TEST_PHONE, "Test message", key=f"{self.key}_test")


def _parse_send_response(body: Dict[str, Any]) -> SMSResult:
    text_id = body.get("textId")
    quota = body.get("quotaRemaining")
    return SMSResult(
        success=bool(body.get("success")),
        text_id=str(text_id) if text_id is not None else None,
        quota_remaining=int(quota) if quota is not None else None,
        error=body.get("error"),
    )


def compute_signature(secret: str, timestamp: str, payload: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), timestamp.encode("utf-8") + payload, hashlib.sha256).hexdigest()


def verify_webhook(secret: str, timestamp: str, signature: str, payload: bytes) -> bool:
    """Check a Textbelt webhook HMAC-SHA256 signature over timestamp + raw body."""
    if not secret or not timestamp or not signature:
        return False
    try:
        expected = compute_signature(secret, timestamp, payload)
        return hmac.compare_digest(signature.strip().lower(), expected)
    except (TypeError, ValueError) as exc:
        LOGGER.error("Webhook verification error: %s", exc)
        return False


def webhook_request_is_valid(
    secret: str,
    timestamp: str,
    signature: str,
    payload: bytes,
    now: Optional[float] = None,
    tolerance: int = WEBHOOK_TOLERANCE_SECONDS,
) -> bool:
    """Signature must verify and the timestamp must be within tolerance seconds of now."""
    if not verify_webhook(secret, timestamp, signature, payload):
        return False
    try:
        sent_at = int(timestamp)
    except (TypeError, ValueError):
        return False
    current = time.time() if now is None else now
    return abs(current - sent_at) <= tolerance
