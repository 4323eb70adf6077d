import asyncio
import time

import httpx
import pytest

from studybuddy.conftest import TextbeltStub
from studybuddy.core.errors import Upstream, UpstreamError
from studybuddy.telephony import (
    TEXTBELT_URL,
    TextbeltService,
    compute_signature,
    verify_webhook,
    webhook_request_is_valid,
)

SECRET = "tb-key"
PAYLOAD = b'{"textId":"123","fromNumber":"+14085551234","text":"when is my essay due?"}'


def test_send_sms_posts_form_fields():
    stub = TextbeltStub()
    service = TextbeltService("tb-key", sender_name="StudyBuddy", transport=stub.transport)

    result = asyncio.run(
        service.send_sms("+14085551234", "Essay due Tue!", reply_webhook_url="https://x.test/api/v1/sms/webhook")
    )

    assert result.success
    assert result.text_id == "1234"
    assert result.quota_remaining == 40
    assert stub.sent == [
        {
            "phone": "+14085551234",
            "message": "Essay due Tue!",
            "key": "tb-key",
            "sender": "StudyBuddy",
            "replyWebhookUrl": "https://x.test/api/v1/sms/webhook",
        }
    ]


def test_free_key_used_when_unconfigured():
    stub = TextbeltStub()
    service = TextbeltService(None, transport=stub.transport)

    asyncio.run(service.send_sms("5551234567", "hi"))

    assert not service.is_configured()
    assert stub.sent[0]["key"] == "textbelt"
    assert "sender" not in stub.sent[0]


def test_rejected_sms_is_reported_not_raised():
    stub = TextbeltStub(response={"success": False, "quotaRemaining": 0, "error": "Out of quota"})
    service = TextbeltService("tb-key", transport=stub.transport)

    result = asyncio.run(service.send_sms("5551234567", "hi"))

    assert not result.success
    assert result.error == "Out of quota"


def test_http_error_raises_upstream_error():
    stub = TextbeltStub(status=503, response={"error": "down"})
    service = TextbeltService("tb-key", transport=stub.transport)

    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(service.send_sms("5551234567", "hi"))

    assert excinfo.value.source is Upstream.TEXTBELT
    assert excinfo.value.status == 503
    assert len(stub.sent) == 1


def test_test_configuration_uses_test_key():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"success": True, "quotaRemaining": 10})

    service = TextbeltService("tb-key", transport=httpx.MockTransport(handler))
    asyncio.run(service.test_configuration())

    assert str(requests[0].url) == TEXTBELT_URL
    assert b"key=tb-key_test" in requests[0].content
    assert b"phone=5555555555" in requests[0].content


def test_valid_signature_verifies():
    timestamp = str(int(time.time()))
    signature = compute_signature(SECRET, timestamp, PAYLOAD)
    assert verify_webhook(SECRET, timestamp, signature, PAYLOAD)
    assert webhook_request_is_valid(SECRET, timestamp, signature, PAYLOAD)


def test_modified_payload_fails():
    timestamp = str(int(time.time()))
    signature = compute_signature(SECRET, timestamp, PAYLOAD)
    tampered = PAYLOAD.replace(b"essay", b"exams")
    assert not verify_webhook(SECRET, timestamp, signature, tampered)


def test_wrong_secret_and_garbage_signature_fail():
    timestamp = str(int(time.time()))
    signature = compute_signature("other-key", timestamp, PAYLOAD)
    assert not verify_webhook(SECRET, timestamp, signature, PAYLOAD)
    assert not verify_webhook(SECRET, timestamp, "ünïcode", PAYLOAD)
    assert not verify_webhook(SECRET, timestamp, "", PAYLOAD)


def test_stale_timestamp_rejected_even_with_valid_signature():
    now = 1_800_000_000
    timestamp = str(now - 901)
    signature = compute_signature(SECRET, timestamp, PAYLOAD)

    assert verify_webhook(SECRET, timestamp, signature, PAYLOAD)
    assert not webhook_request_is_valid(SECRET, timestamp, signature, PAYLOAD, now=now)
    fresh = str(now - 900)
    assert webhook_request_is_valid(SECRET, fresh, compute_signature(SECRET, fresh, PAYLOAD), PAYLOAD, now=now)


def test_non_numeric_timestamp_rejected():
    signature = compute_signature(SECRET, "yesterday", PAYLOAD)
    assert not webhook_request_is_valid(SECRET, "yesterday", signature, PAYLOAD)
