#!/usr/bin/env python3
"""
Flask server for StudyBuddy assignment reminders.

Serves the JSON API used by the frontend, receives Textbelt reply webhooks
and hosts the daily reminder scheduler.
"""

from __future__ import annotations

import atexit
import logging
import time
from typing import Optional

from flask import Blueprint, Flask, current_app, jsonify, request

from . import __version__
from .core.errors import ReminderError, SubscriptionNotFound, ValidationError
from .core.logging_utils import configure_logging
from .reminder_system import ReminderSystem
from .replies import ReplyRouter, parse_webhook_event
from .scheduler import ReminderScheduler
from .schemas import (
    CoursesRequest,
    PhoneRequest,
    ReminderRequest,
    SendSmsRequest,
    SubscribeRequest,
    parse_body,
    validate_phone,
)
from .telephony import SIGNATURE_HEADER, TIMESTAMP_HEADER, webhook_request_is_valid

LOGGER = logging.getLogger(__name__)

EXTENSION_KEY = "studybuddy"

api = Blueprint("api", __name__, url_prefix="/api/v1")
canvas = Blueprint("canvas", __name__, url_prefix="/api/v1/canvas")
sms = Blueprint("sms", __name__, url_prefix="/api/v1/sms")


def _system() -> ReminderSystem:
    return current_app.extensions[EXTENSION_KEY]


def _scheduler() -> ReminderScheduler:
    return current_app.extensions["reminder_scheduler"]


def _router() -> ReplyRouter:
    return current_app.extensions["reply_router"]


def _path_phone(phone_number: str) -> str:
    try:
        return validate_phone(phone_number)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


@api.route("/health", methods=["GET"])
def health_check():
    return jsonify({"ok": True, "uptime": round(time.monotonic() - current_app.config["STARTED_AT"], 3)})


@canvas.route("/courses", methods=["POST"])
async def list_courses():
    body = parse_body(CoursesRequest, request.get_json(silent=True))
    courses = await _system().list_courses(body.api_key, body.canvas_url)
    return jsonify({"courses": courses})


@canvas.route("/send-assignment-reminder", methods=["POST"])
async def send_assignment_reminder():
    body = parse_body(ReminderRequest, request.get_json(silent=True))
    result = await _system().send_assignment_reminder(
        body.api_key,
        body.phone_number,
        canvas_url=body.canvas_url,
        days_ahead=body.days_ahead,
    )
    message = (
        "Assignment reminder sent successfully"
        if result.sms_delivered
        else f"Reminder generated but SMS delivery failed: {result.error or 'unknown error'}"
    )
    return jsonify({"success": result.sms_delivered, "message": message, "data": result.to_data()})


@canvas.route("/subscribe", methods=["POST"])
def subscribe():
    body = parse_body(SubscribeRequest, request.get_json(silent=True))
    subscription = _system().registry.create(
        body.phone_number,
        body.api_key,
        canvas_url=body.canvas_url,
        days_ahead=body.days_ahead,
    )
    return (
        jsonify(
            {
                "success": True,
                "message": "Successfully subscribed to daily assignment reminders",
                "data": subscription.public_dict(),
            }
        ),
        201,
    )


@canvas.route("/unsubscribe", methods=["POST"])
def unsubscribe():
    body = parse_body(PhoneRequest, request.get_json(silent=True))
    if not _system().registry.deactivate(body.phone_number):
        raise SubscriptionNotFound(body.phone_number)
    return jsonify({"success": True, "message": "Successfully unsubscribed from daily reminders"})


@canvas.route("/subscription/<phone_number>", methods=["GET"])
def subscription_status(phone_number: str):
    phone = _path_phone(phone_number)
    subscription = _system().registry.get(phone)
    if subscription is None:
        raise SubscriptionNotFound(phone)
    return jsonify({"success": True, "data": subscription.public_dict()})


@canvas.route("/subscription/<phone_number>", methods=["DELETE"])
def delete_subscription(phone_number: str):
    phone = _path_phone(phone_number)
    if not _system().registry.delete(phone):
        raise SubscriptionNotFound(phone)
    return jsonify({"success": True, "message": "Subscription deleted"})


@canvas.route("/trigger-reminders", methods=["POST"])
async def trigger_reminders():
    # No auth gate: anyone who can reach the API can start a batch.
    summary = await _scheduler().trigger_manual_reminders()
    return jsonify({"success": True, "message": "Reminder batch completed", "data": summary.to_dict()})


@sms.route("/send", methods=["POST"])
async def send_sms():
    body = parse_body(SendSmsRequest, request.get_json(silent=True))
    LOGGER.info("Sending SMS to %s", body.to)
    result = await _system().sms.send_sms(body.to, body.body)
    return jsonify(result.to_dict()), (200 if result.success else 502)


@sms.route("/webhook", methods=["POST"])
async def sms_webhook():
    raw_payload = request.get_data(cache=True)
    signature = request.headers.get(SIGNATURE_HEADER)
    timestamp = request.headers.get(TIMESTAMP_HEADER)

    # Unsigned deliveries are accepted for deployments without webhook signing.
    if signature or timestamp:
        system = _system()
        if not (signature and timestamp) or not webhook_request_is_valid(
            system.sms.key,
            timestamp,
            signature,
            raw_payload,
            tolerance=system.config.webhook_tolerance_seconds,
        ):
            LOGGER.warning("Rejected webhook with invalid signature or stale timestamp")
            return jsonify({"success": False, "error": "invalid_signature", "message": "Invalid webhook signature"}), 401
    else:
        LOGGER.debug("Webhook received without signature headers; skipping verification")

    event = parse_webhook_event(request.get_json(silent=True))
    outcome = await _router().handle(event)
    return jsonify(outcome.to_dict())


@sms.route("/webhook", methods=["GET"])
def sms_webhook_info():
    return jsonify({"success": True, "message": "SMS webhook endpoint is active", "method": "POST"})


@sms.route("/config", methods=["GET"])
def sms_config():
    system = _system()
    next_run = _scheduler().next_run_time()
    return jsonify(
        {
            "success": True,
            "data": {
                "textbeltConfigured": system.sms.is_configured(),
                "openaiConfigured": system.composer.is_configured(),
                "senderName": system.config.sms_sender_name,
                "replyWebhookUrl": system.config.reply_webhook_url,
                "reminderTime": system.config.reminder_time,
                "timezone": system.config.timezone,
                "nextRun": next_run.isoformat() if next_run else None,
            },
        }
    )


@sms.route("/test", methods=["GET"])
async def sms_test():
    result = await _system().sms.test_configuration()
    return jsonify(result.to_dict())


def handle_reminder_error(exc: ReminderError):
    if exc.status_code >= 500:
        LOGGER.error("%s: %s", exc.kind.value, exc)
    else:
        LOGGER.info("%s: %s", exc.kind.value, exc)
    return jsonify(exc.to_dict()), exc.status_code


def create_app(
    system: Optional[ReminderSystem] = None,
    scheduler: Optional[ReminderScheduler] = None,
    start_scheduler: bool = False,
) -> Flask:
    """Application factory; collaborators default to ones built from config.json and the environment."""
    system = system or ReminderSystem.from_environment()
    scheduler = scheduler or ReminderScheduler(system)

    app = Flask(__name__)
    app.config["STARTED_AT"] = time.monotonic()
    app.extensions[EXTENSION_KEY] = system
    app.extensions["reminder_scheduler"] = scheduler
    app.extensions["reply_router"] = ReplyRouter(system.composer, system.sms)

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({"name": "studybuddy-api", "version": __version__})

    app.register_blueprint(api)
    app.register_blueprint(canvas)
    app.register_blueprint(sms)
    app.register_error_handler(ReminderError, handle_reminder_error)

    if not system.composer.is_configured():
        LOGGER.warning("OPENAI_API_KEY is not set; reminder cycles will be refused")
    if not system.sms.is_configured():
        LOGGER.warning("TEXTBELT_API_KEY is not set; using the free Textbelt key")

    if start_scheduler:
        scheduler.start()
        atexit.register(scheduler.shutdown)
    return app


def start_worker(app: Flask) -> None:
    """Configure logging and start the daily scheduler in a server worker process."""
    system = app.extensions[EXTENSION_KEY]
    configure_logging(timezone=system.config.timezone)
    LOGGER.info("StudyBuddy API %s worker started; subscriptions file: %s", __version__, system.registry.path)
    app.extensions["reminder_scheduler"].start()


def main() -> None:
    system = ReminderSystem.from_environment()
    configure_logging(timezone=system.config.timezone)
    LOGGER.info("=" * 60)
    LOGGER.info("Starting StudyBuddy API %s", __version__)
    LOGGER.info("Subscriptions file: %s", system.registry.path)
    LOGGER.info("=" * 60)

    app = create_app(system, start_scheduler=True)
    app.run(host=system.config.host, port=system.config.port, debug=False, threaded=True)


if __name__ == "__main__":
    main()
