from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Tuple

from .errors import ConfigurationError
from .models import DEFAULT_CANVAS_URL, DEFAULT_DAYS_AHEAD, ReminderConfig

CONFIG_ENV_VAR = "CONFIG_PATH"
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config.json"

ENV_OVERRIDES = {
    "default_canvas_url": "CANVAS_URL",
    "reminder_time": "REMINDER_TIME",
    "timezone": "REMINDER_TIMEZONE",
    "ai_model": "OPENAI_MODEL",
    "sms_sender_name": "SMS_SENDER_NAME",
    "public_base_url": "BASE_URL",
    "subscriptions_path": "SUBSCRIPTIONS_PATH",
    "host": "HOST",
    "port": "PORT",
}


def load_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> ReminderConfig:
    """
    Load reminder configuration from JSON, then apply environment overrides.

    ENV override for the file location: CONFIG_PATH. When no file is found at
    the default location the built-in defaults are used.
    """
    env = os.environ if environ is None else environ
    config_path = _resolve_config_path(path, env)
    payload: Dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as fh:
            payload = json.load(fh)
    elif path or env.get(CONFIG_ENV_VAR):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    for field_name, env_key in ENV_OVERRIDES.items():
        value = env.get(env_key)
        if value:
            payload[field_name] = value

    config = ReminderConfig(
        default_canvas_url=str(payload.get("default_canvas_url") or DEFAULT_CANVAS_URL).rstrip("/"),
        default_days_ahead=int(payload.get("default_days_ahead", DEFAULT_DAYS_AHEAD)),
        reminder_time=str(payload.get("reminder_time", "09:00")),
        timezone=str(payload.get("timezone", "America/Los_Angeles")),
        ai_model=str(payload.get("ai_model", "gpt-3.5-turbo")),
        sms_sender_name=payload.get("sms_sender_name") or None,
        public_base_url=payload.get("public_base_url") or None,
        subscriptions_path=str(payload.get("subscriptions_path", "var/data/subscriptions.json")),
        http_timeout_seconds=float(payload.get("http_timeout_seconds", 30)),
        webhook_tolerance_seconds=int(payload.get("webhook_tolerance_seconds", 900)),
        host=str(payload.get("host", "127.0.0.1")),
        port=int(payload.get("port", 4000)),
    )
    # Fail at startup rather than at the first scheduler firing.
    parse_reminder_time(config.reminder_time)
    return config


def parse_reminder_time(value: str) -> Tuple[int, int]:
    """Parse an HH:MM string into (hour, minute)."""
    parts = value.split(":")
    try:
        if len(parts) != 2:
            raise ValueError("invalid time format")
        hour, minute = int(parts[0]), int(parts[1])
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid reminder_time '{value}', expected HH:MM") from exc
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ConfigurationError(f"Invalid reminder_time '{value}', hour must be 0-23 and minute 0-59")
    return hour, minute


def resolve_data_path(value: str) -> Path:
    """Relative data paths live under the project root."""
    candidate = Path(value).expanduser()
    if candidate.is_absolute():
        return candidate
    return PROJECT_ROOT / candidate


def _resolve_config_path(path: Path | str | None, env: Mapping[str, str]) -> Path:
    """Resolve config file location with an explicit path winning over CONFIG_PATH."""
    candidates: Iterable[Path]

    if path:
        candidates = (Path(path),)
    else:
        env_override = env.get(CONFIG_ENV_VAR)
        if env_override:
            candidates = (Path(env_override),)
        else:
            candidates = (DEFAULT_CONFIG_PATH, PROJECT_ROOT / "var" / "config.json")

    candidates = tuple(candidates)
    for candidate in candidates:
        resolved = candidate.expanduser()
        if resolved.exists():
            return resolved
    return candidates[0].expanduser()
