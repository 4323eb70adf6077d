import json

import pytest

from studybuddy.core.config import load_config, parse_reminder_time, resolve_data_path
from studybuddy.core.errors import ConfigurationError
from studybuddy.core.secrets import DEFAULT_SECRETS_PATH, _resolve_secrets_path, load_secrets


def write_json(path, payload):
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_config_reads_file(tmp_path):
    path = write_json(
        tmp_path / "config.json",
        {
            "default_canvas_url": "https://canvas.example.edu/",
            "reminder_time": "07:30",
            "timezone": "America/New_York",
            "public_base_url": "https://reminders.example.edu/",
            "port": 8080,
        },
    )

    config = load_config(path, environ={})

    assert config.default_canvas_url == "https://canvas.example.edu"
    assert config.reminder_time == "07:30"
    assert config.timezone == "America/New_York"
    assert config.port == 8080
    assert config.default_days_ahead == 7
    assert config.reply_webhook_url == "https://reminders.example.edu/api/v1/sms/webhook"


def test_environment_overrides_file(tmp_path):
    path = write_json(tmp_path / "config.json", {"reminder_time": "07:30", "ai_model": "gpt-3.5-turbo"})

    config = load_config(
        path,
        environ={"REMINDER_TIME": "18:45", "OPENAI_MODEL": "gpt-4o-mini", "PORT": "5001", "BASE_URL": ""},
    )

    assert config.reminder_time == "18:45"
    assert config.ai_model == "gpt-4o-mini"
    assert config.port == 5001
    assert config.reply_webhook_url is None


def test_config_path_from_environment(tmp_path):
    path = write_json(tmp_path / "custom.json", {"sms_sender_name": "StudyBuddy"})
    config = load_config(environ={"CONFIG_PATH": str(path)})
    assert config.sms_sender_name == "StudyBuddy"


def test_missing_explicit_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.json", environ={})


@pytest.mark.parametrize("value", ["9am", "25:00", "09:60", "09:00:00", ""])
def test_invalid_reminder_time(tmp_path, value):
    with pytest.raises(ConfigurationError):
        parse_reminder_time(value)
    path = write_json(tmp_path / "config.json", {"reminder_time": value or "nope"})
    with pytest.raises(ConfigurationError):
        load_config(path, environ={})


def test_parse_reminder_time():
    assert parse_reminder_time("09:00") == (9, 0)
    assert parse_reminder_time("23:59") == (23, 59)


def test_relative_data_path_is_under_project(tmp_path):
    assert resolve_data_path(str(tmp_path / "subs.json")) == tmp_path / "subs.json"
    assert resolve_data_path("var/data/subscriptions.json").parts[-3:] == ("var", "data", "subscriptions.json")


def test_secrets_from_environment():
    secrets = load_secrets(environ={"OPENAI_API_KEY": "sk-env", "TEXTBELT_API_KEY": "tb-env"})
    assert secrets.openai_api_key == "sk-env"
    assert secrets.textbelt_api_key == "tb-env"


def test_secrets_file_fills_missing_values(tmp_path):
    path = write_json(
        tmp_path / "secrets.json",
        {"openai": {"api_key": "sk-file"}, "textbelt": {"secrets": {"api_key": {"value": "tb-file"}}}},
    )

    secrets = load_secrets(path, environ={"OPENAI_API_KEY": "sk-env"})

    assert secrets.openai_api_key == "sk-env"
    assert secrets.textbelt_api_key == "tb-file"


def test_missing_explicit_secrets_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_secrets(tmp_path / "nope.json", environ={})


def test_secrets_path_resolution(tmp_path):
    assert _resolve_secrets_path(None, {}) == DEFAULT_SECRETS_PATH
    override = tmp_path / "deploy-secrets.json"
    assert _resolve_secrets_path(None, {"SECRETS_PATH": str(override)}) == override
