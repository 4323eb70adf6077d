from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Sequence

from .models import Secrets

SECRETS_ENV_VAR = "SECRETS_PATH"
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DEFAULT_SECRETS_PATH = PROJECT_ROOT / "secrets.json"

ENV_SECRET_KEYS = {
    "openai_api_key": "OPENAI_API_KEY",
    "textbelt_api_key": "TEXTBELT_API_KEY",
}

FILE_SECRET_PATHS = {
    "openai_api_key": (("openai", "api_key"), ("openai", "secrets", "api_key")),
    "textbelt_api_key": (("textbelt", "api_key"), ("textbelt", "secrets", "api_key")),
}


def load_secrets(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Secrets:
    """
    Load secrets from environment variables or a json secrets file.

    Environment variables take precedence. Values still missing are looked up
    in the secrets json file whose path can be overridden via SECRETS_PATH.
    Anything missing in both stays None; callers check what they need with
    the components' ``is_configured`` helpers.
    """
    env = os.environ if environ is None else environ
    values: Dict[str, str | None] = {
        field: env.get(env_key) or None for field, env_key in ENV_SECRET_KEYS.items()
    }
    if all(values.values()):
        return Secrets(**values)

    secrets_path = _resolve_secrets_path(path, env)
    if secrets_path.exists():
        with open(secrets_path, "r", encoding="utf-8") as fh:
            payload: Dict[str, Any] = json.load(fh)
        for field, paths in FILE_SECRET_PATHS.items():
            if not values.get(field):
                values[field] = _extract(payload, paths)
    elif path:
        raise FileNotFoundError(f"Secrets file not found at {secrets_path}")

    return Secrets(**values)


def _extract(payload: Mapping[str, Any], paths: Iterable[Sequence[str]]) -> str | None:
    for path in paths:
        node: Any = payload
        for key in path:
            if isinstance(node, Mapping) and key in node:
                node = node[key]
            else:
                node = None
                break
        if node is None:
            continue
        if isinstance(node, Mapping) and "value" in node:
            candidate = node["value"]
        else:
            candidate = node
        if isinstance(candidate, str) and candidate:
            return candidate
    return None


def _resolve_secrets_path(path: Path | str | None, env: Mapping[str, str]) -> Path:
    """Explicit path, then SECRETS_PATH, then secrets.json at the project root."""
    if path:
        return Path(path).expanduser()

    env_override = env.get(SECRETS_ENV_VAR)
    if env_override:
        return Path(env_override).expanduser()

    return DEFAULT_SECRETS_PATH.expanduser()
