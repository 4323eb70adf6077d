from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    UPSTREAM = "upstream_error"
    DUPLICATE_SUBSCRIPTION = "duplicate_subscription"
    NOT_FOUND = "not_found"
    CONFIGURATION = "configuration_error"


class Upstream(str, Enum):
    CANVAS = "canvas"
    OPENAI = "openai"
    TEXTBELT = "textbelt"


# Message shown to API callers when a cycle fails at a given collaborator.
UPSTREAM_USER_MESSAGES: Dict[Upstream, str] = {
    Upstream.CANVAS: "Failed to fetch assignments from Canvas. Please check your API key and Canvas URL.",
    Upstream.OPENAI: "Failed to generate the reminder message. Please try again later.",
    Upstream.TEXTBELT: "Failed to send the SMS reminder. Please check the phone number and try again.",
}

HTTP_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UPSTREAM: 502,
    ErrorKind.DUPLICATE_SUBSCRIPTION: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFIGURATION: 500,
}


class ReminderError(Exception):
    """Base class for every failure the reminder service reports."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    @property
    def user_message(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.kind.value, "message": self.user_message}


class ValidationError(ReminderError):
    """Raised when a request or argument is malformed."""

    kind = ErrorKind.VALIDATION


class ConfigurationError(ReminderError, RuntimeError):
    """Raised when required configuration is missing."""

    kind = ErrorKind.CONFIGURATION


class UpstreamError(ReminderError):
    """Raised when Canvas, OpenAI or Textbelt fails; wraps the upstream message."""

    kind = ErrorKind.UPSTREAM

    def __init__(self, source: Upstream, message: str, status: Optional[int] = None):
        super().__init__(f"{source.value}: {message}", source=source.value, status=status)
        self.source = source
        self.upstream_message = message
        self.status = status

    @property
    def user_message(self) -> str:
        return UPSTREAM_USER_MESSAGES[self.source]


class DuplicateSubscription(ReminderError):
    kind = ErrorKind.DUPLICATE_SUBSCRIPTION

    def __init__(self, phone_number: str):
        super().__init__("Phone number already subscribed", phone_number=phone_number)
        self.phone_number = phone_number


class SubscriptionNotFound(ReminderError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, phone_number: str):
        super().__init__("No subscription found for this phone number", phone_number=phone_number)
        self.phone_number = phone_number
