"""
Request bodies accepted by the HTTP API.

Every entry point validates phone numbers with the same rule: an optional
leading "+" followed by 10 to 15 digits. Numbers are not normalised, so
"+14085551234" and "14085551234" remain different subscribers.
"""

from __future__ import annotations

import re
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .core.errors import ValidationError

PHONE_PATTERN = re.compile(r"^\+?\d{10,15}$")
PHONE_HINT = "Use 10-15 digits, optionally prefixed with + (e.g. +14085551234)"

ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_phone(value: str) -> str:
    value = value.strip()
    if not PHONE_PATTERN.match(value):
        raise ValueError(f"Invalid phone number. {PHONE_HINT}")
    return value


class RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="ignore")


class PhoneRequest(RequestModel):
    phone_number: str = Field(..., alias="phoneNumber")

    @field_validator("phone_number")
    @classmethod
    def _phone(cls, value: str) -> str:
        return validate_phone(value)


class CoursesRequest(PhoneRequest):
    api_key: str = Field(..., alias="apiKey", min_length=1)
    canvas_url: Optional[str] = Field(None, alias="canvasUrl")

    @field_validator("canvas_url")
    @classmethod
    def _canvas_url(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        if not value.startswith(("http://", "https://")):
            raise ValueError("canvasUrl must start with http:// or https://")
        return value.rstrip("/")


class ReminderRequest(CoursesRequest):
    days_ahead: Optional[int] = Field(None, alias="daysAhead", ge=1, le=60)


class SubscribeRequest(ReminderRequest):
    pass


class SendSmsRequest(RequestModel):
    to: str
    body: str = Field(..., min_length=1, max_length=1600)

    @field_validator("to")
    @classmethod
    def _to(cls, value: str) -> str:
        return validate_phone(value)


def parse_body(model: Type[ModelT], payload: Any) -> ModelT:
    """Validate a JSON body, turning pydantic errors into the service's ValidationError."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid body: expected a JSON object")
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        raise ValidationError(f"Invalid body: {location}: {message}" if location else f"Invalid body: {message}") from exc
