from __future__ import annotations

from .models import (
    Assignment,
    BatchSummary,
    Course,
    CycleResult,
    GenerationResult,
    ReminderConfig,
    ReplyOutcome,
    Secrets,
    SMSResult,
    Subscription,
    UpcomingAssignments,
    WebhookEvent,
)
from .errors import (
    ConfigurationError,
    DuplicateSubscription,
    ErrorKind,
    ReminderError,
    SubscriptionNotFound,
    Upstream,
    UpstreamError,
    ValidationError,
)
from .config import load_config
from .secrets import load_secrets

__all__ = [
    "Assignment",
    "BatchSummary",
    "ConfigurationError",
    "Course",
    "CycleResult",
    "DuplicateSubscription",
    "ErrorKind",
    "GenerationResult",
    "ReminderConfig",
    "ReminderError",
    "ReplyOutcome",
    "Secrets",
    "SMSResult",
    "Subscription",
    "SubscriptionNotFound",
    "UpcomingAssignments",
    "Upstream",
    "UpstreamError",
    "ValidationError",
    "WebhookEvent",
    "load_config",
    "load_secrets",
]
