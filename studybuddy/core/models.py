from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

DEFAULT_CANVAS_URL = "https://sjsu.instructure.com"
DEFAULT_DAYS_AHEAD = 7


def parse_canvas_datetime(value: Any) -> Optional[datetime]:
    """Parse a Canvas ISO-8601 timestamp into an aware datetime (UTC when no offset)."""
    if not value or not isinstance(value, str):
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class ReminderConfig:
    """Runtime configuration loaded from json and the environment."""

    default_canvas_url: str = DEFAULT_CANVAS_URL
    default_days_ahead: int = DEFAULT_DAYS_AHEAD
    reminder_time: str = "09:00"
    timezone: str = "America/Los_Angeles"
    ai_model: str = "gpt-3.5-turbo"
    sms_sender_name: Optional[str] = None
    public_base_url: Optional[str] = None
    subscriptions_path: str = "var/data/subscriptions.json"
    http_timeout_seconds: float = 30.0
    webhook_tolerance_seconds: int = 900
    host: str = "127.0.0.1"
    port: int = 4000

    @property
    def reply_webhook_url(self) -> Optional[str]:
        if not self.public_base_url:
            return None
        return f"{self.public_base_url.rstrip('/')}/api/v1/sms/webhook"


@dataclass
class Secrets:
    """Holds API credentials required by the reminder service."""

    openai_api_key: Optional[str] = None
    textbelt_api_key: Optional[str] = None


@dataclass
class Course:
    """Canvas course the student is actively enrolled in."""

    id: int
    name: str
    course_code: str = ""
    access_restricted_by_date: bool = False

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Course":
        return cls(
            id=int(payload["id"]),
            name=str(payload.get("name") or ""),
            course_code=str(payload.get("course_code") or ""),
            access_restricted_by_date=bool(payload.get("access_restricted_by_date")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "course_code": self.course_code}


@dataclass
class Assignment:
    """Canvas assignment, optionally decorated with its course context."""

    id: int
    name: str
    course_id: int
    html_url: str = ""
    description: Optional[str] = None
    due_at: Optional[datetime] = None
    points_possible: Optional[float] = None
    course_name: Optional[str] = None
    course_code: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Assignment":
        points = payload.get("points_possible")
        return cls(
            id=int(payload["id"]),
            name=str(payload.get("name") or "Untitled assignment"),
            course_id=int(payload.get("course_id") or 0),
            html_url=str(payload.get("html_url") or ""),
            description=payload.get("description") or None,
            due_at=parse_canvas_datetime(payload.get("due_at")),
            points_possible=float(points) if points is not None else None,
        )

    def with_course(self, course: Course) -> "Assignment":
        return replace(self, course_name=course.name, course_code=course.course_code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "course_id": self.course_id,
            "html_url": self.html_url,
            "due_at": self.due_at.isoformat() if self.due_at else None,
            "points_possible": self.points_possible,
            "courseName": self.course_name,
            "courseCode": self.course_code,
        }


@dataclass
class UpcomingAssignments:
    """Aggregation result: filtered assignments plus every course that was checked."""

    assignments: List[Assignment]
    courses: List[Course]


@dataclass
class Subscription:
    """Daily reminder subscription keyed by phone number."""

    id: str
    phone_number: str
    api_key: str
    created_at: str
    is_active: bool = True
    canvas_url: Optional[str] = None
    days_ahead: Optional[int] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Subscription":
        days_ahead = payload.get("daysAhead")
        return cls(
            id=str(payload["id"]),
            phone_number=str(payload["phoneNumber"]),
            api_key=str(payload["apiKey"]),
            created_at=str(payload.get("createdAt") or ""),
            is_active=bool(payload.get("isActive", True)),
            canvas_url=payload.get("canvasUrl") or None,
            days_ahead=int(days_ahead) if days_ahead is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "phoneNumber": self.phone_number,
            "apiKey": self.api_key,
            "createdAt": self.created_at,
            "isActive": self.is_active,
        }
        if self.canvas_url:
            payload["canvasUrl"] = self.canvas_url
        if self.days_ahead is not None:
            payload["daysAhead"] = self.days_ahead
        return payload

    def public_dict(self) -> Dict[str, Any]:
        """Subscription status without the Canvas credential."""
        payload = self.to_dict()
        payload.pop("apiKey", None)
        return payload


@dataclass
class SMSResult:
    """Textbelt delivery outcome."""

    success: bool
    text_id: Optional[str] = None
    quota_remaining: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "textId": self.text_id,
            "quotaRemaining": self.quota_remaining,
            "error": self.error,
        }


@dataclass
class GenerationResult:
    """Text produced by the chat-completion API with its token usage."""

    text: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class WebhookEvent:
    """Inbound SMS reply delivered by the Textbelt webhook."""

    text_id: str
    from_number: str
    text: str
    data: Optional[str] = None


@dataclass
class ReplyOutcome:
    success: bool
    message: str
    text_id: Optional[str] = None
    fallback_used: bool = False

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.text_id:
            payload["textId"] = self.text_id
        if self.fallback_used:
            payload["fallbackUsed"] = True
        return payload


@dataclass
class CycleResult:
    """Outcome of one fetch -> aggregate -> compose -> dispatch cycle."""

    phone_number: str
    success: bool
    assignments_found: int = 0
    courses_checked: int = 0
    reminder_text: Optional[str] = None
    sms_delivered: bool = False
    text_id: Optional[str] = None
    error: Optional[str] = None

    def to_data(self) -> Dict[str, Any]:
        return {
            "assignmentsFound": self.assignments_found,
            "coursesChecked": self.courses_checked,
            "reminderText": self.reminder_text,
            "smsDelivered": self.sms_delivered,
            "textId": self.text_id,
        }


@dataclass
class BatchSummary:
    """Counters collected during one scheduler firing."""

    started_at: datetime
    results: List[CycleResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return self.total - self.successful

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startedAt": self.started_at.isoformat(),
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "failures": [
                {"phoneNumber": result.phone_number, "error": result.error}
                for result in self.results
                if not result.success
            ],
        }
