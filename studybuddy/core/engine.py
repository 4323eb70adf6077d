from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import pytz

from .models import DEFAULT_DAYS_AHEAD, Assignment, Course, UpcomingAssignments
from ..canvas import CanvasClient

LOGGER = logging.getLogger(__name__)

NO_ASSIGNMENTS_MESSAGE = (
    "You have no upcoming assignments in the next 7 days. Great job staying on top of your work!"
)
DIGEST_HEADER = "Here are your upcoming assignments:"

# English names regardless of the process locale; the model quotes these back to students.
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


class AssignmentEngine:
    """Aggregates a student's upcoming assignments across all active courses."""

    def __init__(self, client: CanvasClient, timezone: str = "America/Los_Angeles"):
        self.client = client
        self.timezone = timezone

    async def get_upcoming_assignments(
        self,
        api_key: str,
        canvas_url: Optional[str] = None,
        days_ahead: int = DEFAULT_DAYS_AHEAD,
        now: Optional[datetime] = None,
    ) -> UpcomingAssignments:
        """Fetch every active course, then all their assignments concurrently, then filter."""
        courses = await self.client.get_courses(api_key, canvas_url)
        per_course = await asyncio.gather(
            *(self._fetch_course_assignments(api_key, course, canvas_url) for course in courses)
        )
        merged = [assignment for bucket in per_course for assignment in bucket]
        upcoming = filter_upcoming(merged, now or datetime.now(pytz.UTC), days_ahead)
        LOGGER.info(
            "Found %s upcoming assignments (%s total) across %s courses",
            len(upcoming),
            len(merged),
            len(courses),
        )
        return UpcomingAssignments(assignments=upcoming, courses=courses)

    async def _fetch_course_assignments(
        self,
        api_key: str,
        course: Course,
        canvas_url: Optional[str],
    ) -> List[Assignment]:
        # One broken course must not hide the others.
        try:
            assignments = await self.client.get_course_assignments(api_key, course.id, canvas_url)
        except Exception as exc:
            LOGGER.warning("Failed to fetch assignments for course %s: %s", course.name, exc)
            return []
        return [assignment.with_course(course) for assignment in assignments]

    def format_digest(self, assignments: Sequence[Assignment]) -> str:
        return format_assignments_for_ai(assignments, self.timezone)


def filter_upcoming(
    assignments: Sequence[Assignment],
    now: datetime,
    days_ahead: int = DEFAULT_DAYS_AHEAD,
) -> List[Assignment]:
    """Assignments due within [now, now + days_ahead days], sorted by due date."""
    if now.tzinfo is None:
        now = pytz.UTC.localize(now)
    window_end = now + timedelta(days=days_ahead)
    upcoming = [
        assignment
        for assignment in assignments
        if assignment.due_at is not None and now <= assignment.due_at <= window_end
    ]
    upcoming.sort(key=_due_sort_key)
    return upcoming


def _due_sort_key(assignment: Assignment) -> float:
    # Undated assignments are filtered out above; they would compare as equal.
    if assignment.due_at is None:
        return 0.0
    return assignment.due_at.timestamp()


def format_due_date(due_at: datetime, timezone: str = "America/Los_Angeles") -> str:
    """Render a due date as 'Weekday, Mon D, H:MM AM/PM'."""
    local = due_at.astimezone(pytz.timezone(timezone))
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return (
        f"{WEEKDAYS[local.weekday()]}, {MONTHS[local.month - 1]} {local.day}, "
        f"{hour}:{local.minute:02d} {meridiem}"
    )


def _format_points(points: Optional[float]) -> str:
    if not points:
        return ""
    value = int(points) if float(points).is_integer() else points
    return f" ({value} points)"


def format_assignments_for_ai(
    assignments: Sequence[Assignment],
    timezone: str = "America/Los_Angeles",
) -> str:
    """Digest handed to the language model: one bullet line per assignment."""
    if not assignments:
        return NO_ASSIGNMENTS_MESSAGE

    lines = []
    for assignment in assignments:
        due = format_due_date(assignment.due_at, timezone) if assignment.due_at else "No due date"
        course_name = assignment.course_name or "Unknown Course"
        lines.append(
            f"• {assignment.name} for {course_name}{_format_points(assignment.points_possible)} - Due: {due}"
        )
    return f"{DIGEST_HEADER}\n\n" + "\n".join(lines)
