"""Async client for the Canvas LMS REST endpoints used by the reminder flow."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .core.errors import Upstream, UpstreamError, ValidationError
from .core.models import DEFAULT_CANVAS_URL, Assignment, Course

LOGGER = logging.getLogger(__name__)

PAGE_SIZE = 100


class CanvasClient:
    """Fetches active courses and their assignments with a student's API token."""

    def __init__(
        self,
        default_url: str = DEFAULT_CANVAS_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.default_url = default_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _base_url(self, canvas_url: Optional[str]) -> str:
        return (canvas_url or self.default_url).rstrip("/")

    async def _get(self, api_key: str, url: str, params: Dict[str, Any]) -> Any:
        if not api_key or not api_key.strip():
            raise ValidationError("Canvas API key is required")

        headers = {"Authorization": f"Bearer {api_key}"}
        async with self._client() as client:
            try:
                response = await client.get(url, headers=headers, params=params)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise UpstreamError(
                    Upstream.CANVAS,
                    _extract_error_message(exc.response),
                    status=exc.response.status_code,
                ) from exc
            except httpx.HTTPError as exc:
                raise UpstreamError(Upstream.CANVAS, str(exc) or exc.__class__.__name__) from exc
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(Upstream.CANVAS, "Invalid JSON response from Canvas") from exc

    async def get_courses(self, api_key: str, canvas_url: Optional[str] = None) -> List[Course]:
        """Active courses with a name and no date-based access restriction."""
        url = f"{self._base_url(canvas_url)}/api/v1/courses"
        payload = await self._get(
            api_key,
            url,
            {"enrollment_state": "active", "per_page": PAGE_SIZE},
        )
        courses = [Course.from_payload(item) for item in payload or [] if isinstance(item, dict)]
        return [course for course in courses if course.name and not course.access_restricted_by_date]

    async def get_raw_courses(self, api_key: str, canvas_url: Optional[str] = None) -> List[Dict[str, Any]]:
        """Unfiltered course payloads, as proxied by the /courses route."""
        url = f"{self._base_url(canvas_url)}/api/v1/courses"
        payload = await self._get(api_key, url, {"per_page": PAGE_SIZE})
        return list(payload or [])

    async def get_course_assignments(
        self,
        api_key: str,
        course_id: int,
        canvas_url: Optional[str] = None,
    ) -> List[Assignment]:
        """
        First page of a course's assignments ordered by due date.

        Only one page is requested, so a course with more than PAGE_SIZE
        assignments loses the remainder.
        """
        url = f"{self._base_url(canvas_url)}/api/v1/courses/{course_id}/assignments"
        payload = await self._get(api_key, url, {"per_page": PAGE_SIZE, "order_by": "due_at"})
        items = [item for item in payload or [] if isinstance(item, dict)]
        if len(items) >= PAGE_SIZE:
            LOGGER.debug("Course %s returned a full page of assignments; later pages are not fetched", course_id)
        assignments = []
        for item in items:
            item.setdefault("course_id", course_id)
            assignments.append(Assignment.from_payload(item))
        return assignments


def _extract_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        if payload.get("message"):
            return str(payload["message"])
        errors = payload.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict) and errors[0].get("message"):
            return str(errors[0]["message"])
    return response.text or f"HTTP {response.status_code}"
