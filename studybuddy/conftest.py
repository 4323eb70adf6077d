import json
import re
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from urllib.parse import parse_qsl

import httpx
import pytest

from studybuddy.canvas import CanvasClient
from studybuddy.composer import ReminderComposer
from studybuddy.core.engine import AssignmentEngine
from studybuddy.core.models import ReminderConfig, Secrets
from studybuddy.reminder_system import ReminderSystem
from studybuddy.subscriptions import SubscriptionRegistry
from studybuddy.telephony import TextbeltService

ASSIGNMENTS_PATH = re.compile(r"^/api/v1/courses/(\d+)/assignments$")


def iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def due_in(days: float) -> str:
    return iso(datetime.now(timezone.utc) + timedelta(days=days))


class CanvasStub:
    """Serves /courses and /courses/<id>/assignments; an int in place of a list is an error status."""

    def __init__(self, courses, assignments=None, bad_keys=()):
        self.courses = courses
        self.assignments = assignments or {}
        self.bad_keys = set(bad_keys)
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        token = request.headers.get("Authorization", "").replace("Bearer ", "")
        if token in self.bad_keys:
            return httpx.Response(401, json={"errors": [{"message": "Invalid access token."}]})
        if request.url.path == "/api/v1/courses":
            return httpx.Response(200, json=self.courses)
        match = ASSIGNMENTS_PATH.match(request.url.path)
        if match:
            body = self.assignments.get(int(match.group(1)), [])
            if isinstance(body, int):
                return httpx.Response(body, json={"message": "course unavailable"})
            return httpx.Response(200, json=body)
        return httpx.Response(404, json={"message": "not found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class TextbeltStub:
    """Records form posts to Textbelt; answers with queued responses, then the default one."""

    def __init__(self, response=None, status=200, queued=None):
        self.response = response or {"success": True, "textId": "1234", "quotaRemaining": 40}
        self.status = status
        self.queued = list(queued or [])
        self.sent = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.sent.append(dict(parse_qsl(request.content.decode())))
        if self.queued:
            status, body = self.queued.pop(0)
            return httpx.Response(status, json=body)
        return httpx.Response(self.status, json=self.response)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class FakeCompletions:
    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if self.replies else "Don't forget your assignments!"
        if isinstance(reply, Exception):
            raise reply
        choices = [] if reply is None else [SimpleNamespace(message=SimpleNamespace(content=reply))]
        return SimpleNamespace(
            choices=choices,
            usage=SimpleNamespace(prompt_tokens=12, completion_tokens=8, total_tokens=20),
        )


class FakeOpenAI:
    instances = []

    def __init__(self, completions):
        self.chat = SimpleNamespace(completions=completions)
        self.closed = False
        FakeOpenAI.instances.append(self)

    async def close(self):
        self.closed = True


@pytest.fixture
def completions():
    return FakeCompletions()


@pytest.fixture
def composer(completions):
    return ReminderComposer("sk-test", client_factory=lambda: FakeOpenAI(completions))


@pytest.fixture
def two_courses():
    return [
        {"id": 1, "name": "CS 146 Data Structures", "course_code": "CS146"},
        {"id": 2, "name": "ENGL 1B Argument", "course_code": "ENGL1B"},
    ]


@pytest.fixture
def make_system(tmp_path, composer):
    def _make(canvas_stub, textbelt_stub, config=None, secrets=None, composer_override=None):
        config = config or ReminderConfig(
            subscriptions_path=str(tmp_path / "subscriptions.json"),
            public_base_url="https://studybuddy.test",
        )
        secrets = secrets or Secrets(openai_api_key="sk-test", textbelt_api_key="tb-key")
        canvas = CanvasClient(config.default_canvas_url, transport=canvas_stub.transport)
        return ReminderSystem(
            config=config,
            secrets=secrets,
            canvas=canvas,
            engine=AssignmentEngine(canvas, timezone=config.timezone),
            composer=composer_override or composer,
            sms=TextbeltService(secrets.textbelt_api_key, transport=textbelt_stub.transport),
            registry=SubscriptionRegistry(tmp_path / "subscriptions.json"),
        )

    return _make


def load_document(path):
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)
