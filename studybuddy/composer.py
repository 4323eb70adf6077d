from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from openai import AsyncOpenAI

from .core.errors import ConfigurationError, Upstream, UpstreamError
from .core.models import GenerationResult

LOGGER = logging.getLogger(__name__)

PLACEHOLDER_API_KEY = "your_openai_api_key_here"

REMINDER_MAX_TOKENS = 100
REMINDER_TEMPERATURE = 0.8
ANSWER_MAX_TOKENS = 60
ANSWER_TEMPERATURE = 0.7


class ReminderComposer:
    """
    Wrapper around the OpenAI chat-completion API used to phrase reminders.

    A fresh async client is built per call, since Flask async views and
    scheduler firings each run on their own event loop.
    """

    REMINDER_PROMPT = (
        "You are StudyBuddy, an upbeat and encouraging study companion for a college student. "
        "Write a short, friendly SMS reminder about the student's upcoming assignments below. "
        "Mention the most urgent assignment by name and its due date, keep a supportive tone, "
        "and keep the whole message under 160 characters. Reply with the SMS text only.\n\n"
        "{digest}"
    )

    ANSWER_PROMPT = (
        "You are StudyBuddy, a helpful study assistant that answers students by text message. "
        "Answer the student's question below briefly and clearly in one or two sentences, "
        "suitable for an SMS reply.\n\n"
        "Student: {question}"
    )

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-3.5-turbo",
        client_factory: Optional[Callable[[], Any]] = None,
    ):
        self.api_key = api_key
        self.model = model
        self._client_factory = client_factory or self._default_client

    def _default_client(self) -> AsyncOpenAI:
        # Single attempt: the SDK would otherwise retry 429/5xx responses on its own.
        return AsyncOpenAI(api_key=self.api_key, max_retries=0)

    def is_configured(self) -> bool:
        return bool(self.api_key) and self.api_key != PLACEHOLDER_API_KEY

    def ensure_configured(self) -> None:
        if not self.is_configured():
            raise ConfigurationError("OpenAI API key is not configured (set OPENAI_API_KEY)")

    async def generate(
        self,
        message: str,
        max_tokens: int = 150,
        temperature: float = 0.7,
        model: Optional[str] = None,
    ) -> GenerationResult:
        self.ensure_configured()
        client = self._client_factory()
        try:
            completion = await client.chat.completions.create(
                model=model or self.model,
                messages=[{"role": "user", "content": message}],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except Exception as exc:
            raise UpstreamError(Upstream.OPENAI, str(exc) or exc.__class__.__name__) from exc
        finally:
            await client.close()

        choices = getattr(completion, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content or not content.strip():
            raise UpstreamError(Upstream.OPENAI, "No response generated from OpenAI")

        usage = getattr(completion, "usage", None)
        result = GenerationResult(
            text=content.strip(),
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
            total_tokens=getattr(usage, "total_tokens", 0) or 0,
        )
        LOGGER.debug("OpenAI generation used %s tokens", result.total_tokens)
        return result

    async def compose(self, digest: str) -> str:
        """Turn an assignment digest into an SMS-sized reminder."""
        result = await self.generate(
            self.REMINDER_PROMPT.format(digest=digest),
            max_tokens=REMINDER_MAX_TOKENS,
            temperature=REMINDER_TEMPERATURE,
        )
        if len(result.text) > 160:
            LOGGER.info("Composed reminder is %s characters, longer than one SMS segment", len(result.text))
        return result.text

    async def answer_question(self, question: str) -> str:
        result = await self.generate(
            self.ANSWER_PROMPT.format(question=question),
            max_tokens=ANSWER_MAX_TOKENS,
            temperature=ANSWER_TEMPERATURE,
        )
        return result.text
