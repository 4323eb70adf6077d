"""
Durable phone number -> subscription registry.

The whole collection lives in one JSON document that is read and rewritten in
full on every mutation. Reads and mutations inside this process share one
lock, and each write replaces the file atomically. Separate processes sharing
the file are not coordinated.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import random
import string
import tempfile
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from .core.errors import DuplicateSubscription
from .core.models import Subscription

LOGGER = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_subscription_id() -> str:
    """Millisecond timestamp followed by a 9 character random suffix."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{int(time.time() * 1000)}{suffix}"


class SubscriptionRegistry:
    def __init__(
        self,
        path: Path | str,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.path = Path(path)
        self._clock = clock
        self._lock = threading.Lock()
        self._ensure_document()

    def _ensure_document(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.write_text("[]", encoding="utf-8")

    def _read(self) -> List[Subscription]:
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except (OSError, ValueError) as exc:
            LOGGER.error("Error reading subscriptions from %s: %s", self.path, exc)
            return []
        if not isinstance(payload, list):
            LOGGER.error("Subscriptions document %s is not a list; ignoring it", self.path)
            return []
        subscriptions = []
        for item in payload:
            try:
                subscriptions.append(Subscription.from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                LOGGER.warning("Skipping malformed subscription record in %s: %r (%s)", self.path, item, exc)
        return subscriptions

    def _write(self, subscriptions: List[Subscription]) -> None:
        """Write a sibling temp file, then swap it in; the live document is never partial."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump([item.to_dict() for item in subscriptions], fh, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except Exception:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise

    def create(
        self,
        phone_number: str,
        api_key: str,
        canvas_url: Optional[str] = None,
        days_ahead: Optional[int] = None,
    ) -> Subscription:
        """
        Store a new active subscription.

        Any existing record for the phone number, active or not, is a
        duplicate: an unsubscribed number must be deleted before it can
        subscribe again.
        """
        with self._lock:
            subscriptions = self._read()
            if any(item.phone_number == phone_number for item in subscriptions):
                raise DuplicateSubscription(phone_number)

            subscription = Subscription(
                id=generate_subscription_id(),
                phone_number=phone_number,
                api_key=api_key,
                canvas_url=canvas_url,
                days_ahead=days_ahead,
                created_at=self._clock().isoformat(),
                is_active=True,
            )
            subscriptions.append(subscription)
            self._write(subscriptions)
        LOGGER.info("Subscription %s created for %s", subscription.id, phone_number)
        return subscription

    def all(self) -> List[Subscription]:
        with self._lock:
            return self._read()

    def get_active(self) -> List[Subscription]:
        with self._lock:
            subscriptions = self._read()
        return [item for item in subscriptions if item.is_active]

    def get(self, phone_number: str) -> Optional[Subscription]:
        with self._lock:
            subscriptions = self._read()
        for item in subscriptions:
            if item.phone_number == phone_number:
                return item
        return None

    def deactivate(self, phone_number: str) -> bool:
        """Flip the record to inactive, keeping it. False when there is no record."""
        with self._lock:
            subscriptions = self._read()
            for item in subscriptions:
                if item.phone_number == phone_number:
                    item.is_active = False
                    self._write(subscriptions)
                    LOGGER.info("Subscription for %s deactivated", phone_number)
                    return True
        return False

    def delete(self, phone_number: str) -> bool:
        with self._lock:
            subscriptions = self._read()
            remaining = [item for item in subscriptions if item.phone_number != phone_number]
            if len(remaining) == len(subscriptions):
                return False
            self._write(remaining)
        LOGGER.info("Subscription for %s deleted", phone_number)
        return True
