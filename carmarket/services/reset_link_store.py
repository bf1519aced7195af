"""Short-lived store of password reset links for local development."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime


@dataclass(slots=True)
class ResetLink:
    link: str
    expires_at: float

    @property
    def expires_at_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.expires_at, tz=UTC)


class ResetLinkStore:
    """Latest reset link per email, dropped once its TTL elapses."""

    def __init__(
        self, ttl_seconds: int = 300, *, clock: Callable[[], float] = time.time
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._links: dict[str, ResetLink] = {}
        self._lock = threading.Lock()

    def put(self, email: str, link: str) -> ResetLink:
        entry = ResetLink(link=link, expires_at=self._clock() + self._ttl)
        with self._lock:
            self._links[email.lower()] = entry
        return entry

    def get(self, email: str) -> ResetLink | None:
        key = email.lower()
        with self._lock:
            entry = self._links.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._links[key]
                return None
            return entry

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._links.items() if entry.expires_at <= now]
            for key in expired:
                del self._links[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._links)
