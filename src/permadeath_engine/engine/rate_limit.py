"""Sliding-window action rate limiting.

The limiter is an explicit component with an injectable store instead of
module-level state, so a multi-process deployment can share the SQLite
store while tests and single-process servers use the in-memory one.

Example:
    >>> limiter = SlidingWindowRateLimiter(max_actions=30, window_seconds=60)
    >>> limiter.check("actor-1")
    True
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque
from typing import Callable, Protocol

from permadeath_engine.core.config import RateLimitSettings
from permadeath_engine.core.exceptions import InvalidArgumentError, RateLimitExceededError
from permadeath_engine.core.logging import get_logger
from permadeath_engine.storage.database import Database


logger = get_logger(__name__)


class RateLimitStore(Protocol):
    """Storage for hit timestamps keyed by limiter key."""

    def hit_if_below(self, key: str, now: float, window_start: float, limit: int) -> bool:
        """Record a hit at ``now`` if fewer than ``limit`` hits are after ``window_start``."""
        ...

    def window(self, key: str, window_start: float) -> tuple[int, float | None]:
        """Return the hit count after ``window_start`` and the oldest such hit."""
        ...

    def clear(self, key: str) -> None:
        """Forget all hits for ``key``."""
        ...


class MemoryRateLimitStore:
    """Per-process store guarded by a lock."""

    def __init__(self) -> None:
        self._hits: defaultdict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def _prune(self, key: str, window_start: float) -> deque[float]:
        hits = self._hits[key]
        while hits and hits[0] <= window_start:
            hits.popleft()
        return hits

    def hit_if_below(self, key: str, now: float, window_start: float, limit: int) -> bool:
        with self._lock:
            hits = self._prune(key, window_start)
            if len(hits) >= limit:
                return False
            hits.append(now)
            return True

    def window(self, key: str, window_start: float) -> tuple[int, float | None]:
        with self._lock:
            hits = self._prune(key, window_start)
            return len(hits), (hits[0] if hits else None)

    def clear(self, key: str) -> None:
        with self._lock:
            self._hits.pop(key, None)


class SqliteRateLimitStore:
    """Store shared by every process using the same database file."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def hit_if_below(self, key: str, now: float, window_start: float, limit: int) -> bool:
        return self.database.record_hit_if_below(key, now, window_start, limit)

    def window(self, key: str, window_start: float) -> tuple[int, float | None]:
        return self.database.prune_and_count_hits(key, window_start)

    def clear(self, key: str) -> None:
        self.database.clear_hits(key)


class SlidingWindowRateLimiter:
    """Allows at most ``max_actions`` hits per key in any ``window_seconds`` span.

    Attributes:
        max_actions: Hits allowed per window.
        window_seconds: Window length.
        store: Hit storage.
    """

    def __init__(
        self,
        max_actions: int = 30,
        window_seconds: float = 60.0,
        *,
        store: RateLimitStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_actions < 1:
            raise InvalidArgumentError("max_actions must be >= 1", argument="max_actions", value=max_actions)
        if window_seconds <= 0:
            raise InvalidArgumentError(
                "window_seconds must be positive",
                argument="window_seconds",
                value=window_seconds,
            )
        self.max_actions = max_actions
        self.window_seconds = window_seconds
        self.store = store or MemoryRateLimitStore()
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: RateLimitSettings,
        database: Database | None = None,
    ) -> SlidingWindowRateLimiter:
        """Build a limiter from configuration.

        The SQLite backend needs ``database``; without it the in-memory
        store is used.
        """
        store: RateLimitStore
        if settings.backend == "sqlite" and database is not None:
            store = SqliteRateLimitStore(database)
        else:
            store = MemoryRateLimitStore()
        return cls(settings.max_actions, settings.window_seconds, store=store)

    def _now(self, now: float | None) -> float:
        return self._clock() if now is None else now

    def check(self, key: str, now: float | None = None) -> bool:
        """Record a hit for ``key`` if the window has room.

        Returns:
            True if the action is allowed (and was counted).
        """
        current = self._now(now)
        allowed = self.store.hit_if_below(key, current, current - self.window_seconds, self.max_actions)
        if not allowed:
            logger.info("Rate limit exceeded", key=key, max_actions=self.max_actions)
        return allowed

    def remaining(self, key: str, now: float | None = None) -> int:
        """Hits still available to ``key`` in the current window."""
        current = self._now(now)
        count, _ = self.store.window(key, current - self.window_seconds)
        return max(0, self.max_actions - count)

    def retry_after(self, key: str, now: float | None = None) -> float:
        """Seconds until the oldest hit leaves the window (0 if not limited)."""
        current = self._now(now)
        count, oldest = self.store.window(key, current - self.window_seconds)
        if count < self.max_actions or oldest is None:
            return 0.0
        return max(0.0, oldest + self.window_seconds - current)

    def enforce(self, key: str, now: float | None = None) -> None:
        """Like ``check`` but raise instead of returning False.

        Raises:
            RateLimitExceededError: If the window is full.
        """
        current = self._now(now)
        if not self.check(key, current):
            raise RateLimitExceededError(
                "Too many actions, slow down",
                retry_after_seconds=round(self.retry_after(key, current), 3),
                actor_id=key,
            )

    def reset(self, key: str) -> None:
        """Forget all hits for ``key``."""
        self.store.clear(key)


__all__ = [
    "RateLimitStore",
    "MemoryRateLimitStore",
    "SqliteRateLimitStore",
    "SlidingWindowRateLimiter",
]
