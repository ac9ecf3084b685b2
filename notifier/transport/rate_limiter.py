"""Send-rate ceiling in front of the mail transport.

A fixed window: the first send after the window expires starts a new
60-second window with a fresh count. State lives in the cache capability so
several dispatcher processes sharing Redis share one ceiling.
"""

import threading
from datetime import datetime
from typing import Optional

from notifier.cache.base import Cache
from notifier.logging import get_logger
from notifier.utils.timestamps import Clock, utc_now

logger = get_logger(__name__, component="transport")

WINDOW_SECONDS = 60


class RateLimiter:
    """Allows at most ``limit_per_minute`` sends per window.

    Args:
        cache: Where the window state is kept
        limit_per_minute: Ceiling per window; 0 disables limiting
        clock: Source of "now"
        key: Cache key for the window state
    """

    def __init__(
        self,
        cache: Cache,
        limit_per_minute: int,
        clock: Clock = utc_now,
        key: str = "rate_limit:mail",
    ):
        self.cache = cache
        self.limit = limit_per_minute
        self.clock = clock
        self.key = key
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.limit > 0

    def _window(self, now: datetime) -> dict:
        state = self.cache.get(self.key)
        if not state or state.get("reset_at", 0) <= now.timestamp():
            state = {"count": 0, "reset_at": now.timestamp() + WINDOW_SECONDS}
        return state

    def try_acquire(self, count: int = 1) -> bool:
        """Reserve ``count`` sends in the current window.

        Returns:
            True if the sends fit under the ceiling (and were counted)
        """
        if not self.enabled:
            return True

        with self._lock:
            now = self.clock()
            state = self._window(now)
            if state["count"] + count > self.limit:
                logger.info(
                    f"Rate limit reached ({state['count']}/{self.limit} per minute)",
                    extra={"event": "transport.rate_limited", "limit": self.limit},
                )
                return False
            state["count"] += count
            self.cache.set(self.key, state, ttl_seconds=max(state["reset_at"] - now.timestamp(), 1))
            return True

    def acquire_up_to(self, count: int) -> int:
        """Reserve as many of ``count`` sends as the current window allows.

        Returns:
            Number of sends granted, between 0 and ``count``
        """
        if not self.enabled:
            return count

        with self._lock:
            now = self.clock()
            state = self._window(now)
            granted = min(count, max(self.limit - state["count"], 0))
            if granted < count:
                logger.info(
                    f"Rate limit reached ({state['count']}/{self.limit} per minute), "
                    f"granted {granted} of {count}",
                    extra={"event": "transport.rate_limited", "limit": self.limit},
                )
            if granted:
                state["count"] += granted
                self.cache.set(self.key, state, ttl_seconds=max(state["reset_at"] - now.timestamp(), 1))
            return granted

    def remaining(self) -> Optional[int]:
        """Sends still available in the current window (None when disabled)."""
        if not self.enabled:
            return None
        with self._lock:
            state = self._window(self.clock())
            return max(self.limit - state["count"], 0)

    def seconds_until_reset(self) -> float:
        if not self.enabled:
            return 0.0
        with self._lock:
            now = self.clock()
            state = self._window(now)
            return max(state["reset_at"] - now.timestamp(), 0.0)
