"""In-process cache backend."""

import threading
from typing import Any, Dict, Optional, Tuple

from notifier.utils.timestamps import Clock, utc_now

from .base import Cache


class InMemoryCache(Cache):
    """Dict-backed cache; expiry is evaluated lazily on read against ``clock``."""

    def __init__(self, clock: Clock = utc_now):
        self.clock = clock
        self._entries: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _now(self) -> float:
        return self.clock().timestamp()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= self._now():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        expires_at = self._now() + ttl_seconds if ttl_seconds is not None else None
        with self._lock:
            self._entries[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
