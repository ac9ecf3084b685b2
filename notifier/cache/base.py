"""Cache capability shared by the template catalog and the rate limiter."""

from abc import ABC, abstractmethod
from typing import Any, Optional


class Cache(ABC):
    """Key/value store with per-entry time-to-live.

    Values must be JSON-serializable so every backend can hold them.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when missing or expired."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        """Store ``value``; ``ttl_seconds`` of None keeps it until evicted."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Evict ``key`` (no error when absent)."""

    def close(self) -> None:
        """Release backend resources."""
