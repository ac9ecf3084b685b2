"""Cache abstraction with in-memory and Redis backends."""

from typing import Optional

from notifier.utils.timestamps import Clock, utc_now

from .base import Cache
from .memory import InMemoryCache
from .redis_cache import RedisCache


def build_cache(backend: str, redis_url: Optional[str] = None, clock: Clock = utc_now) -> Cache:
    """Instantiate the configured backend.

    Raises:
        ValueError: If the backend is unknown or Redis has no URL
    """
    if backend == "memory":
        return InMemoryCache(clock=clock)
    if backend == "redis":
        if not redis_url:
            raise ValueError("The redis cache backend requires REDIS_URL")
        return RedisCache.from_url(redis_url)
    raise ValueError(f"Unknown cache backend: {backend}. Supported: memory, redis")


__all__ = ["Cache", "InMemoryCache", "RedisCache", "build_cache"]
