"""Redis cache backend for deployments running several processes."""

import json
import math
from typing import Any, Optional

import redis

from notifier.logging import get_logger

from .base import Cache

logger = get_logger(__name__, component="cache")


class RedisCache(Cache):
    """JSON values in Redis under a key prefix.

    Redis failures degrade to cache misses (reads) and dropped writes, logged
    as warnings; callers always fall back to the source of truth.

    Args:
        client: Connected ``redis.Redis`` (``decode_responses=True``)
        prefix: Namespace prepended to every key
    """

    def __init__(self, client: "redis.Redis", prefix: str = "notifier:"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "notifier:") -> "RedisCache":
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        client.ping()
        logger.info("Redis cache connected", extra={"event": "cache.redis.connected"})
        return cls(client, prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.client.get(self._key(key))
        except redis.RedisError as e:
            logger.warning(
                f"Cache read failed: {e}",
                extra={"event": "cache.redis.read_failed", "cache_key": key},
            )
            return None
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        payload = json.dumps(value, default=str)
        try:
            if ttl_seconds is None:
                self.client.set(self._key(key), payload)
            else:
                self.client.setex(self._key(key), max(1, math.ceil(ttl_seconds)), payload)
        except redis.RedisError as e:
            logger.warning(
                f"Cache write failed: {e}",
                extra={"event": "cache.redis.write_failed", "cache_key": key},
            )

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis.RedisError as e:
            logger.warning(
                f"Cache delete failed: {e}",
                extra={"event": "cache.redis.delete_failed", "cache_key": key},
            )

    def close(self) -> None:
        self.client.close()
