"""Tests for the cache backends, the send-rate limiter and the transport factory."""

import json
from unittest.mock import Mock, patch

import pytest
import redis

from notifier.cache import InMemoryCache, RedisCache, build_cache
from notifier.config.environment import EnvironmentConfig
from notifier.config.models import TransportConfig
from notifier.transport import (
    RateLimiter,
    ResendTransport,
    SMTPTransport,
    TransportConfigurationError,
    build_transport,
)


class TestInMemoryCache:
    def test_set_get_delete(self, cache):
        cache.set("k", {"a": 1})
        assert cache.get("k") == {"a": 1}

        cache.delete("k")
        cache.delete("k")
        assert cache.get("k") is None

    def test_ttl_expiry(self, cache, clock):
        cache.set("k", "v", ttl_seconds=10)

        clock.advance(9)
        assert cache.get("k") == "v"
        clock.advance(1)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_no_ttl_keeps_value(self, cache, clock):
        cache.set("k", "v")
        clock.advance(10 ** 6)
        assert cache.get("k") == "v"


class TestRedisCache:
    def test_values_are_json_with_prefix(self):
        client = Mock()
        cache = RedisCache(client, prefix="test:")

        cache.set("k", {"a": 1}, ttl_seconds=2.5)

        client.setex.assert_called_once_with("test:k", 3, json.dumps({"a": 1}))

    def test_get_decodes(self):
        client = Mock()
        client.get.return_value = '{"a": 1}'

        assert RedisCache(client).get("k") == {"a": 1}
        client.get.assert_called_once_with("notifier:k")

    def test_errors_degrade_to_misses(self):
        client = Mock()
        client.get.side_effect = redis.ConnectionError("down")
        client.set.side_effect = redis.ConnectionError("down")
        client.delete.side_effect = redis.ConnectionError("down")
        cache = RedisCache(client)

        assert cache.get("k") is None
        cache.set("k", 1)
        cache.delete("k")

    def test_build_cache(self, clock):
        assert isinstance(build_cache("memory", clock=clock), InMemoryCache)
        with pytest.raises(ValueError):
            build_cache("redis", redis_url=None)
        with pytest.raises(ValueError):
            build_cache("memcached")

    def test_build_redis_cache_pings(self):
        client = Mock()
        with patch("notifier.cache.redis_cache.redis.from_url", return_value=client) as from_url:
            cache = build_cache("redis", redis_url="redis://localhost:6379/0")

        assert isinstance(cache, RedisCache)
        assert from_url.call_args.args[0] == "redis://localhost:6379/0"
        client.ping.assert_called_once()


class TestRateLimiter:
    def test_allows_up_to_limit(self, cache, clock):
        limiter = RateLimiter(cache, 3, clock=clock)

        assert limiter.try_acquire(2) is True
        assert limiter.remaining() == 1
        assert limiter.try_acquire(2) is False
        assert limiter.try_acquire(1) is True
        assert limiter.try_acquire() is False

    def test_acquire_up_to_grants_what_is_left(self, cache, clock):
        limiter = RateLimiter(cache, 5, clock=clock)

        assert limiter.acquire_up_to(8) == 5
        assert limiter.remaining() == 0
        assert limiter.acquire_up_to(3) == 0

        clock.advance(60)
        assert limiter.acquire_up_to(3) == 3
        assert limiter.remaining() == 2

    def test_acquire_up_to_when_disabled(self, cache):
        assert RateLimiter(cache, 0).acquire_up_to(500) == 500

    def test_window_resets(self, cache, clock):
        limiter = RateLimiter(cache, 1, clock=clock)
        assert limiter.try_acquire() is True
        assert limiter.seconds_until_reset() == 60

        clock.advance(30)
        assert limiter.try_acquire() is False
        assert limiter.seconds_until_reset() == 30

        clock.advance(30)
        assert limiter.try_acquire() is True

    def test_zero_disables(self, cache):
        limiter = RateLimiter(cache, 0)

        assert limiter.enabled is False
        assert all(limiter.try_acquire() for _ in range(1000))
        assert limiter.remaining() is None
        assert limiter.seconds_until_reset() == 0.0

    def test_limiters_sharing_a_cache_share_the_window(self, cache, clock):
        first = RateLimiter(cache, 2, clock=clock)
        second = RateLimiter(cache, 2, clock=clock)

        assert first.try_acquire() is True
        assert second.try_acquire() is True
        assert first.try_acquire() is False


class TestBuildTransport:
    @pytest.fixture
    def env(self):
        return EnvironmentConfig(
            smtp_host="smtp.example.com",
            smtp_port=587,
            mail_from_address="notify@example.com",
            resend_api_key="re_key",
        )

    def test_smtp(self, env):
        transport = build_transport(TransportConfig(type="smtp", timeout_seconds=7), env)

        assert isinstance(transport, SMTPTransport)
        assert transport.timeout == 7

    def test_resend(self, env):
        transport = build_transport(TransportConfig(type="resend"), env)

        assert isinstance(transport, ResendTransport)
        transport.close()

    def test_resend_without_key(self, env):
        env.resend_api_key = None
        with pytest.raises(TransportConfigurationError):
            build_transport(TransportConfig(type="resend"), env)

    def test_unknown_type(self, env):
        config = TransportConfig.model_construct(type="pigeon")
        with pytest.raises(TransportConfigurationError, match="Unknown transport type"):
            build_transport(config, env)
