"""
Tests for the rate limiter component.

This module contains tests for the RateLimiter class, focusing on:
1. Counting against Redis and in-process storage
2. Rate limit enforcement
3. Falling back when Redis is unavailable
"""

from unittest.mock import AsyncMock, MagicMock

import pytest


class FakeMonotonic:
    def __init__(self):
        self.value = 1000.0

    def __call__(self):
        return self.value


@pytest.mark.asyncio
async def test_rate_limiter_check_with_redis():
    """A first request is allowed and starts the window."""
    from examprep.common.rate_limiter import RateLimiter, RedisRateLimitStorage

    redis_mock = AsyncMock()
    redis_mock.incr.return_value = 1
    redis_mock.expire.return_value = True
    redis_mock.ttl.return_value = 60

    rate_limiter = RateLimiter(RedisRateLimitStorage(redis_mock))

    result, reset_time = await rate_limiter.check("test:key:1", max_requests=5, period=60)

    assert result is True
    assert reset_time is None
    redis_mock.incr.assert_called_once_with("rate_limit:test:key:1:60")
    redis_mock.expire.assert_called_once_with("rate_limit:test:key:1:60", 60)


@pytest.mark.asyncio
async def test_rate_limiter_enforces_limits_with_redis():
    """Requests over the limit are rejected with the remaining window."""
    from examprep.common.rate_limiter import RateLimiter, RedisRateLimitStorage

    redis_mock = AsyncMock()
    redis_mock.incr.return_value = 6
    redis_mock.ttl.return_value = 30

    rate_limiter = RateLimiter(RedisRateLimitStorage(redis_mock))

    result, reset_time = await rate_limiter.check("test:key:2", max_requests=5, period=60)

    assert result is False
    assert reset_time == 30
    redis_mock.expire.assert_not_called()


@pytest.mark.asyncio
async def test_memory_storage_window_resets():
    from examprep.common.rate_limiter import MemoryRateLimitStorage, RateLimiter

    clock = FakeMonotonic()
    rate_limiter = RateLimiter(MemoryRateLimitStorage(clock=clock))

    for _ in range(3):
        allowed, _ = await rate_limiter.check("session:abc", max_requests=3, period=60)
        assert allowed is True

    allowed, reset_time = await rate_limiter.check("session:abc", max_requests=3, period=60)
    assert allowed is False
    assert reset_time == 60

    clock.value += 61
    allowed, reset_time = await rate_limiter.check("session:abc", max_requests=3, period=60)
    assert allowed is True
    assert reset_time is None


@pytest.mark.asyncio
async def test_memory_storage_keys_are_independent():
    from examprep.common.rate_limiter import MemoryRateLimitStorage, RateLimiter

    rate_limiter = RateLimiter(MemoryRateLimitStorage())

    assert (await rate_limiter.check("user:1", max_requests=1, period=60))[0] is True
    assert (await rate_limiter.check("user:1", max_requests=1, period=60))[0] is False
    assert (await rate_limiter.check("user:2", max_requests=1, period=60))[0] is True


@pytest.mark.asyncio
async def test_check_without_increment_does_not_count():
    from examprep.common.rate_limiter import MemoryRateLimitStorage, RateLimiter

    rate_limiter = RateLimiter(MemoryRateLimitStorage())

    for _ in range(5):
        allowed, _ = await rate_limiter.check("user:1", max_requests=1, period=60, increment=False)
        assert allowed is True


@pytest.mark.asyncio
async def test_redis_failure_falls_back_to_memory():
    """A failing Redis does not fail requests; counting continues in-process."""
    from examprep.common.rate_limiter import MemoryRateLimitStorage, RateLimiter, RedisRateLimitStorage

    redis_mock = AsyncMock()
    redis_mock.incr.side_effect = ConnectionError("redis is down")
    fallback = MemoryRateLimitStorage()

    rate_limiter = RateLimiter(RedisRateLimitStorage(redis_mock), fallback=fallback)

    assert (await rate_limiter.check("user:1", max_requests=1, period=60))[0] is True
    assert (await rate_limiter.check("user:1", max_requests=1, period=60))[0] is False


@pytest.mark.asyncio
async def test_enforce_raises_429_with_headers():
    from fastapi import HTTPException

    from examprep.common.rate_limiter import MemoryRateLimitStorage, RateLimiter

    rate_limiter = RateLimiter(MemoryRateLimitStorage(clock=FakeMonotonic()))
    await rate_limiter.enforce("user:1", max_requests=1, period=30)

    with pytest.raises(HTTPException) as exc_info:
        await rate_limiter.enforce("user:1", max_requests=1, period=30)

    assert exc_info.value.status_code == 429
    assert exc_info.value.headers["X-RateLimit-Limit"] == "1"
    assert exc_info.value.headers["Retry-After"] == "30"


@pytest.mark.asyncio
async def test_rate_limit_dependency_counts_per_key():
    from fastapi import HTTPException

    from examprep.common.rate_limiter import MemoryRateLimitStorage, RateLimiter

    rate_limiter = RateLimiter(MemoryRateLimitStorage())
    dependency = rate_limiter.rate_limit_dependency(
        max_requests=1, period=60, key_func=lambda request: request.headers["X-Session-ID"]
    )

    request = MagicMock()
    request.headers = {"X-Session-ID": "session-a"}

    assert await dependency(request) is True
    with pytest.raises(HTTPException) as exc_info:
        await dependency(request)
    assert exc_info.value.status_code == 429

    other = MagicMock()
    other.headers = {"X-Session-ID": "session-b"}
    assert await dependency(other) is True


def test_create_rate_limiter_without_redis_url():
    from examprep.common.rate_limiter import MemoryRateLimitStorage, create_rate_limiter

    assert isinstance(create_rate_limiter(None).storage, MemoryRateLimitStorage)
