"""
Rate Limiter Module

This module provides fixed-window rate limiting for the API. Counters live in
an injected storage: ``MemoryRateLimitStorage`` for a single instance or
``RedisRateLimitStorage`` when several instances must share their counters.
A failing Redis falls back to the in-process storage.
"""

import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

from fastapi import HTTPException, Request, status
from redis.asyncio import Redis

from examprep.common.logger import app_logger

logger = app_logger.getChild("rate_limiter")


class RateLimitStorage(ABC):
    """Counter storage for fixed rate-limit windows."""

    @abstractmethod
    async def hit(self, key: str, period: int, increment: bool = True) -> Tuple[int, int]:
        """
        Count a request against ``key``.

        Args:
            key: Counter key
            period: Window length in seconds
            increment: Whether to count this request or only read the counter

        Returns:
            Tuple of (requests in the current window, seconds until it resets)
        """


class MemoryRateLimitStorage(RateLimitStorage):
    """In-process counters; only valid for a single application instance."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._counters: Dict[str, Tuple[int, float]] = {}

    async def hit(self, key: str, period: int, increment: bool = True) -> Tuple[int, int]:
        now = self._clock()
        self._clean_expired(now)
        count, expire_time = self._counters.get(key, (0, now + period))
        if increment:
            count += 1
            self._counters[key] = (count, expire_time)
        return count, max(1, int(expire_time - now))

    def _clean_expired(self, now: float) -> None:
        expired = [key for key, (_, expire_time) in self._counters.items() if now >= expire_time]
        for key in expired:
            del self._counters[key]

    def clear(self) -> None:
        self._counters.clear()


class RedisRateLimitStorage(RateLimitStorage):
    """Counters shared through Redis ``INCR`` with a window-length expiry."""

    def __init__(self, redis: Redis):
        self.redis = redis

    async def hit(self, key: str, period: int, increment: bool = True) -> Tuple[int, int]:
        if increment:
            current = await self.redis.incr(key)
            if current == 1:
                await self.redis.expire(key, period)
        else:
            current = int(await self.redis.get(key) or 0)
        ttl = await self.redis.ttl(key)
        return int(current), max(1, ttl if ttl and ttl > 0 else period)


class RateLimiter:
    """
    Rate limiting utility to control request frequency.

    Examples:
        limiter = RateLimiter(MemoryRateLimitStorage())

        allowed, reset_time = await limiter.check("user:123", max_requests=10, period=60)

        by_session = limiter.rate_limit_dependency(10, 60, key_func=lambda r: r.headers["X-Session-ID"])

        @router.post("/exams")
        async def create(_: bool = Depends(by_session)):
            ...
    """

    def __init__(self, storage: RateLimitStorage, prefix: str = "rate_limit:",
                 fallback: Optional[RateLimitStorage] = None):
        """
        Initialize the rate limiter.

        Args:
            storage: Counter storage
            prefix: Key prefix
            fallback: Storage used when ``storage`` fails (in-process by default)
        """
        self.storage = storage
        self.prefix = prefix
        self.fallback = fallback or MemoryRateLimitStorage()

    async def check(self, key: str, max_requests: int, period: int,
                    increment: bool = True) -> Tuple[bool, Optional[int]]:
        """
        Check if the rate limit allows another request.

        Returns:
            Tuple of (is_allowed, reset_time); ``reset_time`` is None when allowed
        """
        storage_key = f"{self.prefix}{key}:{period}"
        try:
            count, reset = await self.storage.hit(storage_key, period, increment)
        except Exception as e:
            if self.storage is self.fallback:
                raise
            logger.error(f"Rate limit storage error, using in-process counters: {e}")
            count, reset = await self.fallback.hit(storage_key, period, increment)

        if count > max_requests:
            return False, reset
        return True, None

    async def enforce(self, key: str, max_requests: int, period: int) -> None:
        """
        Count a request and reject it when over the limit.

        Raises:
            HTTPException: 429 with ``X-RateLimit-Limit``, ``X-RateLimit-Reset``
                and ``Retry-After`` headers
        """
        allowed, reset_time = await self.check(key, max_requests, period)
        if not allowed:
            logger.warning(f"Rate limit exceeded for {key}")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Rate limit exceeded. Try again in {reset_time} seconds.",
                headers={
                    "X-RateLimit-Limit": str(max_requests),
                    "X-RateLimit-Reset": str(reset_time),
                    "Retry-After": str(reset_time),
                },
            )

    def rate_limit_dependency(self, max_requests: int, period: int,
                              key_func: Callable[[Request], str]):
        """
        Create a FastAPI dependency for rate limiting.

        Args:
            max_requests: Maximum number of requests allowed
            period: Time period in seconds
            key_func: Function deriving the counter key from the request

        Returns:
            FastAPI dependency function
        """
        async def dependency(request: Request) -> bool:
            await self.enforce(key_func(request), max_requests, period)
            return True

        return dependency


def create_rate_limiter(redis_url: Optional[str] = None) -> RateLimiter:
    """Build a limiter on Redis when ``redis_url`` is set, in-process otherwise."""
    if redis_url:
        logger.info("Using Redis rate limit storage")
        return RateLimiter(RedisRateLimitStorage(Redis.from_url(redis_url)))
    return RateLimiter(MemoryRateLimitStorage())
