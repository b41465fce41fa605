"""Sliding-window rate limiting keyed by (caller, endpoint).

``RateLimiter`` holds no counters itself; it asks a store. Use
``InMemoryRateLimitStore`` for a single instance and ``RedisRateLimitStore``
when several app instances share traffic. The limiter is built once in the
app factory and reached through ``request.app.state.rate_limiter``.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from fastapi import Depends, Request

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: int = 0


class RateLimitStore(Protocol):
    async def hit(self, key: str, limit: int, window: float) -> RateLimitDecision: ...

    async def reset(self, key: Optional[str] = None) -> None: ...


class InMemoryRateLimitStore:
    """Per-instance store: one deque of request timestamps per key.

    Keys whose timestamps have all expired are dropped, at most once per
    window.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = asyncio.Lock()
        self._last_sweep: Optional[float] = None

    def __len__(self) -> int:
        return len(self._hits)

    def _sweep(self, now: float, window: float) -> None:
        if self._last_sweep is not None and now - self._last_sweep < window:
            return
        self._last_sweep = now
        for key in [k for k, hits in self._hits.items() if hits[-1] <= now - window]:
            del self._hits[key]

    async def hit(self, key: str, limit: int, window: float) -> RateLimitDecision:
        async with self._lock:
            now = self._clock()
            self._sweep(now, window)
            hits = self._hits.get(key)
            if hits is not None:
                while hits and hits[0] <= now - window:
                    hits.popleft()
                if not hits:
                    del self._hits[key]
                    hits = None
            if hits is not None and len(hits) >= limit:
                retry_after = max(1, int(hits[0] + window - now + 0.999))
                return RateLimitDecision(False, 0, retry_after)
            if hits is None:
                hits = self._hits[key] = deque()
            hits.append(now)
            return RateLimitDecision(True, limit - len(hits))

    async def reset(self, key: Optional[str] = None) -> None:
        async with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)


# Prune, count and add in one server-side step. Returns {allowed, count, oldest score}.
SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
redis.call('ZREMRANGEBYSCORE', key, 0, now - window)
local count = redis.call('ZCARD', key)
if count >= limit then
  local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
  return {0, count, oldest[2] or ARGV[1]}
end
redis.call('ZADD', key, now, ARGV[4])
redis.call('EXPIRE', key, math.ceil(window) + 1)
return {1, count + 1, ARGV[1]}
"""


class RedisRateLimitStore:
    """Shared store: a sorted set of request timestamps per key."""

    def __init__(self, client, prefix: str = "ratelimit:"):
        self.client = client
        self.prefix = prefix
        self._hit_script = client.register_script(SLIDING_WINDOW_SCRIPT)

    @classmethod
    def from_settings(cls) -> "RedisRateLimitStore":
        from redis.asyncio import Redis

        return cls(Redis.from_url(str(settings.redis.dsn), decode_responses=True))

    async def hit(self, key: str, limit: int, window: float) -> RateLimitDecision:
        now = time.time()
        allowed, count, oldest = await self._hit_script(
            keys=[f"{self.prefix}{key}"],
            args=[repr(now), window, limit, f"{now}:{uuid.uuid4().hex[:8]}"],
        )
        if not int(allowed):
            retry_after = max(1, int(float(oldest) + window - now + 0.999))
            return RateLimitDecision(False, 0, retry_after)
        return RateLimitDecision(True, limit - int(count))

    async def reset(self, key: Optional[str] = None) -> None:
        if key is not None:
            await self.client.delete(f"{self.prefix}{key}")
            return
        async for redis_key in self.client.scan_iter(match=f"{self.prefix}*"):
            await self.client.delete(redis_key)


class RateLimitExceeded(Exception):
    def __init__(self, retry_after: int):
        super().__init__("Too many requests. Please try again later.")
        self.retry_after = retry_after


class RateLimiter:
    def __init__(
        self,
        store: RateLimitStore,
        *,
        limit: Optional[int] = None,
        window_seconds: Optional[float] = None,
    ) -> None:
        self.store = store
        self.limit = limit or settings.rate_limit.requests
        self.window_seconds = window_seconds or settings.rate_limit.window_seconds

    @staticmethod
    def key(caller_id: object, endpoint: str) -> str:
        return f"{caller_id}:{endpoint}"

    async def check(self, caller_id: object, endpoint: str) -> RateLimitDecision:
        decision = await self.store.hit(
            self.key(caller_id, endpoint), self.limit, self.window_seconds
        )
        if not decision.allowed:
            logger.info(
                "Rate limit hit on %s, retry after %ss",
                endpoint,
                decision.retry_after,
                extra={"user_id": caller_id},
            )
        return decision

    async def enforce(self, caller_id: object, endpoint: str) -> RateLimitDecision:
        decision = await self.check(caller_id, endpoint)
        if not decision.allowed:
            raise RateLimitExceeded(decision.retry_after)
        return decision


def build_rate_limiter() -> RateLimiter:
    if settings.rate_limit.backend == "redis":
        return RateLimiter(RedisRateLimitStore.from_settings())
    return RateLimiter(InMemoryRateLimitStore())


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def rate_limited(endpoint: str, current_user_dependency: Callable) -> Callable:
    """FastAPI dependency factory enforcing the limit for the current user."""

    async def dependency(
        user=Depends(current_user_dependency),
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> RateLimitDecision:
        return await limiter.enforce(user.id, endpoint)

    return dependency


__all__ = [
    "RateLimitDecision",
    "InMemoryRateLimitStore",
    "RedisRateLimitStore",
    "RateLimitExceeded",
    "RateLimiter",
    "build_rate_limiter",
    "get_rate_limiter",
    "rate_limited",
]
