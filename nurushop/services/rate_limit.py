"""Fixed-window request limits per client key.

Two counter stores: MemoryCounterStore keeps counts in this process only (not
durable, not shared between instances); RedisCounterStore shares them through
INCR/EXPIRE. RATE_LIMIT_BACKEND picks one.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable

from redis import asyncio as aioredis
from redis.exceptions import RedisError
from starlette.requests import Request

from nurushop.core.config import get_settings
from nurushop.core.logging import get_logger

log = get_logger(__name__)


@dataclass
class RateLimitResult:
    ok: bool
    remaining: int
    reset_in: int  # seconds until the window closes


class CounterStore(ABC):
    @abstractmethod
    async def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        """Count one request against key; return (count in window, seconds until reset)."""
        ...


class MemoryCounterStore(CounterStore):
    def __init__(self, sweep_interval: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._counters: dict[str, tuple[int, float]] = {}
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._next_sweep = clock() + sweep_interval

    def sweep(self, now: float | None = None) -> int:
        """Drop expired windows; return how many were removed."""
        now = self._clock() if now is None else now
        expired = [k for k, (_, reset_at) in self._counters.items() if now >= reset_at]
        for k in expired:
            del self._counters[k]
        self._next_sweep = now + self._sweep_interval
        return len(expired)

    async def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        now = self._clock()
        if now >= self._next_sweep:
            self.sweep(now)
        count, reset_at = self._counters.get(key, (0, 0.0))
        if now >= reset_at:
            count, reset_at = 0, now + window_seconds
        count += 1
        self._counters[key] = (count, reset_at)
        return count, max(0, int(reset_at - now))

    def __len__(self) -> int:
        return len(self._counters)


class RedisCounterStore(CounterStore):
    def __init__(self, redis: aioredis.Redis) -> None:
        self.redis = redis

    async def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        n = await self.redis.incr(key)
        if n == 1:
            await self.redis.expire(key, window_seconds)
            return n, window_seconds
        ttl = await self.redis.ttl(key)
        if ttl < 0:
            # Key lost its expiry (e.g. crash between INCR and EXPIRE); restart the window.
            await self.redis.expire(key, window_seconds)
            ttl = window_seconds
        return n, ttl


class RateLimiter:
    def __init__(self, store: CounterStore) -> None:
        self.store = store

    async def check(self, client_key: str, limit: int, window_seconds: int, prefix: str = "rl") -> RateLimitResult:
        key = f"{prefix}:{client_key}"
        try:
            count, reset_in = await self.store.hit(key, window_seconds)
        except RedisError:
            # Counter store unavailable: let the request through rather than fail every caller.
            log.warning("rate_limit_store_unavailable", key=key)
            return RateLimitResult(ok=True, remaining=limit, reset_in=window_seconds)
        if count > limit:
            log.info("rate_limited", key=key, count=count, limit=limit)
            return RateLimitResult(ok=False, remaining=0, reset_in=reset_in)
        return RateLimitResult(ok=True, remaining=limit - count, reset_in=reset_in)


@lru_cache
def get_rate_limiter() -> RateLimiter:
    settings = get_settings()
    if settings.rate_limit_backend == "redis":
        return RateLimiter(RedisCounterStore(aioredis.from_url(settings.redis_url)))
    return RateLimiter(MemoryCounterStore())


def get_client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or "unknown"
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "local"
