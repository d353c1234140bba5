"""Request throttling.

`limiter` is the slowapi decorator limiter for public routes. The sync
endpoints use `FixedWindowRateLimiter`, whose check both tests and consumes
one unit of quota, so call it exactly once per attempted run.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from limits import RateLimitItemPerSecond
from limits.aio.storage import MemoryStorage, RedisStorage, Storage
from limits.aio.strategies import FixedWindowRateLimiter as FixedWindowStrategy
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import Settings

limiter = Limiter(key_func=get_remote_address)

SYNC_KEY_PREFIX = "gruby:ratelimit"


def client_identifier(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_at: float  # epoch seconds

    def retry_after(self, now: Optional[float] = None) -> int:
        now = time.time() if now is None else now
        return max(1, math.ceil(self.reset_at - now))


class FixedWindowRateLimiter:
    """Per-client fixed window over a `limits` storage."""

    def __init__(
        self,
        storage: Storage | None = None,
        *,
        max_requests: int = 10,
        window_seconds: int = 60,
        namespace: str = "sync",
    ) -> None:
        self.storage = storage if storage is not None else MemoryStorage()
        self.strategy = FixedWindowStrategy(self.storage)
        self.item = RateLimitItemPerSecond(max_requests, window_seconds)
        self.namespace = namespace

    async def check(self, client_id: str) -> RateLimitDecision:
        allowed = await self.strategy.hit(self.item, self.namespace, client_id)
        stats = await self.strategy.get_window_stats(self.item, self.namespace, client_id)
        return RateLimitDecision(
            allowed=allowed,
            remaining=stats.remaining if allowed else 0,
            reset_at=stats.reset_time,
        )


def redis_storage_uri(redis_url: str) -> str:
    return redis_url if redis_url.startswith("async+") else f"async+{redis_url}"


def build_sync_rate_limiter(settings: Settings) -> FixedWindowRateLimiter:
    storage: Storage
    if settings.redis_url:
        storage = RedisStorage(
            redis_storage_uri(settings.redis_url),
            implementation="redispy",
            key_prefix=SYNC_KEY_PREFIX,
        )
    else:
        storage = MemoryStorage()
    return FixedWindowRateLimiter(
        storage,
        max_requests=settings.sync_rate_limit_max_requests,
        window_seconds=settings.sync_rate_limit_window_seconds,
    )
