from __future__ import annotations

from redis import asyncio as redis_asyncio

from .config import get_settings


def get_redis(url: str | None = None) -> redis_asyncio.Redis | None:
    url = url or get_settings().redis_url
    if not url:
        return None
    return redis_asyncio.from_url(url, decode_responses=True)
