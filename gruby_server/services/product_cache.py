"""Cache of resolved ingredient -> catalog product lookups per store."""

from __future__ import annotations

import asyncio
import json
import logging
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Protocol

from pydantic import ValidationError
from redis import asyncio as redis_asyncio

from kroger_api.models import KrogerProduct

from ..config import Settings
from .matching import normalize_ingredient_name

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def cache_key(ingredient_name: str, location_id: str) -> str:
    return f"{location_id}:{normalize_ingredient_name(ingredient_name)}"


class CacheStore(Protocol):
    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    async def set(self, key: str, entry: Dict[str, Any], ttl_seconds: int) -> None:
        ...


class InMemoryCacheStore:
    """Bounded LRU map; the oldest entries are evicted past `max_entries`."""

    def __init__(self, max_entries: int = 5000) -> None:
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)
            return entry

    async def set(self, key: str, entry: Dict[str, Any], ttl_seconds: int) -> None:
        async with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)


class RedisCacheStore:
    def __init__(self, client: redis_asyncio.Redis, prefix: str = "productcache") -> None:
        self.client = client
        self.prefix = prefix

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = await self.client.get(f"{self.prefix}:{key}")
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding undecodable product cache entry %s", key)
            return None

    async def set(self, key: str, entry: Dict[str, Any], ttl_seconds: int) -> None:
        await self.client.setex(f"{self.prefix}:{key}", ttl_seconds, json.dumps(entry))


class ProductCache:
    """Freshness-checked view over a `CacheStore`.

    Entries older than `ttl` are treated as misses even if the backing store
    still holds them.
    """

    def __init__(
        self,
        store: CacheStore,
        *,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.ttl = ttl
        self.clock = clock

    async def get_cached_product(self, ingredient_name: str, location_id: str) -> Optional[KrogerProduct]:
        key = cache_key(ingredient_name, location_id)
        try:
            entry = await self.store.get(key)
        except Exception as exc:
            logger.warning("Product cache read failed for %s: %s", key, exc)
            return None
        if not entry:
            return None

        try:
            cached_at = datetime.fromisoformat(entry["cachedAt"])
        except (KeyError, TypeError, ValueError):
            return None
        if cached_at.tzinfo is None:
            cached_at = cached_at.replace(tzinfo=timezone.utc)
        if self.clock() - cached_at > self.ttl:
            return None

        try:
            return KrogerProduct.model_validate(entry.get("product"))
        except ValidationError:
            logger.warning("Discarding malformed cached product for %s", key)
            return None

    async def cache_product(self, ingredient_name: str, location_id: str, product: KrogerProduct) -> None:
        key = cache_key(ingredient_name, location_id)
        entry = {
            "ingredientName": ingredient_name,
            "locationId": location_id,
            "product": product.model_dump(),
            "cachedAt": self.clock().isoformat(),
        }
        try:
            await self.store.set(key, entry, int(self.ttl.total_seconds()))
        except Exception as exc:
            logger.warning("Product cache write failed for %s: %s", key, exc)


def build_product_cache(settings: Settings, redis_client: redis_asyncio.Redis | None = None) -> ProductCache:
    store: CacheStore
    if redis_client is not None:
        store = RedisCacheStore(redis_client)
    else:
        store = InMemoryCacheStore(max_entries=settings.product_cache_max_entries)
    return ProductCache(store, ttl=timedelta(hours=settings.product_cache_ttl_hours))
