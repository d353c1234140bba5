from __future__ import annotations

import json
import unittest
from datetime import datetime, timedelta, timezone
from unittest import IsolatedAsyncioTestCase, mock

from redis import asyncio as redis_asyncio

from kroger_api.models import KrogerProduct

from gruby_server.config import Settings
from gruby_server.services.product_cache import (
    InMemoryCacheStore,
    ProductCache,
    RedisCacheStore,
    build_product_cache,
    cache_key,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2025, 10, 20, 8, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


class BrokenStore:
    async def get(self, key):
        raise ConnectionError("redis down")

    async def set(self, key, entry, ttl_seconds):
        raise ConnectionError("redis down")


def _product() -> KrogerProduct:
    return KrogerProduct.model_validate(
        {
            "productId": "0000000004011",
            "brand": "Kroger",
            "description": "Bananas",
            "items": [{"price": {"regular": 0.59, "promo": 0}, "size": "1 lb"}],
        }
    )


class ProductCacheTest(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.clock = FakeClock()
        self.store = InMemoryCacheStore(max_entries=10)
        self.cache = ProductCache(self.store, ttl=timedelta(hours=24), clock=self.clock)

    async def test_round_trip_within_ttl(self):
        await self.cache.cache_product("Bananas", "01400943", _product())
        self.clock.now += timedelta(hours=23)
        cached = await self.cache.get_cached_product("bananas", "01400943")
        self.assertIsNotNone(cached)
        self.assertEqual(cached.productId, "0000000004011")
        self.assertEqual(cached.resolved_price, 0.59)

    async def test_expired_entry_is_a_miss(self):
        await self.cache.cache_product("bananas", "01400943", _product())
        self.clock.now += timedelta(hours=24, seconds=1)
        self.assertIsNone(await self.cache.get_cached_product("bananas", "01400943"))

    async def test_keys_are_per_location(self):
        await self.cache.cache_product("bananas", "01400943", _product())
        self.assertIsNone(await self.cache.get_cached_product("bananas", "01400929"))

    async def test_name_variations_share_a_key(self):
        self.assertEqual(cache_key("  Green  Onions ", "1"), cache_key("green onions", "1"))

    async def test_malformed_entry_is_a_miss(self):
        await self.store.set(cache_key("bananas", "1"), {"cachedAt": "not a date"}, 60)
        self.assertIsNone(await self.cache.get_cached_product("bananas", "1"))
        await self.store.set(
            cache_key("apples", "1"), {"cachedAt": self.clock.now.isoformat(), "product": {}}, 60
        )
        self.assertIsNone(await self.cache.get_cached_product("apples", "1"))

    async def test_store_failures_degrade_to_misses(self):
        cache = ProductCache(BrokenStore(), clock=self.clock)
        await cache.cache_product("bananas", "1", _product())
        self.assertIsNone(await cache.get_cached_product("bananas", "1"))

    async def test_in_memory_store_evicts_least_recently_used(self):
        store = InMemoryCacheStore(max_entries=2)
        await store.set("a", {"v": 1}, 60)
        await store.set("b", {"v": 2}, 60)
        await store.get("a")
        await store.set("c", {"v": 3}, 60)
        self.assertEqual(len(store), 2)
        self.assertIsNone(await store.get("b"))
        self.assertEqual(await store.get("a"), {"v": 1})

class RedisCacheStoreTest(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.client = mock.MagicMock(spec=redis_asyncio.Redis)
        self.client.get = mock.AsyncMock(return_value=None)
        self.client.setex = mock.AsyncMock(return_value=True)
        self.store = RedisCacheStore(self.client)

    async def test_set_writes_prefixed_key_with_ttl(self):
        await self.store.set("01400943:bananas", {"v": 1}, 86400)
        key, ttl, payload = self.client.setex.await_args.args
        self.assertEqual(key, "productcache:01400943:bananas")
        self.assertEqual(ttl, 86400)
        self.assertEqual(json.loads(payload), {"v": 1})

    async def test_get_reads_prefixed_key(self):
        self.client.get.return_value = b'{"v": 2}'
        self.assertEqual(await self.store.get("01400943:bananas"), {"v": 2})
        self.client.get.assert_awaited_once_with("productcache:01400943:bananas")

    async def test_missing_and_undecodable_entries_are_misses(self):
        self.assertIsNone(await self.store.get("absent"))
        self.client.get.return_value = b"not json"
        with self.assertLogs("gruby_server.services.product_cache", level="WARNING"):
            self.assertIsNone(await self.store.get("garbled"))

    async def test_product_cache_round_trip_through_redis_ttl(self):
        clock = FakeClock()
        cache = ProductCache(self.store, ttl=timedelta(hours=12), clock=clock)
        await cache.cache_product("Bananas", "01400943", _product())

        key, ttl, payload = self.client.setex.await_args.args
        self.assertEqual(key, "productcache:" + cache_key("Bananas", "01400943"))
        self.assertEqual(ttl, 12 * 3600)

        self.client.get.return_value = payload.encode()
        cached = await cache.get_cached_product("bananas", "01400943")
        self.assertEqual(cached.productId, "0000000004011")

    async def test_built_from_settings_when_redis_is_available(self):
        cache = build_product_cache(Settings(product_cache_ttl_hours=6), self.client)
        self.assertIsInstance(cache.store, RedisCacheStore)
        self.assertEqual(cache.ttl, timedelta(hours=6))
        self.assertIsInstance(build_product_cache(Settings()).store, InMemoryCacheStore)



if __name__ == "__main__":
    unittest.main()
