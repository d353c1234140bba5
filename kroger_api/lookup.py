"""Batch product lookup across many ingredient names for one store."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Protocol, Sequence

from .client import KrogerClient
from .models import KrogerProduct

logger = logging.getLogger(__name__)

DEFAULT_RESULTS_PER_TERM = 10


class ProductLookup(Protocol):
    async def batch_search_products(
        self, ingredient_names: Sequence[str], location_id: str
    ) -> Dict[str, List[KrogerProduct]]:
        ...


class KrogerProductLookup:
    """Fan out one search per ingredient with bounded concurrency.

    Names whose search fails are left out of the returned mapping, so callers
    treat them as "no match" instead of failing the whole batch.
    """

    def __init__(
        self,
        client: KrogerClient,
        *,
        max_concurrency: int = 4,
        results_per_term: int = DEFAULT_RESULTS_PER_TERM,
    ) -> None:
        self.client = client
        self.results_per_term = results_per_term
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def batch_search_products(
        self, ingredient_names: Sequence[str], location_id: str
    ) -> Dict[str, List[KrogerProduct]]:
        unique = list(dict.fromkeys(name for name in ingredient_names if name))
        found = await asyncio.gather(*(self._search_one(name, location_id) for name in unique))
        return {name: products for name, products in zip(unique, found) if products is not None}

    async def _search_one(self, name: str, location_id: str) -> Optional[List[KrogerProduct]]:
        async with self._semaphore:
            try:
                return await self.client.search_products(
                    name, location_id=location_id, limit=self.results_per_term
                )
            except Exception as exc:
                logger.warning("Product search failed for %r at %s: %s", name, location_id, exc)
                return None
