"""Server-side price lookups for the public cost comparison pages."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from kroger_api.lookup import KrogerProductLookup, ProductLookup
from kroger_api.models import KrogerProduct
from kroger_api.parser import first_priced_product

from ..config import Settings
from ..schemas import FoundProduct, PriceLookupResponse
from .kroger import open_kroger_client
from .product_cache import ProductCache

logger = logging.getLogger(__name__)


def _found_product(product: KrogerProduct) -> Optional[FoundProduct]:
    price = product.primary_price
    if price is None:
        return None
    return FoundProduct(
        name=product.description,
        price=price.regular,
        promoPrice=price.promo,
        brand=product.brand,
    )


def summarize_prices(
    ingredients: Sequence[str], products: Dict[str, Optional[KrogerProduct]]
) -> PriceLookupResponse:
    prices: Dict[str, Optional[float]] = {}
    found: Dict[str, FoundProduct] = {}
    valid: Dict[str, float] = {}
    for name in ingredients:
        product = products.get(name)
        summary = _found_product(product) if product is not None else None
        if summary is None:
            prices[name] = None
            continue
        prices[name] = summary.price
        found[name] = summary
        if summary.price > 0:
            valid[name] = summary.price
    return PriceLookupResponse(
        success=True,
        prices=prices,
        foundProducts=found,
        total=round(sum(valid.values()), 2),
        foundPrices=len(valid),
        totalIngredients=len(ingredients),
        ingredientPrices=valid,
    )


def unpriced_response(ingredients: Sequence[str]) -> PriceLookupResponse:
    return summarize_prices(ingredients, {})


class PriceLookupService:
    def __init__(self, *, cache: ProductCache, lookup: ProductLookup) -> None:
        self.cache = cache
        self.lookup = lookup

    async def lookup_prices(self, ingredients: Sequence[str], store_id: str) -> PriceLookupResponse:
        """Price each ingredient by its first priced catalog product; unknowns map to None."""
        names = [name for name in ingredients if name and name.strip()]
        products: Dict[str, Optional[KrogerProduct]] = {}
        misses: List[str] = []
        for name in dict.fromkeys(names):
            cached = await self.cache.get_cached_product(name, store_id)
            if cached is not None:
                products[name] = cached
            else:
                misses.append(name)

        if misses:
            found = await self.lookup.batch_search_products(misses, store_id)
            for name in misses:
                product = first_priced_product(found.get(name) or [])
                products[name] = product
                if product is not None:
                    await self.cache.cache_product(name, store_id, product)

        response = summarize_prices(ingredients, products)
        logger.info(
            "Priced %s of %s ingredients at %s",
            response.foundPrices,
            response.totalIngredients,
            store_id,
        )
        return response

async def price_ingredients(
    state: Any, settings: Settings, ingredients: Sequence[str], store_id: Optional[str] = None
) -> PriceLookupResponse:
    """Price lookups through the shared cache; no credentials means no prices."""
    store_id = store_id or settings.price_lookup_store_id
    if not (settings.kroger_client_id and settings.kroger_client_secret):
        logger.warning("Kroger credentials not configured; returning unpriced ingredients")
        return unpriced_response(ingredients)
    async with open_kroger_client(state, settings) as client:
        service = PriceLookupService(
            cache=state.product_cache,
            lookup=KrogerProductLookup(client, max_concurrency=settings.kroger_max_concurrency, results_per_term=5),
        )
        return await service.lookup_prices(ingredients, store_id)
