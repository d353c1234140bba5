"""Reconcile recipe ingredients against live grocery catalog prices.

A run loads a batch of recipes, resolves every ingredient name to a catalog
product (product cache first, then one batched catalog lookup per recipe),
scores the match, lets the update policy decide, and writes back only the
recipes that changed. Recipes are processed one after another with a small
delay between them; a failure in one recipe is recorded and the run moves on.
Every run appends exactly one history record.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from kroger_api.lookup import KrogerProductLookup, ProductLookup
from kroger_api.models import KrogerProduct
from kroger_api.parser import first_priced_product

from ..config import Settings, get_settings
from ..db import get_session
from ..errors import SyncRunFailedError
from ..schemas import Ingredient, IngredientEnrichment, SyncResult
from .kroger import open_kroger_client
from .matching import calculate_confidence_score, normalize_ingredient_name
from .product_cache import ProductCache
from .recipes import RecipeSnapshot, RecipeStore, SqlRecipeStore
from .sync_history import SqlSyncHistoryStore, SyncHistoryStore
from .update_policy import DEFAULT_POLICY, UpdatePolicy

logger = logging.getLogger(__name__)

DEFAULT_LOCATION_ID = "01400943"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncConflictError(RuntimeError):
    """Another writer kept updating the recipe while we were syncing it."""


@dataclass
class SyncOptions:
    recipe_ids: Optional[List[str]] = None
    location_id: Optional[str] = None
    limit: int = 50
    force: bool = False
    triggered_by: str = "api"


@dataclass
class RecipeOutcome:
    updated: int = 0
    skipped: int = 0
    cache_hits: int = 0


@dataclass
class _RunCounters:
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    cache_hits: int = 0
    errors: List[str] = field(default_factory=list)

    def add(self, outcome: RecipeOutcome) -> None:
        self.processed += 1
        self.updated += outcome.updated
        self.skipped += outcome.skipped
        self.cache_hits += outcome.cache_hits


def build_enrichment(product: KrogerProduct, confidence: float, now: datetime) -> IngredientEnrichment:
    price = product.primary_price
    if price is None:
        raise ValueError(f"product {product.productId} has no price")
    return IngredientEnrichment(
        krogerProductId=product.productId,
        krogerPrice=price.promo or price.regular,
        krogerRegularPrice=price.regular,
        krogerPromoPrice=price.promo,
        krogerImageUrl=product.image_url,
        krogerSize=product.size,
        confidenceScore=confidence,
        lastUpdated=now,
    )


class ProductSyncOrchestrator:
    def __init__(
        self,
        *,
        recipes: RecipeStore,
        cache: ProductCache,
        lookup: ProductLookup,
        history: SyncHistoryStore,
        policy: UpdatePolicy = DEFAULT_POLICY,
        default_location_id: str = DEFAULT_LOCATION_ID,
        recipe_delay_seconds: float = 0.2,
        error_cap: int = 50,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.recipes = recipes
        self.cache = cache
        self.lookup = lookup
        self.history = history
        self.policy = policy
        self.default_location_id = default_location_id
        self.recipe_delay_seconds = recipe_delay_seconds
        self.error_cap = error_cap
        self.clock = clock
        self._sleep = sleep

    async def run(self, options: SyncOptions) -> SyncResult:
        """Run one sync; raises `SyncRunFailedError` (already recorded) on a fatal error."""
        started = time.monotonic()
        counters = _RunCounters()
        location_id = options.location_id or self.default_location_id

        try:
            recipes = await self._fetch_recipes(options)
            if not recipes:
                result = self._result(
                    counters,
                    success=False,
                    message="No recipes found to sync",
                    options=options,
                    started=started,
                )
                await self._record(result)
                return result

            for index, recipe in enumerate(recipes):
                if index and self.recipe_delay_seconds:
                    await self._sleep(self.recipe_delay_seconds)
                try:
                    outcome = await self.sync_recipe(recipe, location_id, force=options.force)
                except Exception as exc:
                    logger.warning("Recipe %s failed to sync: %s", recipe.id, exc)
                    counters.errors.append(f"Recipe {recipe.id}: {exc}")
                    continue
                counters.add(outcome)
        except Exception as exc:
            logger.exception("Product sync failed")
            counters.errors.insert(0, str(exc))
            result = self._result(
                counters,
                success=False,
                message=f"Sync failed: {exc}",
                options=options,
                started=started,
            )
            await self._record(result)
            raise SyncRunFailedError(result) from exc

        if counters.errors:
            message = f"Synced with {len(counters.errors)} errors"
        else:
            message = f"Successfully synced {counters.processed} recipes"
        result = self._result(
            counters,
            success=not counters.errors,
            message=message,
            options=options,
            started=started,
        )
        await self._record(result)
        logger.info(
            "Product sync completed in %sms",
            result.durationMs,
            extra={
                "recipes": result.recipesProcessed,
                "updated": result.productsUpdated,
                "skipped": result.productsSkipped,
                "cache_hits": result.cacheHits,
                "errors": len(counters.errors),
                "triggered_by": options.triggered_by,
            },
        )
        return result

    async def sync_recipe(self, recipe: RecipeSnapshot, location_id: str, *, force: bool = False) -> RecipeOutcome:
        outcome, ingredients = await self._reconcile(recipe.ingredients, location_id, force)
        if not outcome.updated:
            return outcome
        if await self._save(recipe, ingredients):
            return outcome

        logger.info("Recipe %s changed during sync; retrying against the latest version", recipe.id)
        latest = await self.recipes.get(recipe.id)
        if latest is None:
            raise SyncConflictError("recipe was removed during sync")
        outcome, ingredients = await self._reconcile(latest.ingredients, location_id, force)
        if not outcome.updated:
            return outcome
        if not await self._save(latest, ingredients):
            raise SyncConflictError("concurrent update conflict")
        return outcome

    async def _fetch_recipes(self, options: SyncOptions) -> List[RecipeSnapshot]:
        if options.recipe_ids:
            return await self.recipes.get_many(options.recipe_ids)
        return await self.recipes.list_page(options.limit)

    async def _save(self, recipe: RecipeSnapshot, ingredients: List[Any]) -> bool:
        return await self.recipes.save_ingredients(
            recipe.id,
            ingredients,
            synced_at=self.clock(),
            expected_version=recipe.sync_version,
        )

    async def _reconcile(
        self, raw_ingredients: List[Any], location_id: str, force: bool
    ) -> Tuple[RecipeOutcome, List[Any]]:
        outcome = RecipeOutcome()
        parsed = [self._parse_ingredient(raw) for raw in raw_ingredients]
        names: Dict[str, str] = {}
        for ingredient in parsed:
            if ingredient is not None and ingredient.clean_name:
                names.setdefault(normalize_ingredient_name(ingredient.clean_name), ingredient.clean_name)
        if not names:
            return outcome, list(raw_ingredients)

        products, outcome.cache_hits = await self._resolve_products(names, location_id)
        now = self.clock()

        rebuilt: List[Any] = []
        for raw, ingredient in zip(raw_ingredients, parsed):
            if ingredient is None or not ingredient.clean_name:
                rebuilt.append(raw)
                continue
            product = products.get(normalize_ingredient_name(ingredient.clean_name))
            if product is None:
                rebuilt.append(raw)
                continue

            confidence = calculate_confidence_score(ingredient.clean_name, product.match_text)
            if not force and not self.policy.should_update(ingredient, product, confidence, now=now):
                outcome.skipped += 1
                rebuilt.append(raw)
                continue

            outcome.updated += 1
            rebuilt.append({**raw, **build_enrichment(product, confidence, now).as_document()})
        return outcome, rebuilt

    async def _resolve_products(
        self, names: Dict[str, str], location_id: str
    ) -> Tuple[Dict[str, KrogerProduct], int]:
        keys = list(names)
        cached = await asyncio.gather(
            *(self.cache.get_cached_product(names[key], location_id) for key in keys)
        )
        resolved: Dict[str, KrogerProduct] = {}
        misses: List[str] = []
        for key, product in zip(keys, cached):
            if product is not None:
                resolved[key] = product
            else:
                misses.append(key)
        hits = len(resolved)

        if misses:
            found = await self.lookup.batch_search_products([names[key] for key in misses], location_id)
            for key in misses:
                product = first_priced_product(found.get(names[key]) or [])
                if product is None:
                    continue
                resolved[key] = product
                await self.cache.cache_product(names[key], location_id, product)
        return resolved, hits

    @staticmethod
    def _parse_ingredient(raw: Any) -> Optional[Ingredient]:
        if not isinstance(raw, dict):
            return None
        try:
            return Ingredient.model_validate(raw)
        except ValidationError as exc:
            # Leave malformed entries untouched rather than guessing.
            logger.warning(
                "Leaving malformed ingredient %r unsynced (%s errors)",
                raw.get("name"),
                exc.error_count(),
            )
            return None

    def _result(
        self,
        counters: _RunCounters,
        *,
        success: bool,
        message: str,
        options: SyncOptions,
        started: float,
    ) -> SyncResult:
        return SyncResult(
            success=success,
            message=message,
            recipesProcessed=counters.processed,
            productsUpdated=counters.updated,
            productsSkipped=counters.skipped,
            cacheHits=counters.cache_hits,
            errors=counters.errors[: self.error_cap],
            timestamp=self.clock().isoformat(),
            triggeredBy=options.triggered_by,
            durationMs=int((time.monotonic() - started) * 1000),
        )

    async def _record(self, result: SyncResult) -> None:
        try:
            await self.history.append(result, created_at=datetime.fromisoformat(result.timestamp))
        except Exception:
            logger.exception("Error logging sync history")


@asynccontextmanager
async def open_sync_orchestrator(state: Any, settings: Optional[Settings] = None) -> AsyncIterator[ProductSyncOrchestrator]:
    """Build an orchestrator wired to the app's shared cache and token cache."""
    settings = settings or get_settings()
    async with open_kroger_client(state, settings) as client:
        yield ProductSyncOrchestrator(
            recipes=SqlRecipeStore(get_session),
            cache=state.product_cache,
            lookup=KrogerProductLookup(client, max_concurrency=settings.kroger_max_concurrency),
            history=SqlSyncHistoryStore(get_session, error_cap=settings.sync_error_cap),
            policy=UpdatePolicy.from_settings(settings),
            default_location_id=settings.default_store_location_id,
            recipe_delay_seconds=settings.sync_recipe_delay_seconds,
            error_cap=settings.sync_error_cap,
        )
