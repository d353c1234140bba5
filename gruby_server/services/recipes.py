from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncContextManager, Callable, List, Optional, Protocol, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Recipe

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


@dataclass
class RecipeSnapshot:
    id: str
    ingredients: List[Any] = field(default_factory=list)
    sync_version: int = 0
    product_data_last_synced: Optional[datetime] = None


class RecipeStore(Protocol):
    async def get_many(self, recipe_ids: Sequence[str]) -> List[RecipeSnapshot]:
        ...

    async def get(self, recipe_id: str) -> Optional[RecipeSnapshot]:
        ...

    async def list_page(self, limit: int) -> List[RecipeSnapshot]:
        ...

    async def save_ingredients(
        self,
        recipe_id: str,
        ingredients: List[Any],
        *,
        synced_at: datetime,
        expected_version: int,
    ) -> bool:
        ...


def _snapshot(row: Recipe) -> RecipeSnapshot:
    ingredients = row.ingredients if isinstance(row.ingredients, list) else []
    return RecipeSnapshot(
        id=row.id,
        ingredients=list(ingredients),
        sync_version=row.sync_version or 0,
        product_data_last_synced=row.product_data_last_synced,
    )


class SqlRecipeStore:
    def __init__(self, session_factory: SessionFactory) -> None:
        self.session_factory = session_factory

    async def get_many(self, recipe_ids: Sequence[str]) -> List[RecipeSnapshot]:
        """Load recipes by id, keeping request order and skipping unknown ids."""
        ids = list(dict.fromkeys(recipe_ids))
        if not ids:
            return []
        async with self.session_factory() as session:
            result = await session.execute(select(Recipe).where(Recipe.id.in_(ids)))
            by_id = {row.id: row for row in result.scalars()}
        missing = [rid for rid in ids if rid not in by_id]
        if missing:
            logger.info("Skipping %s unknown recipe ids", len(missing))
        return [_snapshot(by_id[rid]) for rid in ids if rid in by_id]

    async def get(self, recipe_id: str) -> Optional[RecipeSnapshot]:
        async with self.session_factory() as session:
            row = await session.get(Recipe, recipe_id, populate_existing=True)
            return _snapshot(row) if row is not None else None

    async def list_page(self, limit: int) -> List[RecipeSnapshot]:
        async with self.session_factory() as session:
            result = await session.execute(select(Recipe).order_by(Recipe.id).limit(limit))
            return [_snapshot(row) for row in result.scalars()]

    async def save_ingredients(
        self,
        recipe_id: str,
        ingredients: List[Any],
        *,
        synced_at: datetime,
        expected_version: int,
    ) -> bool:
        """Write only if nobody else synced the recipe since it was read."""
        stmt = (
            update(Recipe)
            .where(Recipe.id == recipe_id, Recipe.sync_version == expected_version)
            .values(
                ingredients=ingredients,
                product_data_last_synced=synced_at,
                sync_version=Recipe.sync_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session:
            try:
                result = await session.execute(stmt)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        return result.rowcount == 1
