from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Protocol

from sqlalchemy import select

from ..models import ProductSyncRun
from ..schemas import SyncResult, SyncRunRecord
from .recipes import SessionFactory

logger = logging.getLogger(__name__)

HISTORY_DEFAULT_LIMIT = 10
HISTORY_MAX_LIMIT = 50


class SyncHistoryStore(Protocol):
    async def append(self, result: SyncResult, *, created_at: Optional[datetime] = None) -> None:
        ...

    async def list_recent(self, limit: int = HISTORY_DEFAULT_LIMIT) -> List[SyncRunRecord]:
        ...


def clamp_history_limit(limit: Optional[int]) -> int:
    if not limit or limit < 1:
        return HISTORY_DEFAULT_LIMIT
    return min(limit, HISTORY_MAX_LIMIT)


def _as_record(row: ProductSyncRun) -> SyncRunRecord:
    created_at = row.created_at
    if created_at is not None and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return SyncRunRecord(
        id=row.id,
        success=row.success,
        message=row.message,
        recipesProcessed=row.recipes_processed,
        productsUpdated=row.products_updated,
        productsSkipped=row.products_skipped,
        cacheHits=row.cache_hits,
        errors=list(row.errors or []),
        timestamp=created_at.isoformat(),
        triggeredBy=row.triggered_by,
        durationMs=row.duration_ms,
        createdAt=created_at,
    )


class SqlSyncHistoryStore:
    def __init__(self, session_factory: SessionFactory, *, error_cap: int = 50) -> None:
        self.session_factory = session_factory
        self.error_cap = error_cap

    async def append(self, result: SyncResult, *, created_at: Optional[datetime] = None) -> None:
        run = ProductSyncRun(
            success=result.success,
            message=result.message,
            recipes_processed=result.recipesProcessed,
            products_updated=result.productsUpdated,
            products_skipped=result.productsSkipped,
            cache_hits=result.cacheHits,
            errors=list(result.errors[: self.error_cap]),
            triggered_by=result.triggeredBy or "api",
            duration_ms=result.durationMs,
            created_at=created_at or datetime.now(timezone.utc),
        )
        async with self.session_factory() as session:
            session.add(run)
            try:
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def list_recent(self, limit: int = HISTORY_DEFAULT_LIMIT) -> List[SyncRunRecord]:
        stmt = (
            select(ProductSyncRun)
            .order_by(ProductSyncRun.created_at.desc(), ProductSyncRun.id.desc())
            .limit(clamp_history_limit(limit))
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [_as_record(row) for row in result.scalars()]
