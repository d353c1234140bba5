from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from unittest import IsolatedAsyncioTestCase

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from gruby_server.models import Base
from gruby_server.schemas import SyncResult
from gruby_server.services.sync_history import SqlSyncHistoryStore, clamp_history_limit

START = datetime(2025, 10, 20, 6, 0, tzinfo=timezone.utc)


def _result(message: str, errors: list[str] | None = None) -> SyncResult:
    return SyncResult(
        success=not errors,
        message=message,
        recipesProcessed=1,
        errors=errors or [],
        timestamp=START.isoformat(),
        triggeredBy="cron",
        durationMs=12,
    )


class SyncHistoryStoreTest(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.Session = async_sessionmaker(self.engine, expire_on_commit=False)
        self.store = SqlSyncHistoryStore(self.Session, error_cap=2)

    async def asyncTearDown(self):
        await self.engine.dispose()

    async def test_recent_runs_are_newest_first(self):
        for i in range(3):
            await self.store.append(_result(f"run {i}"), created_at=START + timedelta(minutes=i))

        history = await self.store.list_recent(2)

        self.assertEqual([h.message for h in history], ["run 2", "run 1"])
        self.assertEqual(history[0].triggeredBy, "cron")
        self.assertEqual(history[0].durationMs, 12)
        self.assertEqual(history[0].createdAt, START + timedelta(minutes=2))

    async def test_stored_errors_are_capped(self):
        await self.store.append(_result("bad", errors=["a", "b", "c"]))
        history = await self.store.list_recent()
        self.assertEqual(history[0].errors, ["a", "b"])
        self.assertFalse(history[0].success)

    def test_clamp_history_limit(self):
        self.assertEqual(clamp_history_limit(None), 10)
        self.assertEqual(clamp_history_limit(0), 10)
        self.assertEqual(clamp_history_limit(25), 25)
        self.assertEqual(clamp_history_limit(1000), 50)


if __name__ == "__main__":
    unittest.main()
