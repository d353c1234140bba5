from __future__ import annotations

import unittest
from datetime import datetime, timezone

from pydantic import ValidationError

from gruby_server.config import Settings
from gruby_server.db import normalize_database_url
from gruby_server.schemas import Ingredient, IngredientEnrichment, SyncRequest
from gruby_server.startup import validate_settings


class IngredientSchemaTest(unittest.TestCase):
    def test_unknown_keys_are_kept(self):
        ingredient = Ingredient.model_validate({"name": "Rice", "quantity": "1 cup"})
        self.assertFalse(ingredient.is_synced)
        self.assertEqual(ingredient.model_dump()["quantity"], "1 cup")

    def test_partial_enrichment_is_rejected(self):
        with self.assertRaises(ValidationError):
            Ingredient.model_validate({"name": "Rice", "krogerProductId": "1", "krogerPrice": 2.0})
        with self.assertRaises(ValidationError):
            Ingredient.model_validate({"name": "Rice", "krogerSize": "2 lb"})

    def test_full_enrichment_is_accepted(self):
        enrichment = IngredientEnrichment(
            krogerProductId="1",
            krogerPrice=2.0,
            krogerRegularPrice=2.5,
            krogerPromoPrice=2.0,
            confidenceScore=0.9,
            lastUpdated=datetime(2025, 10, 20, tzinfo=timezone.utc),
        )
        document = {"name": " Rice ", **enrichment.as_document()}
        ingredient = Ingredient.model_validate(document)
        self.assertTrue(ingredient.is_synced)
        self.assertEqual(ingredient.clean_name, "Rice")
        self.assertEqual(document["lastUpdated"], "2025-10-20T00:00:00+00:00")

    def test_sync_request_rejects_non_positive_limit(self):
        with self.assertRaises(ValidationError):
            SyncRequest(limit=0)
        self.assertFalse(SyncRequest().force)


class StartupValidationTest(unittest.TestCase):
    def test_dev_only_warns(self):
        with self.assertLogs("gruby_server.startup", level="WARNING"):
            validate_settings(Settings(environment="dev"))

    def test_production_requires_secrets(self):
        with self.assertRaises(RuntimeError) as ctx:
            validate_settings(Settings(environment="prod", sync_api_secret="s"))
        self.assertIn("KROGER_CLIENT_ID", str(ctx.exception))
        self.assertIn("REDIS_URL", str(ctx.exception))

    def test_production_with_everything_configured(self):
        validate_settings(
            Settings(
                environment="prod",
                sync_api_secret="s",
                kroger_client_id="id",
                kroger_client_secret="secret",
                database_url="postgresql://db/gruby",
                redis_url="redis://cache:6379/0",
            )
        )

    def test_database_url_uses_asyncpg(self):
        self.assertEqual(
            normalize_database_url("postgres://u:p@db.internal/gruby"),
            "postgresql+asyncpg://u:p@db.internal/gruby",
        )
        self.assertEqual(
            normalize_database_url("postgresql://u:p@db.example.com/gruby?sslmode=require"),
            "postgresql+asyncpg://u:p@db.example.com/gruby?ssl=require",
        )

    def test_database_url_keeps_ssl_settings_as_given(self):
        self.assertEqual(
            normalize_database_url("postgresql://u:p@db.internal/gruby?ssl=verify-full"),
            "postgresql+asyncpg://u:p@db.internal/gruby?ssl=verify-full",
        )
        self.assertEqual(
            normalize_database_url("postgresql://u:p@db/gruby?sslmode=prefer&ssl=require"),
            "postgresql+asyncpg://u:p@db/gruby?ssl=require",
        )

    def test_non_postgres_urls_are_untouched(self):
        self.assertEqual(
            normalize_database_url("sqlite+aiosqlite:///:memory:"), "sqlite+aiosqlite:///:memory:"
        )
        self.assertIsNone(normalize_database_url(None))


if __name__ == "__main__":
    unittest.main()
