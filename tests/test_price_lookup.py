from __future__ import annotations

from types import SimpleNamespace
import unittest
from unittest import IsolatedAsyncioTestCase, mock

from fastapi.testclient import TestClient

from kroger_api.models import KrogerProduct

from gruby_server.config import Settings
from gruby_server.main import app
from gruby_server.schemas import PriceLookupResponse
from gruby_server.services.price_lookup import PriceLookupService, price_ingredients
from gruby_server.services.product_cache import InMemoryCacheStore, ProductCache


def _product(product_id: str, description: str, regular: float, promo: float = 0) -> KrogerProduct:
    return KrogerProduct.model_validate(
        {
            "productId": product_id,
            "brand": "Kroger",
            "description": description,
            "items": [{"price": {"regular": regular, "promo": promo}}],
        }
    )


class FakeLookup:
    def __init__(self) -> None:
        self.calls = []

    async def batch_search_products(self, names, location_id):
        self.calls.append((list(names), location_id))
        catalog = {
            "Pasta": [_product("p1", "Kroger Spaghetti", 1.25)],
            "Bacon": [
                KrogerProduct.model_validate({"productId": "b0", "description": "Unpriced bacon"}),
                _product("b1", "Oscar Mayer Bacon", 6.49, promo=5.99),
            ],
        }
        return {name: catalog[name] for name in names if name in catalog}


class PriceLookupServiceTest(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.lookup = FakeLookup()
        self.service = PriceLookupService(cache=ProductCache(InMemoryCacheStore()), lookup=self.lookup)

    async def test_prices_first_priced_product_and_totals(self):
        response = await self.service.lookup_prices(["Pasta", "Bacon", "Saffron"], "01400929")

        self.assertTrue(response.success)
        self.assertEqual(response.prices, {"Pasta": 1.25, "Bacon": 6.49, "Saffron": None})
        self.assertEqual(response.foundProducts["Bacon"].promoPrice, 5.99)
        self.assertEqual(response.foundProducts["Bacon"].name, "Oscar Mayer Bacon")
        self.assertAlmostEqual(response.total, 7.74)
        self.assertEqual(response.foundPrices, 2)
        self.assertEqual(response.totalIngredients, 3)
        self.assertEqual(response.ingredientPrices, {"Pasta": 1.25, "Bacon": 6.49})
        self.assertEqual(self.lookup.calls, [(["Pasta", "Bacon", "Saffron"], "01400929")])

    async def test_second_lookup_is_served_from_cache(self):
        await self.service.lookup_prices(["Pasta"], "01400929")
        response = await self.service.lookup_prices(["pasta"], "01400929")
        self.assertEqual(response.prices, {"pasta": 1.25})
        self.assertEqual(len(self.lookup.calls), 1)

    async def test_missing_credentials_return_null_prices(self):
        state = SimpleNamespace(product_cache=ProductCache(InMemoryCacheStore()))
        response = await price_ingredients(state, Settings(), ["Pasta", "Eggs"])
        self.assertEqual(response.prices, {"Pasta": None, "Eggs": None})
        self.assertEqual(response.total, 0)
        self.assertEqual(response.foundPrices, 0)
        self.assertEqual(response.totalIngredients, 2)


def _priced(ingredients, total):
    prices = {name: (total / len(ingredients)) for name in ingredients}
    return PriceLookupResponse(
        prices=prices,
        foundProducts={},
        total=total,
        foundPrices=len(ingredients),
        totalIngredients=len(ingredients),
        ingredientPrices=prices,
    )


class PriceRoutesTestCase(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)

    def test_price_route_uses_requested_store(self):
        lookup = mock.AsyncMock(return_value=_priced(["Pasta"], 1.25))
        with mock.patch("gruby_server.routes.prices.price_ingredients", new=lookup):
            response = self.client.post(
                "/v1/kroger/price", json={"ingredients": ["Pasta"], "storeId": "01400943"}
            )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["total"], 1.25)
        args = lookup.await_args.args
        self.assertEqual(args[2], ["Pasta"])
        self.assertEqual(args[3], "01400943")

    def test_price_route_validates_payload(self):
        response = self.client.post("/v1/kroger/price", json={"storeId": "01400943"})
        self.assertEqual(response.status_code, 422)
        response = self.client.post("/v1/kroger/price", json={"ingredients": ["x"] * 51})
        self.assertEqual(response.status_code, 422)

    def test_comparisons_mix_real_and_estimated_prices(self):
        async def fake_prices(state, settings, ingredients, store_id=None):
            if "Chicken breast" in ingredients:
                return _priced(list(ingredients), 14.0)
            return PriceLookupResponse(
                prices={name: None for name in ingredients},
                foundProducts={},
                total=0,
                foundPrices=0,
                totalIngredients=len(ingredients),
                ingredientPrices={},
            )

        with mock.patch("gruby_server.routes.prices.price_ingredients", new=fake_prices):
            response = self.client.get("/v1/comparisons")
        self.assertEqual(response.status_code, 200)
        comparisons = response.json()["comparisons"]
        self.assertEqual([c["meal"] for c in comparisons], ["Chicken Stir Fry", "Pasta Carbonara", "Burger & Fries"])
        self.assertEqual(comparisons[0]["savingsPercent"], 85)
        self.assertFalse(comparisons[0]["homeCooked"]["estimated"])
        self.assertTrue(comparisons[1]["homeCooked"]["estimated"])
        self.assertEqual(comparisons[1]["homeCooked"]["price"], 17.5)


if __name__ == "__main__":
    unittest.main()
