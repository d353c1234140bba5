from __future__ import annotations

from fastapi import APIRouter, Request

from ..config import get_settings
from ..ratelimit import limiter
from ..schemas import ComparisonResponse, PriceLookupRequest, PriceLookupResponse
from ..services.cost_comparison import DEMO_MEALS, compare_demo_meal
from ..services.price_lookup import price_ingredients

router = APIRouter(tags=["prices"])


@router.post("/kroger/price", response_model=PriceLookupResponse)
@limiter.limit("30/minute")
async def kroger_price(request: Request, payload: PriceLookupRequest):
    s = get_settings()
    return await price_ingredients(request.app.state, s, payload.ingredients, payload.storeId)


@router.get("/comparisons", response_model=ComparisonResponse)
@limiter.limit("30/minute")
async def comparisons(request: Request):
    s = get_settings()
    results = []
    for demo in DEMO_MEALS:
        prices = await price_ingredients(request.app.state, s, demo.ingredients)
        results.append(compare_demo_meal(demo, prices))
    return ComparisonResponse(comparisons=results)
