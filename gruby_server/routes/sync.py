from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse

from ..auth import require_cron_caller, require_sync_token
from ..config import get_settings
from ..db import get_session
from ..errors import SyncRateLimitError, SyncUnavailableError, rate_limit_headers
from ..ratelimit import RateLimitDecision, client_identifier
from ..schemas import ErrorResponse, SyncHistoryResponse, SyncRequest, SyncResult
from ..services.product_sync import SyncOptions, open_sync_orchestrator
from ..services.sync_history import HISTORY_DEFAULT_LIMIT, SqlSyncHistoryStore, clamp_history_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


async def enforce_sync_rate_limit(request: Request) -> RateLimitDecision:
    client = client_identifier(request)
    try:
        decision = await request.app.state.sync_rate_limiter.check(client)
    except Exception as exc:
        logger.exception("Sync rate limiter unavailable", extra={"client": client})
        raise SyncUnavailableError("rate limiter unavailable") from exc
    if not decision.allowed:
        logger.warning("Sync rate limit exceeded", extra={"client": client})
        raise SyncRateLimitError(decision)
    return decision


@router.post("/products", response_model=SyncResult)
async def sync_products(
    request: Request,
    response: Response,
    payload: Optional[SyncRequest] = Body(default=None),
    _auth: None = Depends(require_sync_token),
    decision: RateLimitDecision = Depends(enforce_sync_rate_limit),
):
    s = get_settings()
    payload = payload or SyncRequest()
    options = SyncOptions(
        recipe_ids=payload.recipeIds,
        location_id=payload.locationId,
        limit=min(payload.limit or s.sync_default_limit, s.sync_max_limit),
        force=payload.force,
        triggered_by="api",
    )
    async with open_sync_orchestrator(request.app.state, s) as orchestrator:
        result = await orchestrator.run(options)
    response.headers.update(rate_limit_headers(decision))
    return result


@router.get("/products/cron", response_model=SyncResult)
async def sync_products_cron(request: Request, triggered_by: str = Depends(require_cron_caller)):
    s = get_settings()
    options = SyncOptions(limit=s.sync_cron_limit, triggered_by=triggered_by)
    async with open_sync_orchestrator(request.app.state, s) as orchestrator:
        return await orchestrator.run(options)


@router.get(
    "/products",
    response_model=SyncHistoryResponse,
    responses={500: {"model": ErrorResponse}},
)
async def sync_history(
    limit: int = Query(default=HISTORY_DEFAULT_LIMIT),
    _auth: None = Depends(require_sync_token),
):
    store = SqlSyncHistoryStore(get_session)
    try:
        history = await store.list_recent(clamp_history_limit(limit))
    except Exception:
        logger.exception("Error fetching sync history")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(message="Failed to fetch sync history").model_dump(exclude_none=True),
        )
    return SyncHistoryResponse(history=history)
