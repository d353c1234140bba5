from __future__ import annotations

from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .ratelimit import RateLimitDecision
from .schemas import SyncResult


class SyncAuthError(Exception):
    """Missing or wrong bearer token on a sync endpoint."""


class SyncRateLimitError(Exception):
    def __init__(self, decision: RateLimitDecision) -> None:
        super().__init__("Rate limit exceeded")
        self.decision = decision


class SyncUnavailableError(Exception):
    """A collaborator the sync endpoints depend on could not be reached."""


class SyncRunFailedError(Exception):
    """A sync run aborted; `result` holds the counts gathered before the failure."""

    def __init__(self, result: SyncResult) -> None:
        super().__init__(result.message)
        self.result = result


def rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    return {
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": datetime.fromtimestamp(decision.reset_at, tz=timezone.utc).isoformat(),
    }


async def _sync_auth_handler(request: Request, exc: SyncAuthError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"success": False, "message": "Unauthorized"},
    )


async def _sync_rate_limit_handler(request: Request, exc: SyncRateLimitError) -> JSONResponse:
    decision = exc.decision
    headers = rate_limit_headers(decision)
    headers["X-RateLimit-Remaining"] = "0"
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "success": False,
            "message": "Rate limit exceeded",
            "retryAfter": decision.retry_after(),
        },
        headers=headers,
    )


async def _sync_unavailable_handler(request: Request, exc: SyncUnavailableError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": f"Sync failed: {exc}"},
    )


async def _sync_failed_handler(request: Request, exc: SyncRunFailedError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=exc.result.model_dump(mode="json"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SyncAuthError, _sync_auth_handler)
    app.add_exception_handler(SyncRateLimitError, _sync_rate_limit_handler)
    app.add_exception_handler(SyncUnavailableError, _sync_unavailable_handler)
    app.add_exception_handler(SyncRunFailedError, _sync_failed_handler)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
