from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from kroger_api.client import TokenCache

from .config import get_settings
from .db import dispose_engine, init_engine
from .errors import register_exception_handlers
from .observability import configure_logging, init_sentry
from .startup import validate_settings
from .routes import health, prices, sync
from .ratelimit import build_sync_rate_limiter, limiter
from .redis_util import get_redis
from .services.product_cache import build_product_cache

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("X-Frame-Options", "DENY")
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    redis_client = getattr(app.state, "redis", None)
    if redis_client is not None:
        await redis_client.aclose()
    await dispose_engine()


def create_app() -> FastAPI:
    s = get_settings()
    configure_logging(s)
    init_sentry(s)
    validate_settings(s)
    app = FastAPI(title=s.app_name, lifespan=lifespan)

    # Initialize DB engine if configured
    init_engine()

    # CORS
    origins: List[str] = s.cors_allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Security headers
    app.add_middleware(SecurityHeadersMiddleware)
    # Compression
    app.add_middleware(GZipMiddleware, minimum_size=1024)

    # Routers
    prefix = "/v1"
    app.include_router(health.router, prefix=prefix)
    app.include_router(sync.router, prefix=prefix)
    app.include_router(prices.router, prefix=prefix)

    # Shared state; Redis when configured, otherwise per-process stores
    redis_client = get_redis(s.redis_url)
    if redis_client is None:
        logger.info("REDIS_URL not set; product cache and sync rate limits are per-process")
    app.state.redis = redis_client
    app.state.limiter = limiter
    app.state.sync_rate_limiter = build_sync_rate_limiter(s)
    app.state.product_cache = build_product_cache(s, redis_client)
    app.state.kroger_token_cache = TokenCache()

    register_exception_handlers(app)

    # Metrics
    Instrumentator().instrument(app).expose(app, include_in_schema=False)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", "8000"))
    uvicorn.run("gruby_server.main:app", host="0.0.0.0", port=port, reload=False)
