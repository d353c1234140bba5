from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from kroger_api.client import ClientConfig, KrogerClient, TokenCache

from ..config import Settings


def kroger_client_config(settings: Settings) -> ClientConfig:
    return ClientConfig(
        client_id=settings.kroger_client_id,
        client_secret=settings.kroger_client_secret,
        api_base=settings.kroger_api_base,
        token_url=settings.kroger_token_url,
        scope=settings.kroger_scope,
        timeout=settings.kroger_request_timeout_seconds,
    )


@asynccontextmanager
async def open_kroger_client(state: Any, settings: Settings) -> AsyncIterator[KrogerClient]:
    """Per-request client; the access token lives on app state across requests."""
    token_cache = getattr(state, "kroger_token_cache", None)
    if token_cache is None:
        token_cache = TokenCache()
        state.kroger_token_cache = token_cache
    client = KrogerClient(config=kroger_client_config(settings), token_cache=token_cache)
    try:
        yield client
    finally:
        await client.aclose()
