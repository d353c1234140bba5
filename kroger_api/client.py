"""Async HTTP client for the Kroger public API (OAuth client credentials)."""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from .models import KrogerProduct, KrogerStore
from .parser import parse_product, parse_products, parse_stores, iter_data

DEFAULT_API_BASE = "https://api.kroger.com/v1"
DEFAULT_TOKEN_URL = "https://api.kroger.com/v1/connect/oauth2/token"
DEFAULT_SCOPE = "product.compact"

# Used when the token response omits expires_in.
FALLBACK_TOKEN_TTL_SECONDS = 29 * 60
TOKEN_REFRESH_MARGIN_SECONDS = 60

RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


class KrogerError(RuntimeError):
    """Base class for Kroger client failures."""


class KrogerConfigError(KrogerError):
    """Raised when client credentials are not available in this process."""


class KrogerAPIError(KrogerError):
    """Raised when the API answers with a non-success status."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class KrogerAuthError(KrogerAPIError):
    """Raised when the token endpoint rejects our credentials."""


@dataclass
class ClientConfig:
    client_id: str | None = None
    client_secret: str | None = None
    api_base: str = DEFAULT_API_BASE
    token_url: str = DEFAULT_TOKEN_URL
    scope: str = DEFAULT_SCOPE
    timeout: float = 15.0
    max_retries: int = 3
    delay_range: tuple[float, float] = (0.25, 0.75)

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)


class TokenCache:
    """Holds the current access token; shared between short-lived clients."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    def get(self) -> Optional[str]:
        if self._token and self._clock() < self._expires_at:
            return self._token
        return None

    def store(self, token: str, expires_in: Optional[float]) -> None:
        if expires_in:
            ttl = max(float(expires_in) - TOKEN_REFRESH_MARGIN_SECONDS, 0.0)
        else:
            ttl = FALLBACK_TOKEN_TTL_SECONDS
        self._token = token
        self._expires_at = self._clock() + ttl

    def clear(self) -> None:
        self._token = None
        self._expires_at = 0.0


class KrogerClient:
    """Thin wrapper around httpx with token caching, retry, and response parsing."""

    def __init__(
        self,
        *,
        config: Optional[ClientConfig] = None,
        token_cache: Optional[TokenCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or ClientConfig()
        self.token_cache = token_cache or TokenCache()
        self._sleep = sleep
        self._token_lock = asyncio.Lock()
        self._client = httpx.AsyncClient(
            headers={"Accept": "application/json"},
            timeout=self.config.timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "KrogerClient":  # pragma: no cover - trivial
        return self

    async def __aexit__(self, *exc: object) -> None:  # pragma: no cover - trivial
        await self.aclose()

    async def get_access_token(self) -> str:
        token = self.token_cache.get()
        if token:
            return token
        if not self.config.has_credentials:
            # Never attempt the OAuth flow without the confidential secret.
            raise KrogerConfigError("Kroger API credentials not configured")

        async with self._token_lock:
            token = self.token_cache.get()
            if token:
                return token
            try:
                response = await self._client.post(
                    self.config.token_url,
                    data={"grant_type": "client_credentials", "scope": self.config.scope},
                    auth=(self.config.client_id or "", self.config.client_secret or ""),
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
            except httpx.HTTPError as exc:
                raise KrogerAuthError(f"Token request failed: {exc}") from exc

            if response.status_code != 200:
                raise KrogerAuthError(
                    f"Failed to get access token: {response.status_code}",
                    status_code=response.status_code,
                    body=response.text[:200],
                )
            payload = response.json()
            token = payload.get("access_token")
            if not token:
                raise KrogerAuthError("Token response did not include access_token")
            self.token_cache.store(token, payload.get("expires_in"))
            return token

    async def search_products(
        self,
        term: str,
        location_id: Optional[str] = None,
        limit: int = 10,
    ) -> List[KrogerProduct]:
        params: Dict[str, Any] = {"filter.term": term, "filter.limit": str(limit)}
        if location_id:
            params["filter.locationId"] = location_id
        payload = await self._get_json("/products", params)
        return parse_products(payload)

    async def get_product(self, product_id: str, location_id: Optional[str] = None) -> Optional[KrogerProduct]:
        params: Dict[str, Any] = {}
        if location_id:
            params["filter.locationId"] = location_id
        payload = await self._get_json(f"/products/{product_id}", params, allow_not_found=True)
        if payload is None:
            return None
        for raw in iter_data(payload):
            return parse_product(raw)
        return None

    async def search_stores(
        self,
        *,
        zip_code: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        radius_miles: int = 10,
        limit: int = 10,
    ) -> List[KrogerStore]:
        params: Dict[str, Any] = {
            "filter.radiusInMiles": str(radius_miles),
            "filter.limit": str(limit),
        }
        if zip_code:
            params["filter.zipCode.near"] = zip_code
        elif latitude is not None and longitude is not None:
            params["filter.lat.near"] = str(latitude)
            params["filter.lon.near"] = str(longitude)
        else:
            raise ValueError("Either zip_code or latitude/longitude must be provided")
        payload = await self._get_json("/locations", params)
        return parse_stores(payload)

    async def _get_json(
        self,
        path: str,
        params: Dict[str, Any],
        *,
        allow_not_found: bool = False,
    ) -> Optional[Dict[str, Any]]:
        url = f"{self.config.api_base.rstrip('/')}{path}"
        attempt = 0
        reauthenticated = False
        last_exc: Optional[Exception] = None

        while attempt < self.config.max_retries:
            attempt += 1
            token = await self.get_access_token()
            try:
                response = await self._client.get(
                    url, params=params, headers={"Authorization": f"Bearer {token}"}
                )
            except httpx.HTTPError as exc:  # network failure
                last_exc = exc
                await self._sleep_with_jitter(attempt)
                continue

            if response.status_code == 401 and not reauthenticated:
                # Token revoked or expired early; fetch a new one once.
                self.token_cache.clear()
                reauthenticated = True
                attempt -= 1
                continue
            if response.status_code == 404 and allow_not_found:
                return None
            if response.status_code in RETRYABLE_STATUSES:
                last_exc = KrogerAPIError(
                    f"Kroger API error: {response.status_code}",
                    status_code=response.status_code,
                    body=response.text[:200],
                )
                await self._sleep_with_jitter(attempt)
                continue
            if response.status_code >= 400:
                raise KrogerAPIError(
                    f"Kroger API error: {response.status_code}",
                    status_code=response.status_code,
                    body=response.text[:200],
                )
            return response.json()

        if isinstance(last_exc, KrogerAPIError):
            raise last_exc
        raise KrogerAPIError(f"Failed to reach Kroger API at {path}") from last_exc

    async def _sleep_with_jitter(self, attempt: int) -> None:
        if attempt >= self.config.max_retries:
            return
        base = random.uniform(*self.config.delay_range)
        backoff = min(3.0, 0.5 * (attempt - 1))
        await self._sleep(base + backoff)
