from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import get_settings
from .errors import SyncAuthError

logger = logging.getLogger(__name__)

CRON_HEADER = "x-vercel-cron"

_bearer = HTTPBearer(auto_error=False)


def _token_matches(creds: Optional[HTTPAuthorizationCredentials], secret: Optional[str]) -> bool:
    if not creds or not secret or creds.scheme.lower() != "bearer":
        return False
    return hmac.compare_digest(creds.credentials.encode("utf-8"), secret.encode("utf-8"))


def require_sync_token(creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)) -> None:
    settings = get_settings()
    if not settings.sync_api_secret:
        logger.error("SYNC_API_SECRET not configured; rejecting sync request")
        raise SyncAuthError()
    if not _token_matches(creds, settings.sync_api_secret):
        raise SyncAuthError()


def require_cron_caller(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> str:
    """Accept the scheduler (when trusted) or a bearer token; return who triggered the run."""
    settings = get_settings()
    if settings.sync_trust_cron_header and request.headers.get(CRON_HEADER) in ("1", "true"):
        return "cron"
    secret = settings.cron_secret or settings.sync_api_secret
    if _token_matches(creds, secret):
        return "manual"
    logger.warning(
        "Cron auth failed",
        extra={"has_cron_header": CRON_HEADER in request.headers, "has_auth": creds is not None},
    )
    raise SyncAuthError()
