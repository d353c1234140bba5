from __future__ import annotations

import logging
from typing import Iterable, Tuple

from .config import Settings

logger = logging.getLogger(__name__)

RECOMMENDED_SETTINGS: Tuple[Tuple[str, str], ...] = (
    ("sync_api_secret", "SYNC_API_SECRET"),
    ("kroger_client_id", "KROGER_CLIENT_ID"),
    ("kroger_client_secret", "KROGER_CLIENT_SECRET"),
    ("database_url", "DATABASE_URL"),
)


def _collect_missing(settings: Settings, pairs: Iterable[Tuple[str, str]]) -> list[str]:
    missing: list[str] = []
    for attr, label in pairs:
        value = getattr(settings, attr, None)
        if value in (None, "", [], {}):
            missing.append(label)
    return missing


def validate_settings(settings: Settings) -> None:
    """Fail fast when mandatory secrets/config values are missing for non-dev envs."""
    environment = (settings.environment or "dev").lower()

    if environment in ("dev", "development", "test"):
        dev_missing = _collect_missing(settings, RECOMMENDED_SETTINGS)
        if dev_missing:
            logger.warning(
                "Running in dev without recommended secrets; product sync may be disabled",
                extra={"missing": dev_missing},
            )
        return

    required_pairs = list(RECOMMENDED_SETTINGS) + [("redis_url", "REDIS_URL")]
    missing = _collect_missing(settings, required_pairs)
    if missing:
        raise RuntimeError(
            f"Missing required configuration for environment '{environment}': {', '.join(sorted(missing))}"
        )
