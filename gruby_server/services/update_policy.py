"""Decide whether a freshly matched catalog product should overwrite an ingredient."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from kroger_api.models import KrogerProduct

from ..config import Settings
from ..schemas import Ingredient


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class UpdatePolicy:
    min_confidence: float = 0.5
    confidence_margin: float = 0.1
    stale_after: timedelta = timedelta(days=7)
    price_tolerance: float = 0.01

    @classmethod
    def from_settings(cls, settings: Settings) -> "UpdatePolicy":
        return cls(
            min_confidence=settings.sync_min_confidence,
            confidence_margin=settings.sync_confidence_margin,
            stale_after=timedelta(days=settings.sync_stale_after_days),
            price_tolerance=settings.sync_price_tolerance,
        )

    def should_update(
        self,
        ingredient: Ingredient,
        product: KrogerProduct,
        confidence: float,
        *,
        now: Optional[datetime] = None,
    ) -> bool:
        if not ingredient.is_synced:
            return True
        # A weak match never replaces data we already have.
        if confidence < self.min_confidence:
            return False

        now = now or _utcnow()
        if ingredient.lastUpdated is not None and now - _as_aware(ingredient.lastUpdated) > self.stale_after:
            return True

        if confidence > (ingredient.confidenceScore or 0.0) + self.confidence_margin:
            return True

        new_price = product.resolved_price
        if new_price is None or ingredient.krogerPrice is None:
            return False
        return abs(new_price - ingredient.krogerPrice) >= self.price_tolerance


DEFAULT_POLICY = UpdatePolicy()


def should_update_ingredient(
    ingredient: Ingredient,
    product: KrogerProduct,
    confidence: float,
    *,
    now: Optional[datetime] = None,
    policy: UpdatePolicy = DEFAULT_POLICY,
) -> bool:
    """Return True when `product` should replace the ingredient's stored match.

    Never-synced ingredients always update. Otherwise a match below the
    confidence threshold is skipped; a stale record, a clearly better match,
    or a meaningful price change triggers an update.
    """
    return policy.should_update(ingredient, product, confidence, now=now)
