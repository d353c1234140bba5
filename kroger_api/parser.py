"""Helpers to turn raw Kroger API responses into validated records."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from .models import KrogerProduct, KrogerStore

logger = logging.getLogger(__name__)


def iter_data(payload: Any) -> Iterable[Dict[str, Any]]:
    """Yield the dict entries of a response `data` field (list or single object)."""

    if not isinstance(payload, dict):
        return
    data = payload.get("data")
    if isinstance(data, dict):
        yield data
    elif isinstance(data, list):
        for entry in data:
            if isinstance(entry, dict):
                yield entry


def parse_product(raw: Any) -> Optional[KrogerProduct]:
    """Validate a single product payload; malformed products are dropped."""

    if not isinstance(raw, dict):
        return None
    try:
        return KrogerProduct.model_validate(raw)
    except ValidationError as exc:
        logger.warning(
            "Dropping malformed catalog product %s (%s errors)",
            raw.get("productId"),
            exc.error_count(),
        )
        return None


def parse_products(payload: Any) -> List[KrogerProduct]:
    products: List[KrogerProduct] = []
    for raw in iter_data(payload):
        product = parse_product(raw)
        if product is not None:
            products.append(product)
    return products


def parse_stores(payload: Any) -> List[KrogerStore]:
    stores: List[KrogerStore] = []
    for raw in iter_data(payload):
        try:
            stores.append(KrogerStore.model_validate(raw))
        except ValidationError:
            logger.warning("Dropping malformed store record %s", raw.get("locationId"))
    return stores


def first_priced_product(products: Iterable[KrogerProduct]) -> Optional[KrogerProduct]:
    """Return the first product (provider relevance order) that carries a price."""

    for product in products:
        if product.primary_price is not None:
            return product
    return None
