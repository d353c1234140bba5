"""Output helpers for catalog search results."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Iterable, List, Mapping

from .models import KrogerProduct

PRODUCT_FIELDS = ["productId", "upc", "brand", "description", "price", "regularPrice", "promoPrice", "size", "imageUrl"]


def ensure_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def product_row(product: KrogerProduct) -> dict[str, object]:
    price = product.primary_price
    return {
        "productId": product.productId,
        "upc": product.upc,
        "brand": product.brand,
        "description": product.description,
        "price": product.resolved_price,
        "regularPrice": price.regular if price else None,
        "promoPrice": price.promo if price else None,
        "size": product.size,
        "imageUrl": product.image_url,
    }


def product_rows(products: Iterable[KrogerProduct]) -> List[dict[str, object]]:
    return [product_row(p) for p in products]


def write_jsonl(records: Iterable[Mapping[str, object]], path: Path) -> None:
    ensure_dir(path)
    with path.open("w", encoding="utf-8") as fh:
        for record in records:
            fh.write(json.dumps(record, ensure_ascii=False))
            fh.write("\n")


def write_csv(records: Iterable[Mapping[str, object]], path: Path, *, fieldnames: list[str] = PRODUCT_FIELDS) -> None:
    ensure_dir(path)
    with path.open("w", encoding="utf-8", newline="") as fh:
        writer = csv.DictWriter(fh, fieldnames=fieldnames)
        writer.writeheader()
        for record in records:
            writer.writerow({key: record.get(key) for key in fieldnames})
