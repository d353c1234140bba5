"""Command-line interface for manual Kroger catalog checks."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Iterable

from .client import ClientConfig, KrogerClient, KrogerError
from .writer import product_rows, write_csv, write_jsonl


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Kroger catalog tooling")
    parser.add_argument(
        "--client-id",
        default=os.environ.get("KROGER_CLIENT_ID"),
        help="OAuth client id (default: KROGER_CLIENT_ID env)",
    )
    parser.add_argument(
        "--client-secret",
        default=os.environ.get("KROGER_CLIENT_SECRET"),
        help="OAuth client secret (default: KROGER_CLIENT_SECRET env)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search", help="Search products by term")
    search.add_argument("term", help="Search term, e.g. 'chicken breast'")
    search.add_argument(
        "--location-id",
        default=os.environ.get("DEFAULT_STORE_LOCATION_ID", "01400943"),
        help="Store location id used for pricing",
    )
    search.add_argument("--limit", type=int, default=10)
    search.add_argument(
        "--output-json",
        type=Path,
        default=None,
        help="Optional path to write JSONL results",
    )
    search.add_argument(
        "--output-csv",
        type=Path,
        default=None,
        help="Optional path to write CSV results",
    )
    search.set_defaults(func=run_search)

    product = subparsers.add_parser("product", help="Fetch a single product by id")
    product.add_argument("product_id")
    product.add_argument("--location-id", default=None)
    product.set_defaults(func=run_product)

    stores = subparsers.add_parser("stores", help="Find stores near a zip code or coordinates")
    group = stores.add_mutually_exclusive_group(required=True)
    group.add_argument("--zip-code")
    group.add_argument("--lat-lon", nargs=2, type=float, metavar=("LAT", "LON"))
    stores.add_argument("--radius-miles", type=int, default=10)
    stores.add_argument("--limit", type=int, default=10)
    stores.set_defaults(func=run_stores)

    return parser


def _client(args: argparse.Namespace) -> KrogerClient:
    return KrogerClient(config=ClientConfig(client_id=args.client_id, client_secret=args.client_secret))


async def run_search(args: argparse.Namespace) -> None:
    async with _client(args) as client:
        products = await client.search_products(args.term, location_id=args.location_id, limit=args.limit)

    logging.info("Found %s products for %r", len(products), args.term)
    rows = product_rows(products)
    if args.output_json:
        write_jsonl(rows, args.output_json)
        logging.info("Wrote JSONL -> %s", args.output_json)
    if args.output_csv:
        write_csv(rows, args.output_csv)
        logging.info("Wrote CSV -> %s", args.output_csv)
    if not (args.output_json or args.output_csv):
        print(json.dumps(rows, indent=2))


async def run_product(args: argparse.Namespace) -> None:
    async with _client(args) as client:
        product = await client.get_product(args.product_id, location_id=args.location_id)
    if product is None:
        logging.warning("Product %s not found", args.product_id)
        return
    print(json.dumps(product.model_dump(), indent=2))


async def run_stores(args: argparse.Namespace) -> None:
    kwargs: dict = {"radius_miles": args.radius_miles, "limit": args.limit}
    if args.zip_code:
        kwargs["zip_code"] = args.zip_code
    else:
        kwargs["latitude"], kwargs["longitude"] = args.lat_lon
    async with _client(args) as client:
        stores = await client.search_stores(**kwargs)
    print(json.dumps([s.model_dump() for s in stores], indent=2))


def main(argv: Iterable[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(level=getattr(logging, args.log_level))
    try:
        asyncio.run(args.func(args))
    except KrogerError as exc:
        logging.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
