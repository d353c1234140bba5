#!/usr/bin/env python3
"""Thin CLI to trigger product syncs and read sync history."""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any, Dict, Optional

import httpx


def _default_api_base() -> str:
    return os.environ.get("GRUBY_API_BASE", "http://localhost:8000/v1")


def _default_token() -> str:
    return os.environ.get("SYNC_API_SECRET", "")


def _request(
    method: str,
    endpoint: str,
    *,
    api_base: str,
    token: str,
    payload: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
    timeout: float = 300.0,
) -> Dict[str, Any]:
    url = endpoint if endpoint.startswith("http") else f"{api_base.rstrip('/')}/{endpoint.lstrip('/')}"
    headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
    with httpx.Client(timeout=timeout) as client:
        resp = client.request(method, url, headers=headers, json=payload, params=params)
    try:
        data = resp.json()
    except ValueError:
        data = {"text": resp.text}
    if resp.status_code >= 400:
        raise SystemExit(f"[{resp.status_code}] {json.dumps(data, indent=2)}")
    return data


def cmd_run(args: argparse.Namespace, api_base: str, token: str) -> None:
    payload: Dict[str, Any] = {"force": args.force}
    if args.recipe_ids:
        payload["recipeIds"] = args.recipe_ids
    if args.location_id:
        payload["locationId"] = args.location_id
    if args.limit:
        payload["limit"] = args.limit
    data = _request("POST", "/sync/products", api_base=api_base, token=token, payload=payload)
    print(json.dumps(data, indent=2))


def cmd_history(args: argparse.Namespace, api_base: str, token: str) -> None:
    data = _request(
        "GET",
        "/sync/products",
        api_base=api_base,
        token=token,
        params={"limit": args.limit},
        timeout=15.0,
    )
    print(json.dumps(data, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Product sync admin helper.")
    parser.add_argument(
        "--api-base",
        default=_default_api_base(),
        help="Base API URL (default: %(default)s or GRUBY_API_BASE).",
    )
    parser.add_argument(
        "--token",
        default=_default_token(),
        help="Sync bearer token (default: SYNC_API_SECRET env).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Trigger a product sync run.")
    run.add_argument("recipe_ids", nargs="*", help="Recipe ids to sync (default: a page of recipes).")
    run.add_argument("--location-id", default=None, help="Store location id.")
    run.add_argument("--limit", type=int, default=None, help="Page size when no ids are given.")
    run.add_argument("--force", action="store_true", help="Rewrite every matched ingredient.")

    hist = sub.add_parser("history", help="Show recent sync runs.")
    hist.add_argument("--limit", type=int, default=10, help="Number of runs (max 50).")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    token = args.token or _default_token()
    if not token:
        parser.error("Missing sync bearer token. Pass --token or set SYNC_API_SECRET.")
    api_base = args.api_base or _default_api_base()

    if args.command == "run":
        cmd_run(args, api_base, token)
    elif args.command == "history":
        cmd_history(args, api_base, token)
    else:  # pragma: no cover
        parser.error(f"Unknown command {args.command}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
