from __future__ import annotations

import csv
import json
from pathlib import Path
import tempfile
import unittest
from unittest import mock

from kroger_api import cli
from kroger_api.client import KrogerConfigError
from kroger_api.parser import parse_products

PAYLOAD = {
    "data": [
        {
            "productId": "0001111041700",
            "upc": "0001111041700",
            "brand": "Kroger",
            "description": "Kroger 2% Reduced Fat Milk",
            "items": [{"price": {"regular": 3.49, "promo": 2.99}, "size": "1 gal"}],
        }
    ]
}


class FakeClient:
    last_config = None

    def __init__(self, *, config=None, **kwargs) -> None:
        FakeClient.last_config = config

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None

    async def search_products(self, term, location_id=None, limit=10):
        if not (self.last_config and self.last_config.has_credentials):
            raise KrogerConfigError("Kroger API credentials not configured")
        return parse_products(PAYLOAD)


class KrogerCliTest(unittest.TestCase):
    def test_search_writes_jsonl_and_csv(self):
        with tempfile.TemporaryDirectory() as tmp, mock.patch("kroger_api.cli.KrogerClient", new=FakeClient):
            jsonl_path = Path(tmp) / "out" / "milk.jsonl"
            csv_path = Path(tmp) / "out" / "milk.csv"
            code = cli.main(
                [
                    "--client-id",
                    "id",
                    "--client-secret",
                    "secret",
                    "search",
                    "milk",
                    "--output-json",
                    str(jsonl_path),
                    "--output-csv",
                    str(csv_path),
                ]
            )
            self.assertEqual(code, 0)
            rows = [json.loads(line) for line in jsonl_path.read_text(encoding="utf-8").splitlines()]
            with csv_path.open(encoding="utf-8", newline="") as fh:
                csv_rows = list(csv.DictReader(fh))

        self.assertEqual(rows[0]["productId"], "0001111041700")
        self.assertEqual(rows[0]["price"], 2.99)
        self.assertEqual(rows[0]["regularPrice"], 3.49)
        self.assertEqual(csv_rows[0]["size"], "1 gal")

    def test_missing_credentials_exit_with_error(self):
        with mock.patch("kroger_api.cli.KrogerClient", new=FakeClient):
            code = cli.main(["--client-id", "", "--client-secret", "", "search", "milk"])
        self.assertEqual(code, 1)

    def test_stores_requires_zip_or_coordinates(self):
        with self.assertRaises(SystemExit):
            cli.build_parser().parse_args(["stores"])


if __name__ == "__main__":
    unittest.main()
