#!/usr/bin/env python3
"""
CLI Tests
=========

Run:
    python -m pytest tests/test_cli.py
"""

import io
import sys
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))

from pages import fetched, product_page
from restocked import cli
from restocked.storage import DatabaseManager


def fake_fetcher(result):
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(return_value=result)
    return fetcher


class TestCli(unittest.IsolatedAsyncioTestCase):

    async def run_cli(self, *argv):
        out = io.StringIO()
        with redirect_stdout(out):
            code = await cli.main(list(argv))
        return code, out.getvalue()

    async def test_help(self):
        code, output = await self.run_cli("help")
        self.assertEqual(code, 0)
        self.assertIn("track-due", output)

    async def test_unknown_command(self):
        code, output = await self.run_cli("frobnicate")
        self.assertEqual(code, 2)
        self.assertIn("Unknown command: frobnicate", output)

    async def test_bad_arguments(self):
        self.assertEqual((await self.run_cli("track", "abc"))[0], 1)
        self.assertEqual((await self.run_cli("track"))[0], 1)
        self.assertEqual((await self.run_cli("track-due", "--limit"))[0], 1)
        self.assertEqual((await self.run_cli("extract"))[0], 1)

    async def test_extract(self):
        with patch.object(cli, "Fetcher", return_value=fake_fetcher(fetched(product_page()))):
            code, output = await self.run_cli("extract", "https://shop.example/products/linen-shirt")
        self.assertEqual(code, 0)
        self.assertIn("Title: Linen Shirt", output)
        self.assertIn("Price: USD 45.0", output)
        self.assertIn("Variants: 3", output)

    async def test_ingest(self):
        with tempfile.TemporaryDirectory() as tmp:
            db_path = str(Path(tmp) / "cli.db")
            with patch.object(cli, "Fetcher", return_value=fake_fetcher(fetched(product_page()))), \
                    patch.object(cli, "DatabaseManager", side_effect=lambda: DatabaseManager(db_path)):
                code, output = await self.run_cli("ingest", "https://shop.example/products/linen-shirt")

            self.assertEqual(code, 0)
            self.assertIn("with 3 variant(s)", output)

            db = DatabaseManager(db_path)
            try:
                self.assertIsNotNone(db.find_product_by_url("https://shop.example/products/linen-shirt"))
            finally:
                db.close()


if __name__ == "__main__":
    unittest.main()
