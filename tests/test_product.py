#!/usr/bin/env python3
"""
Product Shell Tests
===================

One fetched page in, one immutable ProductShell out.

Run:
    python -m pytest tests/test_product.py
"""

import dataclasses
import sys
import unittest
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))

from pages import fetched, product_page
from restocked.fetcher import is_challenge_page
from restocked.models import FetchResult, StockStatus
from restocked.product import extract_images, extract_product_shell, extract_title
from restocked.parser.dom import load_dom


# =============================================================================
# ASSEMBLY
# =============================================================================

class TestExtractProductShell(unittest.TestCase):

    def setUp(self):
        self.shell = extract_product_shell(fetched(product_page()))

    def test_identity_fields(self):
        self.assertEqual(self.shell.title, "Linen Shirt")
        self.assertEqual(self.shell.description, "A breathable linen shirt.")
        self.assertEqual(self.shell.images, ("https://shop.example/img/linen-shirt.jpg",))
        self.assertEqual(self.shell.final_url, "https://shop.example/products/linen-shirt")

    def test_commerce_fields(self):
        self.assertEqual(
            [v.attributes_dict() for v in self.shell.variants],
            [{"size": "S"}, {"size": "M"}, {"size": "L"}],
        )
        self.assertEqual(self.shell.pricing.amount, 45.0)
        self.assertEqual(self.shell.pricing.currency, "USD")
        self.assertEqual(self.shell.stock.status, StockStatus.IN_STOCK)
        self.assertEqual(self.shell.stock.confidence, 95)

    def test_notes_and_metadata(self):
        self.assertIn("Price extracted using structured-price-strategy", self.shell.notes)
        self.assertIn("Stock status extracted using structured-stock-strategy", self.shell.notes)
        self.assertEqual(self.shell.metadata["json_blobs_count"], 1)

    def test_shell_is_immutable(self):
        with self.assertRaises(dataclasses.FrozenInstanceError):
            self.shell.title = "Other"

    def test_to_dict(self):
        data = self.shell.to_dict()
        self.assertEqual(data["stock"]["status"], "in_stock")
        self.assertEqual(len(data["variants"]), 3)
        self.assertEqual(data["pricing"]["amount"], 45.0)

    def test_failed_fetch(self):
        result = FetchResult.failure("https://shop.example/gone", "HTTP 404", status_code=404)
        shell = extract_product_shell(result)
        self.assertEqual(shell.notes, ("Fetch failed: HTTP 404",))
        self.assertEqual(shell.variants, ())
        self.assertIsNone(shell.pricing)
        self.assertIsNone(shell.stock)

    def test_empty_page(self):
        shell = extract_product_shell(fetched(""))
        self.assertEqual(shell.notes, ("Fetch failed: empty response",))


# =============================================================================
# IDENTITY HELPERS
# =============================================================================

class TestIdentityHelpers(unittest.TestCase):

    def test_title_suffix_stripped(self):
        dom = load_dom("<html><head><title>Wool Coat | Shop</title></head><body></body></html>")
        self.assertEqual(extract_title(dom, []), "Wool Coat")

    def test_og_title_beats_h1(self):
        dom = load_dom('<head><meta property="og:title" content="Wool Coat"></head><body><h1>Menu</h1></body>')
        self.assertEqual(extract_title(dom, []), "Wool Coat")

    def test_images_resolved_and_deduplicated(self):
        dom = load_dom("""
        <div class="product-image">
          <img src="/img/a.jpg">
          <img src="//cdn.example/b.jpg">
          <img src="data:image/png;base64,AAAA">
          <img src="/img/a.jpg">
        </div>
        """)
        self.assertEqual(
            extract_images(dom, [], "https://shop.example/products/coat"),
            ["https://shop.example/img/a.jpg", "https://cdn.example/b.jpg"],
        )


class TestChallengePage(unittest.TestCase):

    def test_detection(self):
        self.assertTrue(is_challenge_page("<html><title>Just a moment...</title></html>"))
        self.assertFalse(is_challenge_page(product_page()))
        self.assertFalse(is_challenge_page(""))


if __name__ == "__main__":
    unittest.main()
