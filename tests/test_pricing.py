#!/usr/bin/env python3
"""
Price Extraction Tests
======================

Amount parsing, currency detection, and the structured / DOM / heuristic
strategies under first-match-wins.

Run:
    python -m pytest tests/test_pricing.py
"""

import json
import sys
import unittest
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from restocked.models import ExtractionContext
from restocked.pricing import detect_currency, extract_price, parse_price_amount
from restocked.pricing.strategies import DomPriceStrategy, HeuristicPriceStrategy, StructuredPriceStrategy


def context_for(body: str, blobs=None, head: str = "") -> ExtractionContext:
    scripts = "".join(
        f'<script type="application/json">{json.dumps(blob)}</script>' for blob in (blobs or [])
    )
    return ExtractionContext.from_html(f"<html><head>{head}{scripts}</head><body>{body}</body></html>")


# =============================================================================
# PARSING
# =============================================================================

class TestParsing(unittest.TestCase):

    def test_separators(self):
        self.assertEqual(parse_price_amount("1,234.56"), 1234.56)
        self.assertEqual(parse_price_amount("12,50"), 12.5)
        self.assertEqual(parse_price_amount("1,234"), 1234.0)
        self.assertEqual(parse_price_amount("1.234.567"), 1234567.0)
        self.assertEqual(parse_price_amount("$ 89.99"), 89.99)

    def test_rejects_non_positive_and_junk(self):
        self.assertIsNone(parse_price_amount("0.00"))
        self.assertIsNone(parse_price_amount("free"))
        self.assertIsNone(parse_price_amount(float("inf")))
        self.assertIsNone(parse_price_amount(True))
        self.assertIsNone(parse_price_amount(None))

    def test_numbers_pass_through(self):
        self.assertEqual(parse_price_amount(45), 45.0)

    def test_currency_detection(self):
        self.assertEqual(detect_currency("usd"), "USD")
        self.assertEqual(detect_currency("€12,50"), "EUR")
        self.assertEqual(detect_currency("CA$ 20"), "CAD")
        self.assertEqual(detect_currency("£5"), "GBP")
        self.assertIsNone(detect_currency("45.00"))


# =============================================================================
# STRATEGIES
# =============================================================================

class TestStructuredPrice(unittest.TestCase):

    def test_sale_beats_regular(self):
        blob = {"product": {"regularPrice": 100, "salePrice": 80, "currency": "EUR"}}
        outcome = StructuredPriceStrategy().extract(context_for("", [blob]))
        self.assertEqual(outcome.result.amount, 80.0)
        self.assertEqual(outcome.result.currency, "EUR")
        self.assertEqual(outcome.result.source_metadata["path"], "product.salePrice")
        self.assertEqual(outcome.result.source_metadata["source"], "structured")

    def test_generic_amount_needs_currency(self):
        outcome = StructuredPriceStrategy().extract(context_for("", [{"shipping": {"amount": 5}}]))
        self.assertIsNone(outcome.result)

        blob = {"total": {"amount": "50.00", "currencyCode": "USD"}}
        outcome = StructuredPriceStrategy().extract(context_for("", [blob]))
        self.assertEqual(outcome.result.amount, 50.0)


class TestDomPrice(unittest.TestCase):

    def test_sale_element_beats_struck_regular(self):
        body = """
        <div class="price-box">
          <span class="price price--regular"><s>$120.00</s></span>
          <span class="price price--sale">$89.00</span>
        </div>
        """
        outcome = DomPriceStrategy().extract(context_for(body))
        self.assertEqual(outcome.result.amount, 89.0)
        self.assertEqual(outcome.result.currency, "USD")

    def test_meta_tags(self):
        head = (
            '<meta property="product:price:amount" content="49.99">'
            '<meta property="product:price:currency" content="GBP">'
        )
        outcome = DomPriceStrategy().extract(context_for('<span class="price">£60.00</span>', head=head))
        self.assertEqual(outcome.result.amount, 49.99)
        self.assertEqual(outcome.result.currency, "GBP")

    def test_no_price_elements(self):
        outcome = DomPriceStrategy().extract(context_for("<p>Hello</p>"))
        self.assertIsNone(outcome.result)
        self.assertIn("No price patterns found in DOM", outcome.notes)


class TestHeuristicPrice(unittest.TestCase):

    def test_bare_year_is_never_a_price(self):
        outcome = HeuristicPriceStrategy().extract(
            context_for("<p>Spring collection 2024. Made in Portugal.</p>")
        )
        self.assertIsNone(outcome.result)

    def test_currency_marked_amount_beside_year(self):
        outcome = HeuristicPriceStrategy().extract(
            context_for("<p>© 2024 Shop Example</p><p>Price: $45.00</p>")
        )
        self.assertEqual(outcome.result.amount, 45.0)
        self.assertEqual(outcome.result.currency, "USD")

    def test_sale_keyword_with_cents(self):
        outcome = HeuristicPriceStrategy().extract(context_for("<p>Now 19.99</p>"))
        self.assertEqual(outcome.result.amount, 19.99)

    def test_plausibility_band(self):
        outcome = HeuristicPriceStrategy().extract(context_for("<p>$25,000.00</p>"))
        self.assertIsNone(outcome.result)
        self.assertTrue(any(note.startswith("Rejected 1 candidate(s)") for note in outcome.notes))

    def test_band_is_tunable(self):
        outcome = HeuristicPriceStrategy(price_max=50000).extract(context_for("<p>$25,000.00</p>"))
        self.assertEqual(outcome.result.amount, 25000.0)


# =============================================================================
# PIPELINE
# =============================================================================

class TestPricePipeline(unittest.TestCase):

    def test_structured_wins(self):
        blob = {"offers": {"price": "30.00", "priceCurrency": "USD"}}
        price, notes = extract_price(context_for('<span class="price">$99.00</span>', [blob]))
        self.assertEqual(price.amount, 30.0)
        self.assertIn("Price extracted using structured-price-strategy", notes)

    def test_nothing_found(self):
        price, notes = extract_price(context_for("<p>Since 2024</p>"))
        self.assertIsNone(price)
        self.assertEqual(notes[-1], "No price found by any strategy")


if __name__ == "__main__":
    unittest.main()
