#!/usr/bin/env python3
"""
Ingestion Tests
===============

Product/variant upserts, change-only history, notifications on change and
all-or-nothing persistence.

Run:
    python -m pytest tests/test_ingestion.py
"""

import sqlite3
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))

from pages import fetched, product_page
from restocked.exceptions import PersistFailure
from restocked.models import (
    PriceShell,
    ProductShell,
    StockShell,
    StockStatus,
    VariantAttribute,
    VariantShell,
)
from restocked.product import extract_product_shell
from restocked.services.ingestion import IngestionService, normalize_variant, vendor_from_url
from restocked.storage import DatabaseManager

URL = "https://shop.example/products/linen-shirt"


def variant(**attributes) -> VariantShell:
    return VariantShell(attributes=[VariantAttribute(k, v) for k, v in attributes.items()])


def shell(variants=(), price=45.0, status=StockStatus.IN_STOCK, url=URL, final_url=URL) -> ProductShell:
    return ProductShell(
        url=url,
        final_url=final_url,
        title="Linen Shirt",
        variants=tuple(variants),
        pricing=PriceShell(amount=price, currency="USD") if price is not None else None,
        stock=StockShell(
            status=status,
            strategy_name="structured-stock-strategy",
            confidence=95,
            reason_code="structured_detection",
        ) if status is not None else None,
    )


class IngestionTestCase(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.db = DatabaseManager(str(Path(self.tmp.name) / "test.db"))
        self.service = IngestionService(self.db)

    def tearDown(self):
        self.db.close()
        self.tmp.cleanup()


# =============================================================================
# NORMALIZATION
# =============================================================================

class TestNormalization(unittest.TestCase):

    def test_page_values_apply_to_every_variant(self):
        data = normalize_variant(
            VariantShell(attributes=[VariantAttribute("size", "M")], price=99.0, availability=False),
            shell(),
        )
        self.assertEqual(data["price"], 45.0)
        self.assertEqual(data["currency"], "USD")
        self.assertEqual(data["stock_status"], "in_stock")
        self.assertFalse(data["is_available"])

    def test_variant_values_when_page_has_none(self):
        data = normalize_variant(
            VariantShell(external_id="123", price=20.0, availability=False,
                         source_metadata={"currency": "eur", "original": {"huge": "blob"}}),
            shell(price=None, status=None),
        )
        self.assertEqual(data["price"], 20.0)
        self.assertEqual(data["currency"], "EUR")
        self.assertEqual(data["stock_status"], "out_of_stock")
        self.assertEqual(data["sku"], "123")
        self.assertNotIn("original", data["metadata"])

    def test_vendor(self):
        self.assertEqual(vendor_from_url("https://www.shop.example/p"), "shop.example")


# =============================================================================
# INGEST
# =============================================================================

class TestIngest(IngestionTestCase):

    def test_extracted_page(self):
        result = self.service.ingest(extract_product_shell(fetched(product_page())))
        self.assertEqual(result.product["name"], "Linen Shirt")
        self.assertEqual(result.product["vendor"], "shop.example")
        self.assertEqual(len(result.variants), 3)
        for row in result.variants:
            self.assertEqual(row["current_price"], 45.0)
            self.assertEqual(row["current_stock_status"], "in_stock")
            self.assertTrue(row["is_available"])

    def test_idempotent(self):
        page = shell([variant(size="S"), variant(size="M")])
        first = self.service.ingest(page)
        for row in first.variants:
            self.db.insert_tracked_item("u1", row["id"])

        second = self.service.ingest(page)
        self.assertEqual(second.product["id"], first.product["id"])
        self.assertEqual([v["id"] for v in second.variants], [v["id"] for v in first.variants])
        self.assertEqual(second.notifications_created, 0)
        for row in second.variants:
            self.assertEqual(len(self.db.price_history(row["id"])), 1)
            self.assertEqual(len(self.db.stock_history(row["id"])), 1)
        self.assertEqual(self.db.list_notifications(), [])

    def test_new_dimension_keeps_variant_identity(self):
        first = self.service.ingest(shell([variant(size="S"), variant(size="M")]))
        second = self.service.ingest(shell([
            variant(size="S", color="Black"),
            variant(size="M", color="Black"),
        ]))
        self.assertEqual([v["id"] for v in second.variants], [v["id"] for v in first.variants])
        self.assertEqual(second.variants[1]["attributes"], {"color": "Black", "size": "M"})
        self.assertEqual(len(self.db.list_variants(first.product["id"])), 2)

    def test_sku_match_keeps_richer_stored_set(self):
        full = VariantShell(
            external_id="LS-M",
            attributes=[VariantAttribute("size", "M"), VariantAttribute("color", "Black")],
        )
        partial = VariantShell(external_id="LS-M", attributes=[VariantAttribute("size", "Medium")])
        first = self.service.ingest(shell([full]))
        result = self.service.ingest(shell([partial], price=40.0))
        self.assertEqual(result.variants[0]["id"], first.variants[0]["id"])
        self.assertEqual(result.variants[0]["attributes"], {"color": "Black", "size": "M"})

    def test_default_variant(self):
        result = self.service.ingest(shell())
        self.assertEqual(len(result.variants), 1)
        self.assertEqual(result.variants[0]["attributes"], {})
        self.assertEqual(result.variants[0]["metadata"], {"source": "default"})
        self.assertEqual(result.variants[0]["current_price"], 45.0)

    def test_no_commerce_data(self):
        result = self.service.ingest(ProductShell(url=URL, notes=("Fetch failed: HTTP 404",)))
        self.assertEqual(result.variants, [])
        self.assertEqual(result.product["metadata"]["notes"], ["Fetch failed: HTTP 404"])

    def test_canonical_url_reuses_product(self):
        first = self.service.ingest(shell())
        second = self.service.ingest(shell(url=URL + "?utm_source=mail"))
        self.assertEqual(second.product["id"], first.product["id"])


# =============================================================================
# NOTIFICATIONS
# =============================================================================

class TestIngestNotifications(IngestionTestCase):

    def test_price_drop_on_reingest(self):
        first = self.service.ingest(shell([variant(size="M")], price=100.0))
        item = self.db.insert_tracked_item("u1", first.variants[0]["id"])

        result = self.service.ingest(shell([variant(size="M")], price=80.0))
        self.assertEqual(result.notifications_created, 1)
        notification = self.db.list_notifications(tracked_item_id=item["id"])[0]
        self.assertEqual(notification["type"], "price_drop")
        self.assertEqual(notification["metadata"]["percent_change"], -20.0)

    def test_back_in_stock_on_reingest(self):
        first = self.service.ingest(shell([variant(size="M")], status=StockStatus.OUT_OF_STOCK))
        self.db.insert_tracked_item("u1", first.variants[0]["id"])

        result = self.service.ingest(shell([variant(size="M")]))
        self.assertEqual(result.notifications_created, 1)
        self.assertEqual(self.db.list_notifications()[0]["type"], "back_in_stock")


# =============================================================================
# ATOMICITY
# =============================================================================

class TestIngestAtomicity(IngestionTestCase):

    def test_failure_rolls_back_everything(self):
        with patch.object(self.db, "record_stock", side_effect=sqlite3.OperationalError("disk I/O error")):
            with self.assertRaises(PersistFailure):
                self.service.ingest(shell([variant(size="S"), variant(size="M")]))

        self.assertIsNone(self.db.find_product_by_url(URL))
        rows = self.db.conn.execute("SELECT COUNT(*) FROM variant_price_history").fetchone()
        self.assertEqual(rows[0], 0)


if __name__ == "__main__":
    unittest.main()
