#!/usr/bin/env python3
"""
Storage Tests
=============

Transactions, variant identity, change-only history and snapshot upkeep.

Run:
    python -m pytest tests/test_storage.py
"""

import sys
import tempfile
import unittest
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from restocked.exceptions import PersistFailure
from restocked.storage import DatabaseManager


class StorageTestCase(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.db = DatabaseManager(str(Path(self.tmp.name) / "test.db"))
        self.product = self.db.insert_product({"url": "https://shop.example/products/linen-shirt"})

    def tearDown(self):
        self.db.close()
        self.tmp.cleanup()

    def add_variant(self, attributes, sku=None):
        return self.db.insert_variant(self.product["id"], {"attributes": attributes, "sku": sku})


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TestTransactions(StorageTestCase):

    def test_commit(self):
        with self.db.transaction():
            self.db.insert_product({"url": "https://shop.example/a"})
        self.assertIsNotNone(self.db.find_product_by_url("https://shop.example/a"))

    def test_rollback_on_any_error(self):
        with self.assertRaises(RuntimeError):
            with self.db.transaction():
                self.db.insert_product({"url": "https://shop.example/a"})
                raise RuntimeError("boom")
        self.assertIsNone(self.db.find_product_by_url("https://shop.example/a"))

    def test_sqlite_error_becomes_persist_failure(self):
        with self.assertRaises(PersistFailure):
            with self.db.transaction():
                self.db.insert_product({"url": "https://shop.example/a"})
                self.db.insert_product({"url": "https://shop.example/products/linen-shirt"})
        self.assertIsNone(self.db.find_product_by_url("https://shop.example/a"))
        self.assertFalse(self.db.conn.in_transaction)

    def test_nested_transaction_joins_outer(self):
        with self.assertRaises(RuntimeError):
            with self.db.transaction():
                with self.db.transaction():
                    self.db.insert_product({"url": "https://shop.example/a"})
                raise RuntimeError("outer fails after inner block")
        self.assertIsNone(self.db.find_product_by_url("https://shop.example/a"))

    def test_invalid_notification_type_rejected(self):
        with self.assertRaises(PersistFailure):
            with self.db.transaction():
                self.db.insert_notification("u1", None, None, "discount", "t", "b")


# =============================================================================
# VARIANT IDENTITY
# =============================================================================

class TestVariantIdentity(StorageTestCase):

    def test_identical_attributes(self):
        stored = self.add_variant({"size": "M", "color": "Black"})
        match = self.db.find_matching_variant(self.product["id"], {"color": "Black", "size": "M"})
        self.assertEqual(match["id"], stored["id"])

    def test_superset_of_stored_set(self):
        stored = self.add_variant({"size": "M"})
        match = self.db.find_matching_variant(self.product["id"], {"size": "M", "color": "Black"})
        self.assertEqual(match["id"], stored["id"])

    def test_most_specific_stored_set_wins(self):
        self.add_variant({"size": "M"})
        specific = self.add_variant({"size": "M", "color": "Black"})
        match = self.db.find_matching_variant(
            self.product["id"], {"size": "M", "color": "Black", "fit": "slim"}
        )
        self.assertEqual(match["id"], specific["id"])

    def test_empty_stored_set_is_not_a_subset_match(self):
        self.add_variant({})
        self.assertIsNone(self.db.find_matching_variant(self.product["id"], {"size": "M"}))

    def test_sku_fallback(self):
        stored = self.add_variant({"size": "M"}, sku="LS-M")
        match = self.db.find_matching_variant(self.product["id"], {"size": "Medium"}, sku="LS-M")
        self.assertEqual(match["id"], stored["id"])

    def test_no_match(self):
        self.add_variant({"size": "M"})
        self.assertIsNone(self.db.find_matching_variant(self.product["id"], {"size": "L"}))


# =============================================================================
# HISTORY
# =============================================================================

class TestHistory(StorageTestCase):

    def setUp(self):
        super().setUp()
        self.variant = self.add_variant({"size": "M"})

    def test_record_price_only_on_change(self):
        written, previous = self.db.record_price(self.variant["id"], 45.0, "USD")
        self.assertTrue(written)
        self.assertIsNone(previous)

        written, previous = self.db.record_price(self.variant["id"], 45.0, "USD")
        self.assertFalse(written)
        self.assertEqual(previous["price"], 45.0)

        written, _ = self.db.record_price(self.variant["id"], 45.0, "EUR")
        self.assertTrue(written)
        self.assertEqual(len(self.db.price_history(self.variant["id"])), 2)

    def test_record_price_projects_current_price(self):
        self.db.record_price(self.variant["id"], 45.0, "USD")
        self.db.record_price(self.variant["id"], 39.0, "USD")
        variant = self.db.get_variant(self.variant["id"])
        self.assertEqual(variant["current_price"], 39.0)
        self.assertEqual(variant["currency"], "USD")

    def test_record_stock_only_on_change(self):
        self.assertTrue(self.db.record_stock(self.variant["id"], "out_of_stock", False)[0])
        self.assertFalse(self.db.record_stock(self.variant["id"], "out_of_stock", False)[0])
        written, previous = self.db.record_stock(self.variant["id"], "in_stock", True)
        self.assertTrue(written)
        self.assertEqual(previous["status"], "out_of_stock")

        variant = self.db.get_variant(self.variant["id"])
        self.assertEqual(variant["current_stock_status"], "in_stock")
        self.assertTrue(variant["is_available"])
        self.assertEqual(len(self.db.stock_history(self.variant["id"])), 2)


# =============================================================================
# SNAPSHOTS
# =============================================================================

class TestSnapshots(StorageTestCase):

    def setUp(self):
        super().setUp()
        self.variant_id = self.add_variant({"size": "M"})["id"]

    def test_price_snapshot_lifecycle(self):
        first = self.db.upsert_variant_price(self.variant_id, 100.0, "USD", "2026-03-01T09:00:00.000000+00:00")
        self.assertIsNone(first["previous_price"])
        self.assertIsNone(first["discount_percent"])

        dropped = self.db.upsert_variant_price(self.variant_id, 80.0, "USD", "2026-03-01T10:00:00.000000+00:00")
        self.assertEqual(dropped["previous_price"], 100.0)
        self.assertEqual(dropped["discount_percent"], 20.0)

        unchanged = self.db.upsert_variant_price(self.variant_id, 80.0, "USD", "2026-03-01T11:00:00.000000+00:00")
        self.assertEqual(unchanged["previous_price"], 100.0)
        self.assertEqual(unchanged["discount_percent"], 20.0)
        self.assertEqual(unchanged["last_seen_at"], "2026-03-01T11:00:00.000000+00:00")
        self.assertEqual(unchanged["first_seen_at"], "2026-03-01T09:00:00.000000+00:00")

        raised = self.db.upsert_variant_price(self.variant_id, 90.0, "USD")
        self.assertEqual(raised["previous_price"], 80.0)
        self.assertIsNone(raised["discount_percent"])

    def test_stock_snapshot(self):
        self.db.upsert_variant_stock(self.variant_id, "out_of_stock", 0, "2026-03-01T09:00:00.000000+00:00")
        snapshot = self.db.upsert_variant_stock(self.variant_id, "in_stock", 4, "2026-03-01T10:00:00.000000+00:00")
        self.assertEqual(snapshot["status"], "in_stock")
        self.assertEqual(snapshot["quantity_available"], 4)
        self.assertEqual(snapshot["first_seen_at"], "2026-03-01T09:00:00.000000+00:00")


# =============================================================================
# TRACKING QUERIES
# =============================================================================

class TestTrackingQueries(StorageTestCase):

    def test_variants_needing_tracking(self):
        never_seen = self.add_variant({"size": "S"})["id"]
        fresh = self.add_variant({"size": "M"})["id"]
        stale = self.add_variant({"size": "L"})["id"]
        untracked = self.add_variant({"size": "XL"})["id"]
        inactive = self.add_variant({"size": "XS"})["id"]

        for variant_id in (never_seen, fresh, stale):
            self.db.insert_tracked_item("u1", variant_id)
        self.db.insert_tracked_item("u1", inactive, active=False)

        self.db.upsert_variant_price(fresh, 10.0, "USD", "2026-03-01T09:55:00.000000+00:00")
        self.db.upsert_variant_price(stale, 10.0, "USD", "2026-03-01T08:00:00.000000+00:00")
        self.db.upsert_variant_stock(untracked, "in_stock", None, "2026-03-01T08:00:00.000000+00:00")

        due = self.db.variants_needing_tracking(10, "2026-03-01T09:30:00.000000+00:00")
        self.assertEqual(due, [never_seen, stale])
        self.assertEqual(self.db.variants_needing_tracking(1, "2026-03-01T09:30:00.000000+00:00"), [never_seen])

    def test_active_tracked_items_carry_settings(self):
        variant_id = self.add_variant({"size": "M"})["id"]
        self.db.insert_tracked_item("u1", variant_id)
        self.db.insert_tracked_item("u2", variant_id)
        self.db.upsert_user_settings("u1", price_drop_threshold_percent=15)

        items = self.db.active_tracked_items(variant_id)
        self.assertEqual([item["user_id"] for item in items], ["u1", "u2"])
        self.assertEqual(items[0]["has_settings"], 1)
        self.assertEqual(items[0]["price_drop_threshold_percent"], 15)
        self.assertEqual(items[1]["has_settings"], 0)

    def test_recent_notification_count(self):
        variant_id = self.add_variant({"size": "M"})["id"]
        item = self.db.insert_tracked_item("u1", variant_id)
        self.db.insert_notification("u1", item["id"], variant_id, "back_in_stock", "t", "b",
                                    {"k": 1}, "2026-03-01T08:00:00.000000+00:00")
        self.db.insert_notification("u1", item["id"], variant_id, "back_in_stock", "t", "b",
                                    None, "2026-03-01T09:10:00.000000+00:00")

        since = "2026-03-01T09:00:00.000000+00:00"
        self.assertEqual(self.db.count_recent_notifications(item["id"], "back_in_stock", since), 1)
        self.assertEqual(self.db.count_recent_notifications(item["id"], "price_drop", since), 0)
        self.assertEqual(self.db.list_notifications(user_id="u1")[0]["metadata"], {"k": 1})


if __name__ == "__main__":
    unittest.main()
