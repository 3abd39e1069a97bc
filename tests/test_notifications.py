#!/usr/bin/env python3
"""
Notification Engine Tests
=========================

Decision rules per tracked item, evaluated independently.

Run:
    python -m pytest tests/test_notifications.py
"""

import sys
import unittest
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from restocked.models import NotificationType
from restocked.services.notifications import (
    NotificationEngine,
    PriceDelta,
    StockDelta,
    format_money,
)


def tracked_item(**overrides):
    item = {
        "id": 1,
        "user_id": "u1",
        "target_price": None,
        "notify_on_price_drop": 1,
        "notify_on_back_in_stock": 1,
        "notify_on_any_stock_change": 0,
        "has_settings": 0,
        "price_drop_threshold_percent": None,
    }
    item.update(overrides)
    return item


def types(decisions):
    return [d.type for d in decisions]


class TestDeltas(unittest.TestCase):

    def test_price_delta(self):
        delta = PriceDelta.between(100.0, 80.0)
        self.assertEqual(delta.percent_change, -20.0)
        self.assertTrue(delta.changed)
        self.assertEqual(PriceDelta.between(None, 45.0).percent_change, 0.0)
        self.assertTrue(PriceDelta.between(None, 45.0).changed)
        self.assertFalse(PriceDelta.between(45.0, 45.0).changed)

    def test_stock_delta(self):
        self.assertTrue(StockDelta.between("out_of_stock", "in_stock").went_in_stock)
        self.assertTrue(StockDelta.between("unknown", "in_stock").went_in_stock)
        self.assertTrue(StockDelta.between(None, "in_stock").went_in_stock)
        self.assertFalse(StockDelta.between("low_stock", "in_stock").went_in_stock)
        self.assertTrue(StockDelta.between("in_stock", "out_of_stock").went_out_of_stock)
        self.assertFalse(StockDelta.between("in_stock", "in_stock").changed)

    def test_format_money(self):
        self.assertEqual(format_money(45), "$45.00")
        self.assertEqual(format_money(12.5, "EUR"), "12.50 EUR")
        self.assertEqual(format_money(None), "n/a")


# =============================================================================
# PRICE RULES
# =============================================================================

class TestPriceDrop(unittest.TestCase):

    def setUp(self):
        self.engine = NotificationEngine()
        self.delta = PriceDelta.between(100.0, 80.0)

    def test_any_drop_without_settings(self):
        decisions = self.engine.decide(tracked_item(), price_delta=self.delta, currency="USD")
        self.assertEqual(types(decisions), [NotificationType.PRICE_DROP])
        payload = decisions[0].payload
        self.assertEqual(payload.title, "Price Drop Detected")
        self.assertEqual(payload.body, "Price dropped from $100.00 to $80.00 (20.0% decrease)")
        self.assertEqual(payload.metadata["price_before"], 100.0)
        self.assertEqual(payload.metadata["percent_change"], -20.0)

    def test_threshold_met(self):
        item = tracked_item(has_settings=1, price_drop_threshold_percent=10)
        self.assertEqual(types(self.engine.decide(item, price_delta=self.delta)), [NotificationType.PRICE_DROP])

    def test_threshold_not_met(self):
        item = tracked_item(has_settings=1, price_drop_threshold_percent=25)
        self.assertEqual(self.engine.decide(item, price_delta=self.delta), [])

    def test_settings_without_threshold_uses_default(self):
        item = tracked_item(has_settings=1, price_drop_threshold_percent=None)
        self.assertEqual(types(self.engine.decide(item, price_delta=self.delta)), [NotificationType.PRICE_DROP])
        # 3% is under the 5% default
        small = PriceDelta.between(100.0, 97.0)
        self.assertEqual(self.engine.decide(item, price_delta=small), [])
        self.assertEqual(types(self.engine.decide(tracked_item(), price_delta=small)), [NotificationType.PRICE_DROP])

    def test_opted_out(self):
        self.assertEqual(self.engine.decide(tracked_item(notify_on_price_drop=0), price_delta=self.delta), [])

    def test_increase_and_first_observation_never_drop(self):
        self.assertEqual(self.engine.decide(tracked_item(), price_delta=PriceDelta.between(80.0, 100.0)), [])
        self.assertEqual(self.engine.decide(tracked_item(), price_delta=PriceDelta.between(None, 80.0)), [])


class TestTargetPrice(unittest.TestCase):

    def setUp(self):
        self.engine = NotificationEngine()

    def test_independent_of_drop_flags(self):
        item = tracked_item(target_price=50.0, notify_on_price_drop=0, notify_on_back_in_stock=0)
        decisions = self.engine.decide(item, price_delta=PriceDelta.between(None, 45.0))
        self.assertEqual(types(decisions), [NotificationType.THRESHOLD_MET])
        self.assertEqual(
            decisions[0].payload.body,
            "Price has reached your target of $50.00. Current price: $45.00",
        )

    def test_drop_reaching_target_creates_both(self):
        item = tracked_item(target_price=85.0)
        decisions = self.engine.decide(item, price_delta=PriceDelta.between(100.0, 80.0))
        self.assertEqual(types(decisions), [NotificationType.PRICE_DROP, NotificationType.THRESHOLD_MET])

    def test_above_target(self):
        item = tracked_item(target_price=50.0)
        self.assertEqual(self.engine.decide(item, price_delta=PriceDelta.between(None, 55.0)), [])


# =============================================================================
# STOCK RULES
# =============================================================================

class TestStockRules(unittest.TestCase):

    def setUp(self):
        self.engine = NotificationEngine()

    def test_back_in_stock(self):
        decisions = self.engine.decide(tracked_item(), stock_delta=StockDelta.between("out_of_stock", "in_stock"))
        self.assertEqual(types(decisions), [NotificationType.BACK_IN_STOCK])
        self.assertEqual(decisions[0].payload.body, "Product is now back in stock!")

    def test_back_in_stock_opted_out(self):
        item = tracked_item(notify_on_back_in_stock=0, notify_on_any_stock_change=1)
        self.assertEqual(self.engine.decide(item, stock_delta=StockDelta.between("out_of_stock", "in_stock")), [])

    def test_any_stock_change(self):
        item = tracked_item(notify_on_any_stock_change=1)
        decisions = self.engine.decide(item, stock_delta=StockDelta.between("in_stock", "low_stock"))
        self.assertEqual(types(decisions), [NotificationType.STOCK_CHANGE])
        self.assertEqual(decisions[0].payload.body, "Stock status changed from in_stock to low_stock")

    def test_first_observation_is_not_a_stock_change(self):
        item = tracked_item(notify_on_any_stock_change=1)
        self.assertEqual(self.engine.decide(item, stock_delta=StockDelta.between(None, "out_of_stock")), [])

    def test_going_out_of_stock_is_silent_by_default(self):
        self.assertEqual(self.engine.decide(tracked_item(), stock_delta=StockDelta.between("in_stock", "out_of_stock")), [])


if __name__ == "__main__":
    unittest.main()
