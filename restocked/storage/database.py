"""
Database Manager
================

SQLite persistence for products, variants, history, tracking and
notifications.

The connection runs in autocommit mode; multi-statement units of work go
through `transaction()`, which issues BEGIN/COMMIT explicitly and rolls back
on any error.
"""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..config import config
from ..exceptions import PersistFailure
from ..logger import get_service_logger
from ..models import utcnow_iso

log = get_service_logger('storage')


def _dumps(value: Any) -> str:
    return json.dumps(value if value is not None else {}, sort_keys=True, default=str)


def _loads(value: Optional[str], default: Any) -> Any:
    if not value:
        return default
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return default


def _flag(value: Optional[bool]) -> Optional[int]:
    return None if value is None else int(bool(value))


class DatabaseManager:
    """Manages database operations for the restock tracker"""

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize DatabaseManager

        Args:
            db_path: Path to SQLite database file, or ':memory:'
        """
        self.db_path = db_path or config.DATABASE_PATH
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self.conn = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        self.conn.row_factory = sqlite3.Row  # Return rows as dicts
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._create_tables()

    def _create_tables(self):
        """Create tables if they don't exist"""
        schema_path = Path(__file__).parent / "schema.sql"

        with open(schema_path, 'r') as f:
            schema_sql = f.read()

        self.conn.executescript(schema_sql)

    def _dict_from_row(self, row: Optional[sqlite3.Row]) -> Optional[Dict]:
        """Convert sqlite3.Row to dict"""
        return dict(row) if row else None

    def _fetchone(self, sql: str, params: Tuple = ()) -> Optional[Dict]:
        return self._dict_from_row(self.conn.execute(sql, params).fetchone())

    def _fetchall(self, sql: str, params: Tuple = ()) -> List[Dict]:
        return [dict(row) for row in self.conn.execute(sql, params).fetchall()]

    @contextmanager
    def transaction(self) -> Iterator['DatabaseManager']:
        """
        One atomic unit of work.

        Nested use joins the outer transaction. sqlite errors roll back and
        surface as PersistFailure; any other exception rolls back and
        propagates unchanged.
        """
        if self.conn.in_transaction:
            yield self
            return

        self.conn.execute("BEGIN")
        try:
            yield self
        except sqlite3.Error as e:
            self.conn.execute("ROLLBACK")
            log.error(f"Transaction rolled back: {e}")
            raise PersistFailure(f"Database error: {e}") from e
        except BaseException:
            self.conn.execute("ROLLBACK")
            raise
        else:
            try:
                self.conn.execute("COMMIT")
            except sqlite3.Error as e:
                self.conn.execute("ROLLBACK")
                raise PersistFailure(f"Commit failed: {e}") from e

    # =========================================================================
    # PRODUCT OPERATIONS
    # =========================================================================

    def _product_from_row(self, row: Optional[Dict]) -> Optional[Dict]:
        if row is None:
            return None
        row["metadata"] = _loads(row.get("metadata"), {})
        return row

    def get_product(self, product_id: int) -> Optional[Dict]:
        return self._product_from_row(self._fetchone("SELECT * FROM products WHERE id = ?", (product_id,)))

    def find_product_by_url(self, url: str) -> Optional[Dict]:
        return self._product_from_row(self._fetchone("SELECT * FROM products WHERE url = ?", (url,)))

    def find_product_by_canonical_url(self, canonical_url: str) -> Optional[Dict]:
        return self._product_from_row(self._fetchone(
            "SELECT * FROM products WHERE canonical_url = ? ORDER BY id LIMIT 1", (canonical_url,)
        ))

    def insert_product(self, product: Dict) -> Dict:
        """Insert a product and return the stored row"""
        now = utcnow_iso()
        cursor = self.conn.execute("""
            INSERT INTO products (
                url, canonical_url, name, description, vendor,
                main_image_url, metadata, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            product["url"],
            product.get("canonical_url"),
            product.get("name"),
            product.get("description"),
            product.get("vendor"),
            product.get("main_image_url"),
            _dumps(product.get("metadata")),
            now,
            now,
        ))
        return self.get_product(cursor.lastrowid)

    def update_product(self, product_id: int, product: Dict) -> Dict:
        """Update descriptive fields; the URL is the identity and never changes"""
        self.conn.execute("""
            UPDATE products SET
                canonical_url = ?,
                name = ?,
                description = ?,
                vendor = ?,
                main_image_url = ?,
                metadata = ?,
                updated_at = ?
            WHERE id = ?
        """, (
            product.get("canonical_url"),
            product.get("name"),
            product.get("description"),
            product.get("vendor"),
            product.get("main_image_url"),
            _dumps(product.get("metadata")),
            utcnow_iso(),
            product_id,
        ))
        return self.get_product(product_id)

    # =========================================================================
    # VARIANT OPERATIONS
    # =========================================================================

    def _variant_from_row(self, row: Optional[Dict]) -> Optional[Dict]:
        if row is None:
            return None
        row["attributes"] = _loads(row.get("attributes"), {})
        row["metadata"] = _loads(row.get("metadata"), {})
        if row.get("is_available") is not None:
            row["is_available"] = bool(row["is_available"])
        return row

    def get_variant(self, variant_id: int) -> Optional[Dict]:
        return self._variant_from_row(self._fetchone("SELECT * FROM variants WHERE id = ?", (variant_id,)))

    def list_variants(self, product_id: int) -> List[Dict]:
        rows = self._fetchall("SELECT * FROM variants WHERE product_id = ? ORDER BY id", (product_id,))
        return [self._variant_from_row(row) for row in rows]

    def find_matching_variant(self, product_id: int, attributes: Dict[str, str],
                              sku: Optional[str] = None) -> Optional[Dict]:
        """
        Find the stored variant a freshly extracted one corresponds to.

        Priority:
            1. identical attribute set
            2. new attributes are a superset of a stored, non-empty set
               (the page revealed an extra dimension); the most specific
               stored set wins
            3. same SKU within the product
        """
        variants = self.list_variants(product_id)
        new_items = set(attributes.items())

        for variant in variants:
            if set(variant["attributes"].items()) == new_items:
                return variant

        supersets = [
            v for v in variants
            if v["attributes"] and set(v["attributes"].items()) < new_items
        ]
        if supersets:
            return max(supersets, key=lambda v: (len(v["attributes"]), -v["id"]))

        if sku:
            for variant in variants:
                if variant["sku"] == sku:
                    return variant
        return None

    def insert_variant(self, product_id: int, variant: Dict) -> Dict:
        """
        Insert a variant row.

        current_price / current_stock_status start empty; only
        record_price / record_stock write them.
        """
        now = utcnow_iso()
        cursor = self.conn.execute("""
            INSERT INTO variants (
                product_id, sku, attributes, currency, is_available,
                metadata, last_checked_at, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            product_id,
            variant.get("sku"),
            _dumps(variant.get("attributes")),
            variant.get("currency"),
            _flag(variant.get("is_available")),
            _dumps(variant.get("metadata")),
            variant.get("last_checked_at") or now,
            now,
            now,
        ))
        return self.get_variant(cursor.lastrowid)

    def update_variant(self, variant_id: int, variant: Dict) -> Dict:
        self.conn.execute("""
            UPDATE variants SET
                sku = COALESCE(?, sku),
                attributes = ?,
                currency = COALESCE(?, currency),
                is_available = COALESCE(?, is_available),
                metadata = ?,
                last_checked_at = ?,
                updated_at = ?
            WHERE id = ?
        """, (
            variant.get("sku"),
            _dumps(variant.get("attributes")),
            variant.get("currency"),
            _flag(variant.get("is_available")),
            _dumps(variant.get("metadata")),
            variant.get("last_checked_at") or utcnow_iso(),
            utcnow_iso(),
            variant_id,
        ))
        return self.get_variant(variant_id)

    def touch_variant(self, variant_id: int, checked_at: Optional[str] = None):
        self.conn.execute(
            "UPDATE variants SET last_checked_at = ? WHERE id = ?",
            (checked_at or utcnow_iso(), variant_id),
        )

    # =========================================================================
    # HISTORY (append-only; the only writers of variants.current_*)
    # =========================================================================

    def latest_price(self, variant_id: int) -> Optional[Dict]:
        return self._fetchone("""
            SELECT * FROM variant_price_history
            WHERE variant_id = ? ORDER BY id DESC LIMIT 1
        """, (variant_id,))

    def latest_stock(self, variant_id: int) -> Optional[Dict]:
        return self._fetchone("""
            SELECT * FROM variant_stock_history
            WHERE variant_id = ? ORDER BY id DESC LIMIT 1
        """, (variant_id,))

    def record_price(self, variant_id: int, price: float, currency: Optional[str],
                     recorded_at: Optional[str] = None) -> Tuple[bool, Optional[Dict]]:
        """
        Append a price history row if price or currency differ from the latest row,
        and project it onto variants.current_price in the same call.

        Returns:
            (written, previous latest row or None)
        """
        previous = self.latest_price(variant_id)
        if previous and previous["price"] == price and previous["currency"] == currency:
            return False, previous

        recorded_at = recorded_at or utcnow_iso()
        self.conn.execute("""
            INSERT INTO variant_price_history (variant_id, price, currency, recorded_at)
            VALUES (?, ?, ?, ?)
        """, (variant_id, price, currency, recorded_at))
        self.conn.execute("""
            UPDATE variants SET current_price = ?, currency = COALESCE(?, currency), updated_at = ?
            WHERE id = ?
        """, (price, currency, recorded_at, variant_id))
        return True, previous

    def record_stock(self, variant_id: int, status: str, is_available: Optional[bool] = None,
                     recorded_at: Optional[str] = None) -> Tuple[bool, Optional[Dict]]:
        """
        Append a stock history row if the status differs from the latest row,
        and project it onto variants.current_stock_status in the same call.

        Returns:
            (written, previous latest row or None)
        """
        previous = self.latest_stock(variant_id)
        if previous and previous["status"] == status:
            return False, previous

        recorded_at = recorded_at or utcnow_iso()
        self.conn.execute("""
            INSERT INTO variant_stock_history (variant_id, status, is_available, recorded_at)
            VALUES (?, ?, ?, ?)
        """, (variant_id, status, _flag(is_available), recorded_at))
        self.conn.execute("""
            UPDATE variants SET
                current_stock_status = ?,
                is_available = COALESCE(?, is_available),
                updated_at = ?
            WHERE id = ?
        """, (status, _flag(is_available), recorded_at, variant_id))
        return True, previous

    def price_history(self, variant_id: int) -> List[Dict]:
        return self._fetchall(
            "SELECT * FROM variant_price_history WHERE variant_id = ? ORDER BY id", (variant_id,)
        )

    def stock_history(self, variant_id: int) -> List[Dict]:
        return self._fetchall(
            "SELECT * FROM variant_stock_history WHERE variant_id = ? ORDER BY id", (variant_id,)
        )

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    def get_variant_price(self, variant_id: int) -> Optional[Dict]:
        return self._fetchone("SELECT * FROM variant_prices WHERE variant_id = ?", (variant_id,))

    def get_variant_stock(self, variant_id: int) -> Optional[Dict]:
        return self._fetchone("SELECT * FROM variant_stock WHERE variant_id = ?", (variant_id,))

    def upsert_variant_price(self, variant_id: int, price: float, currency: Optional[str],
                             seen_at: Optional[str] = None) -> Dict:
        """
        Upsert the current price snapshot.

        On a change the old price moves to previous_price and discount_percent is
        recomputed (set on a decrease, cleared otherwise). An unchanged price only
        refreshes last_seen_at.
        """
        seen_at = seen_at or utcnow_iso()
        existing = self.get_variant_price(variant_id)

        if existing is None:
            self.conn.execute("""
                INSERT INTO variant_prices (
                    variant_id, price, currency, previous_price, discount_percent,
                    first_seen_at, last_seen_at
                ) VALUES (?, ?, ?, NULL, NULL, ?, ?)
            """, (variant_id, price, currency, seen_at, seen_at))
        elif existing["price"] != price:
            old = existing["price"]
            discount = None
            if old is not None and old > 0 and price < old:
                discount = round((old - price) / old * 100, 2)
            self.conn.execute("""
                UPDATE variant_prices SET
                    price = ?, currency = COALESCE(?, currency),
                    previous_price = ?, discount_percent = ?, last_seen_at = ?
                WHERE variant_id = ?
            """, (price, currency, old, discount, seen_at, variant_id))
        else:
            self.conn.execute("""
                UPDATE variant_prices SET currency = COALESCE(?, currency), last_seen_at = ?
                WHERE variant_id = ?
            """, (currency, seen_at, variant_id))
        return self.get_variant_price(variant_id)

    def upsert_variant_stock(self, variant_id: int, status: str, quantity: Optional[int] = None,
                             seen_at: Optional[str] = None) -> Dict:
        seen_at = seen_at or utcnow_iso()
        self.conn.execute("""
            INSERT INTO variant_stock (variant_id, status, quantity_available, first_seen_at, last_seen_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(variant_id) DO UPDATE SET
                status = excluded.status,
                quantity_available = excluded.quantity_available,
                last_seen_at = excluded.last_seen_at
        """, (variant_id, status, quantity, seen_at, seen_at))
        return self.get_variant_stock(variant_id)

    # =========================================================================
    # USER SETTINGS / TRACKED ITEMS
    # =========================================================================

    def upsert_user_settings(self, user_id: str, price_drop_threshold_percent: Optional[float] = None,
                             email_notifications_enabled: bool = True,
                             push_notifications_enabled: bool = False,
                             timezone: str = "UTC") -> Dict:
        self.conn.execute("""
            INSERT INTO user_settings (
                user_id, email_notifications_enabled, push_notifications_enabled,
                price_drop_threshold_percent, timezone
            ) VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                email_notifications_enabled = excluded.email_notifications_enabled,
                push_notifications_enabled = excluded.push_notifications_enabled,
                price_drop_threshold_percent = excluded.price_drop_threshold_percent,
                timezone = excluded.timezone
        """, (user_id, int(email_notifications_enabled), int(push_notifications_enabled),
              price_drop_threshold_percent, timezone))
        return self.get_user_settings(user_id)

    def get_user_settings(self, user_id: str) -> Optional[Dict]:
        return self._fetchone("SELECT * FROM user_settings WHERE user_id = ?", (user_id,))

    def insert_tracked_item(self, user_id: str, variant_id: int, target_price: Optional[float] = None,
                            notify_on_price_drop: bool = True, notify_on_back_in_stock: bool = True,
                            notify_on_any_stock_change: bool = False, active: bool = True) -> Dict:
        cursor = self.conn.execute("""
            INSERT INTO tracked_items (
                user_id, variant_id, target_price, notify_on_price_drop,
                notify_on_back_in_stock, notify_on_any_stock_change, active, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (user_id, variant_id, target_price, int(notify_on_price_drop),
              int(notify_on_back_in_stock), int(notify_on_any_stock_change), int(active), utcnow_iso()))
        return self.get_tracked_item(cursor.lastrowid)

    def get_tracked_item(self, tracked_item_id: int) -> Optional[Dict]:
        return self._fetchone("SELECT * FROM tracked_items WHERE id = ?", (tracked_item_id,))

    def get_tracked_item_for_user(self, tracked_item_id: int, user_id: str) -> Optional[Dict]:
        return self._fetchone(
            "SELECT * FROM tracked_items WHERE id = ? AND user_id = ?", (tracked_item_id, user_id)
        )

    def active_tracked_items(self, variant_id: int) -> List[Dict]:
        """Active tracked items for a variant, joined with their owner's settings"""
        return self._fetchall("""
            SELECT
                t.*,
                us.user_id IS NOT NULL AS has_settings,
                us.price_drop_threshold_percent,
                us.email_notifications_enabled,
                us.push_notifications_enabled
            FROM tracked_items t
            LEFT JOIN user_settings us ON us.user_id = t.user_id
            WHERE t.variant_id = ? AND t.active = 1
            ORDER BY t.id
        """, (variant_id,))

    def update_tracked_item_check(self, tracked_item_id: int, checked_at: str,
                                  availability: Optional[str] = None, confidence: Optional[int] = None,
                                  strategy_name: Optional[str] = None, reason_code: Optional[str] = None):
        self.conn.execute("""
            UPDATE tracked_items SET
                last_checked_at = ?,
                last_availability = COALESCE(?, last_availability),
                last_confidence = COALESCE(?, last_confidence),
                last_strategy_name = COALESCE(?, last_strategy_name),
                last_reason_code = COALESCE(?, last_reason_code)
            WHERE id = ?
        """, (checked_at, availability, confidence, strategy_name, reason_code, tracked_item_id))

    def mark_tracked_item_notified(self, tracked_item_id: int, notified_at: Optional[str] = None):
        self.conn.execute(
            "UPDATE tracked_items SET last_notified_at = ? WHERE id = ?",
            (notified_at or utcnow_iso(), tracked_item_id),
        )

    def variants_needing_tracking(self, limit: int, stale_before: str) -> List[int]:
        """
        Variant ids with an active tracked item whose snapshot is missing or
        was last seen before `stale_before`, oldest first.
        """
        rows = self._fetchall("""
            SELECT t.variant_id,
                   MAX(COALESCE(vp.last_seen_at, ''), COALESCE(vs.last_seen_at, '')) AS last_seen
            FROM tracked_items t
            JOIN variants v ON v.id = t.variant_id
            LEFT JOIN variant_prices vp ON vp.variant_id = t.variant_id
            LEFT JOIN variant_stock vs ON vs.variant_id = t.variant_id
            WHERE t.active = 1
            GROUP BY t.variant_id
            HAVING last_seen = '' OR last_seen < ?
            ORDER BY last_seen ASC, t.variant_id ASC
            LIMIT ?
        """, (stale_before, limit))
        return [row["variant_id"] for row in rows]

    # =========================================================================
    # STOCK CHECKS / NOTIFICATIONS
    # =========================================================================

    def insert_stock_check(self, tracked_item_id: int, variant_id: int, availability: str,
                           confidence: int, strategy_name: Optional[str], reason_code: Optional[str],
                           evidence: Optional[List[str]] = None, raw_metadata: Optional[Dict] = None,
                           checked_at: Optional[str] = None) -> int:
        cursor = self.conn.execute("""
            INSERT INTO stock_checks (
                tracked_item_id, variant_id, availability, confidence, strategy_name,
                reason_code, evidence, raw_metadata, checked_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            tracked_item_id, variant_id, availability, confidence, strategy_name, reason_code,
            json.dumps(list(evidence or [])), _dumps(raw_metadata), checked_at or utcnow_iso(),
        ))
        return cursor.lastrowid

    def list_stock_checks(self, tracked_item_id: int) -> List[Dict]:
        rows = self._fetchall(
            "SELECT * FROM stock_checks WHERE tracked_item_id = ? ORDER BY id", (tracked_item_id,)
        )
        for row in rows:
            row["evidence"] = _loads(row["evidence"], [])
            row["raw_metadata"] = _loads(row["raw_metadata"], {})
        return rows

    def insert_notification(self, user_id: str, tracked_item_id: Optional[int], variant_id: Optional[int],
                            notification_type: str, title: str, body: str,
                            metadata: Optional[Dict] = None, created_at: Optional[str] = None) -> int:
        cursor = self.conn.execute("""
            INSERT INTO notifications (
                user_id, tracked_item_id, variant_id, type, title, body, metadata, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (user_id, tracked_item_id, variant_id, notification_type, title, body,
              _dumps(metadata), created_at or utcnow_iso()))
        return cursor.lastrowid

    def count_recent_notifications(self, tracked_item_id: int, notification_type: str, since: str) -> int:
        row = self._fetchone("""
            SELECT COUNT(*) AS n FROM notifications
            WHERE tracked_item_id = ? AND type = ? AND created_at >= ?
        """, (tracked_item_id, notification_type, since))
        return row["n"] if row else 0

    def list_notifications(self, user_id: Optional[str] = None,
                           tracked_item_id: Optional[int] = None) -> List[Dict]:
        clauses, params = [], []
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if tracked_item_id is not None:
            clauses.append("tracked_item_id = ?")
            params.append(tracked_item_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._fetchall(f"SELECT * FROM notifications {where} ORDER BY id", tuple(params))
        for row in rows:
            row["metadata"] = _loads(row["metadata"], {})
        return rows

    def close(self):
        """Close database connection"""
        self.conn.close()
