"""
Transactional ingestion of a ProductShell.

Upserts the product and its variants, appends price/stock history only when
values change, and creates notification rows for tracked items whenever
history is written. The whole pass is one transaction.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from ..logger import get_service_logger
from ..models import ProductShell, StockStatus, VariantShell
from .notifications import NotificationEngine, PriceDelta, StockDelta, record_decisions

log = get_service_logger('ingestion')


class IngestionResult(BaseModel):
    """Stored product and variant rows after one ingest"""
    product: Dict[str, Any] = Field(description="Product row")
    variants: List[Dict[str, Any]] = Field(default_factory=list, description="Variant rows, in shell order")
    notifications_created: int = Field(default=0, description="Notification rows written by this ingest")


def json_safe(value: Any) -> Any:
    """Drop None values and anything json can't represent, recursively."""
    if isinstance(value, dict):
        cleaned = {}
        for key, item in value.items():
            item = json_safe(item)
            if item is None or item == {}:
                continue
            cleaned[str(key)] = item
        return cleaned
    if isinstance(value, (list, tuple)):
        return [json_safe(item) for item in value if item is not None]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def vendor_from_url(url: str) -> Optional[str]:
    host = urlparse(url).hostname
    if not host:
        return None
    return host[4:] if host.startswith("www.") else host


def normalize_product(shell: ProductShell) -> Dict[str, Any]:
    return {
        "url": shell.url,
        "canonical_url": shell.final_url or None,
        "name": shell.title,
        "description": shell.description,
        "vendor": vendor_from_url(shell.final_url or shell.url),
        "main_image_url": shell.images[0] if shell.images else None,
        "metadata": json_safe({
            **shell.metadata,
            "images": list(shell.images),
            "notes": list(shell.notes),
            "fetched_at": shell.fetched_at,
        }),
    }


def normalize_variant(variant: VariantShell, shell: ProductShell) -> Dict[str, Any]:
    """
    Map a VariantShell onto variant row fields.

    Page-level price and stock apply to every variant; the variant's own
    values are used only when the page gave none.
    """
    meta = variant.source_metadata or {}

    currency = None
    if shell.pricing and shell.pricing.currency:
        currency = shell.pricing.currency
    elif meta.get("currency"):
        currency = str(meta["currency"])
    currency = currency.strip().upper() if currency else None

    price = shell.pricing.amount if shell.pricing else variant.price

    if shell.stock is not None:
        status = shell.stock.status.value
    elif variant.availability is not None:
        status = StockStatus.IN_STOCK.value if variant.availability else StockStatus.OUT_OF_STOCK.value
    elif meta.get("stock_status"):
        status = StockStatus.normalize(meta["stock_status"]).value
    else:
        status = None

    if variant.availability is not None:
        is_available = variant.availability
    elif status == StockStatus.IN_STOCK.value:
        is_available = True
    elif status == StockStatus.OUT_OF_STOCK.value:
        is_available = False
    else:
        is_available = None

    return {
        "attributes": variant.attributes_dict(),
        "sku": variant.external_id or meta.get("sku"),
        "currency": currency,
        "price": price,
        "stock_status": status,
        "is_available": is_available,
        "metadata": json_safe({
            **{k: v for k, v in meta.items() if k != "original"},
            "variant_url": variant.variant_url,
            "variant_id": variant.external_id,
        }),
    }


def variants_to_ingest(shell: ProductShell) -> List[VariantShell]:
    """A page with commerce data but no variant options still gets one default variant."""
    if shell.variants:
        return list(shell.variants)
    if shell.pricing is not None or shell.stock is not None:
        return [VariantShell(source_metadata={"source": "default"})]
    return []


class IngestionService:
    """
    Persist ProductShells.

    Usage:
        service = IngestionService(DatabaseManager())
        result = service.ingest(extract_product_shell(fetch_result))
    """

    def __init__(self, db, engine: Optional[NotificationEngine] = None):
        self.db = db
        self.engine = engine or NotificationEngine()

    def ingest(self, shell: ProductShell) -> IngestionResult:
        product_data = normalize_product(shell)
        notifications = 0

        with self.db.transaction():
            product = self._upsert_product(product_data)
            variants = []

            for variant_shell in variants_to_ingest(shell):
                data = normalize_variant(variant_shell, shell)
                variant = self._upsert_variant(product["id"], data)
                notifications += self._record_history(variant["id"], data)
                variants.append(self.db.get_variant(variant["id"]))

        log.info(
            f"Ingested {shell.url}: product {product['id']}, "
            f"{len(variants)} variant(s), {notifications} notification(s)"
        )
        return IngestionResult(product=product, variants=variants, notifications_created=notifications)

    def _upsert_product(self, data: Dict[str, Any]) -> Dict[str, Any]:
        existing = self.db.find_product_by_url(data["url"])
        if existing is None and data.get("canonical_url"):
            existing = self.db.find_product_by_canonical_url(data["canonical_url"])

        if existing is not None:
            return self.db.update_product(existing["id"], data)
        return self.db.insert_product(data)

    def _upsert_variant(self, product_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        existing = self.db.find_matching_variant(product_id, data["attributes"], data["sku"])
        if existing is not None:
            # Keep the richer stored attribute set when the page revealed a new dimension
            if len(existing["attributes"]) > len(data["attributes"]):
                data = {**data, "attributes": existing["attributes"]}
            return self.db.update_variant(existing["id"], data)
        return self.db.insert_variant(product_id, data)

    def _record_history(self, variant_id: int, data: Dict[str, Any]) -> int:
        """Append changed price/stock history and notify tracked items. Returns notifications written."""
        price_delta = None
        stock_delta = None

        if data["price"] is not None:
            written, previous = self.db.record_price(variant_id, data["price"], data["currency"])
            if written:
                price_delta = PriceDelta.between(previous["price"] if previous else None, data["price"])

        if data["stock_status"]:
            written, previous = self.db.record_stock(variant_id, data["stock_status"], data["is_available"])
            if written:
                stock_delta = StockDelta.between(previous["status"] if previous else None, data["stock_status"])

        if price_delta is None and stock_delta is None:
            return 0

        created = 0
        for item in self.db.active_tracked_items(variant_id):
            decisions = self.engine.decide(item, price_delta, stock_delta, currency=data["currency"])
            created += len(record_decisions(self.db, item, variant_id, decisions))
        return created
