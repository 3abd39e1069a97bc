"""
Change-detection & tracking service.

One variant per unit of work:

    Load -> Fetch+Extract -> Diff -> Persist -> Notify

Load and Persist are synchronous sqlite work; the page fetch is the only
await. Persist is a single transaction, so a check either lands completely
or leaves stored state untouched. Outward alerts go out after commit.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from ..config import config
from ..exceptions import FetchFailure, ProductNotFound, TrackedItemNotFound, VariantNotFound
from ..logger import get_service_logger
from ..models import NotificationType, ProductShell, StockStatus, VariantShell, to_iso
from ..product import extract_product_shell
from .check_now import CheckNowRateLimiter
from .ingestion import normalize_variant
from .notifications import NotificationEngine, PriceDelta, StockDelta, record_decisions

log = get_service_logger('tracking')


# =============================================================================
# RESULTS
# =============================================================================

class TrackVariantResult(BaseModel):
    """Outcome of one tracking cycle for a variant"""
    variant_id: int
    price_delta: Optional[Dict[str, Any]] = Field(default=None, description="{old, new, percent_change}")
    stock_delta: Optional[Dict[str, Any]] = Field(
        default=None, description="{old_status, new_status, went_in_stock, went_out_of_stock}"
    )
    notifications_created: int = 0
    tracked_items_updated: int = 0
    alerts_sent: int = 0
    notes: List[str] = Field(default_factory=list, description="Extraction notes from this check")


class TrackVariantOutcome(BaseModel):
    """One entry of a batch: either a result or the error that stopped it"""
    variant_id: int
    success: bool
    result: Optional[TrackVariantResult] = None
    error: Optional[str] = None


class TrackVariantsResult(BaseModel):
    """Summary of a batch run"""
    total: int
    succeeded: int
    failed: int
    results: List[TrackVariantOutcome] = Field(default_factory=list)


# =============================================================================
# HELPERS
# =============================================================================

def match_variant(stored: Dict[str, Any], extracted: Sequence[VariantShell]) -> Optional[VariantShell]:
    """
    Re-identify a stored variant among freshly extracted ones.

    Every stored attribute must be present with the same value; SKU is the
    next fallback, then the first extracted variant.
    """
    if not extracted:
        return None

    stored_items = set((stored.get("attributes") or {}).items())
    for candidate in extracted:
        if stored_items <= set(candidate.attributes_dict().items()):
            return candidate

    sku = stored.get("sku")
    if sku:
        for candidate in extracted:
            if candidate.external_id == sku:
                return candidate

    log.warning(
        f"Variant {stored['id']} ({stored.get('attributes')}) not found among "
        f"{len(extracted)} extracted variant(s); using the first one"
    )
    return extracted[0]


# =============================================================================
# SERVICE
# =============================================================================

class TrackingService:
    """
    Recurring price/stock checks for tracked variants.

    Usage:
        service = TrackingService(DatabaseManager(), Fetcher(), alert_gate=gate)
        result = await service.track_variant(42)
        batch = await service.track_variants(service.variants_needing_tracking(50))
    """

    def __init__(self, db, fetcher, alert_gate=None,
                 engine: Optional[NotificationEngine] = None,
                 rate_limiter: Optional[CheckNowRateLimiter] = None,
                 concurrency: Optional[int] = None,
                 stale_minutes: Optional[int] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.fetcher = fetcher
        self.alert_gate = alert_gate
        self.engine = engine or NotificationEngine()
        self.rate_limiter = rate_limiter or CheckNowRateLimiter()
        self.concurrency = concurrency or config.TRACKING_CONCURRENCY
        self.stale_minutes = stale_minutes if stale_minutes is not None else config.TRACKING_STALE_MINUTES
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # -------------------------------------------------------------------------
    # Single variant
    # -------------------------------------------------------------------------

    async def track_variant(self, variant_id: int) -> TrackVariantResult:
        try:
            return await self._track_variant(variant_id)
        except Exception as e:
            log.error(f"Tracking variant {variant_id} failed: {e}")
            raise

    async def _track_variant(self, variant_id: int) -> TrackVariantResult:
        # Load
        variant = self.db.get_variant(variant_id)
        if variant is None:
            raise VariantNotFound(variant_id)
        product = self.db.get_product(variant["product_id"])
        if product is None:
            raise ProductNotFound(variant["product_id"])

        tracked_items = self.db.active_tracked_items(variant_id)

        # Fetch + extract
        fetch_result = await self.fetcher.fetch(product["url"])
        if not fetch_result.success:
            raise FetchFailure(product["url"], fetch_result.error)
        shell = extract_product_shell(fetch_result)

        matched = match_variant(variant, shell.variants)
        if not shell.variants:
            log.warning(
                f"No variants extracted for {product['url']}; keeping last-known data for variant {variant_id}"
            )
        observed = normalize_variant(matched or VariantShell(), shell)

        # Diff + persist + decide
        price_delta, stock_delta, restocked_items, notifications = self._persist(
            variant_id, shell, observed, tracked_items
        )

        # Outward alerts, after commit
        alerts_sent = 0
        if restocked_items and self.alert_gate is not None:
            confidence = shell.stock.confidence if shell.stock else None
            for tracked_item_id in restocked_items:
                try:
                    if await self.alert_gate.notify_back_in_stock(
                        tracked_item_id, product.get("name"), product["url"], confidence
                    ):
                        alerts_sent += 1
                except Exception as e:
                    log.error(f"Alert for tracked item {tracked_item_id} failed: {e!r}")

        log.info(
            f"Tracked variant {variant_id}: "
            f"price {price_delta.old if price_delta else None} -> {price_delta.new if price_delta else None}, "
            f"stock {stock_delta.old_status if stock_delta else None} -> "
            f"{stock_delta.new_status if stock_delta else None}, "
            f"{notifications} notification(s), {alerts_sent} alert(s)"
        )
        return TrackVariantResult(
            variant_id=variant_id,
            price_delta=price_delta.to_dict() if price_delta else None,
            stock_delta=stock_delta.to_dict() if stock_delta else None,
            notifications_created=notifications,
            tracked_items_updated=len(tracked_items),
            alerts_sent=alerts_sent,
            notes=list(shell.notes),
        )

    def _persist(self, variant_id: int, shell: ProductShell, observed: Dict[str, Any],
                 tracked_items: List[Dict[str, Any]]):
        """
        Write the check in one transaction.

        Deltas are taken against the latest history rows, so a change already
        recorded by ingestion or an earlier check is never announced again.
        Notifications are decided only for history that this check wrote.

        Returns:
            (price delta, stock delta,
             ids of tracked items with a back_in_stock notification, notifications created)
        """
        checked_at = to_iso(self.clock())
        stock = shell.stock
        currency = observed["currency"]
        price_delta = None
        stock_delta = None
        price_changed = None
        stock_changed = None
        restocked_items = []
        created = 0

        with self.db.transaction():
            if observed["price"] is not None:
                self.db.upsert_variant_price(variant_id, observed["price"], currency, checked_at)
                written, previous = self.db.record_price(variant_id, observed["price"], currency, checked_at)
                price_delta = PriceDelta.between(previous["price"] if previous else None, observed["price"])
                if written and price_delta.changed:
                    price_changed = price_delta
            if observed["stock_status"]:
                self.db.upsert_variant_stock(
                    variant_id, observed["stock_status"], stock.quantity if stock else None, checked_at
                )
                written, previous = self.db.record_stock(
                    variant_id, observed["stock_status"], observed["is_available"], checked_at
                )
                stock_delta = StockDelta.between(previous["status"] if previous else None, observed["stock_status"])
                if written:
                    stock_changed = stock_delta
            self.db.touch_variant(variant_id, checked_at)

            for item in tracked_items:
                self.db.insert_stock_check(
                    tracked_item_id=item["id"],
                    variant_id=variant_id,
                    availability=stock.status.value if stock else StockStatus.UNKNOWN.value,
                    confidence=stock.confidence if stock else 0,
                    strategy_name=stock.strategy_name if stock else None,
                    reason_code=stock.reason_code if stock else None,
                    evidence=list(stock.evidence) if stock else [],
                    raw_metadata=stock.raw_metadata if stock else {},
                    checked_at=checked_at,
                )
                self.db.update_tracked_item_check(
                    item["id"],
                    checked_at,
                    availability=observed["stock_status"],
                    confidence=stock.confidence if stock else None,
                    strategy_name=stock.strategy_name if stock else None,
                    reason_code=stock.reason_code if stock else None,
                )

                if price_changed is None and stock_changed is None:
                    continue
                decisions = self.engine.decide(item, price_changed, stock_changed, currency=currency)
                created += len(record_decisions(self.db, item, variant_id, decisions, checked_at))
                if any(d.type is NotificationType.BACK_IN_STOCK for d in decisions):
                    restocked_items.append(item["id"])

        return price_delta, stock_delta, restocked_items, created

    # -------------------------------------------------------------------------
    # Batches
    # -------------------------------------------------------------------------

    async def track_variants(self, variant_ids: Sequence[int],
                             concurrency: Optional[int] = None) -> TrackVariantsResult:
        """
        Track variants in fixed-size concurrent batches.

        Each batch settles completely before the next starts; a failed variant
        is recorded and never cancels its batch-mates.
        """
        size = max(1, concurrency or self.concurrency)
        ids = list(variant_ids)
        outcomes: List[TrackVariantOutcome] = []

        for start in range(0, len(ids), size):
            batch = ids[start:start + size]
            settled = await asyncio.gather(
                *(self.track_variant(variant_id) for variant_id in batch),
                return_exceptions=True,
            )
            for variant_id, result in zip(batch, settled):
                if isinstance(result, BaseException):
                    outcomes.append(TrackVariantOutcome(
                        variant_id=variant_id, success=False, error=f"{type(result).__name__}: {result}"
                    ))
                else:
                    outcomes.append(TrackVariantOutcome(variant_id=variant_id, success=True, result=result))

        succeeded = sum(1 for outcome in outcomes if outcome.success)
        summary = TrackVariantsResult(
            total=len(ids), succeeded=succeeded, failed=len(ids) - succeeded, results=outcomes
        )
        log.info(f"Batch complete: {summary.succeeded}/{summary.total} succeeded, {summary.failed} failed")
        return summary

    def variants_needing_tracking(self, limit: int = 100, stale_minutes: Optional[int] = None) -> List[int]:
        """Active tracked variants with no snapshot, or one older than the stale window, oldest first."""
        minutes = stale_minutes if stale_minutes is not None else self.stale_minutes
        stale_before = to_iso(self.clock() - timedelta(minutes=minutes))
        return self.db.variants_needing_tracking(limit, stale_before)

    async def track_due(self, limit: int = 100) -> TrackVariantsResult:
        return await self.track_variants(self.variants_needing_tracking(limit))

    # -------------------------------------------------------------------------
    # Manual check
    # -------------------------------------------------------------------------

    async def check_now(self, user_id: str, tracked_item_id: int) -> TrackVariantResult:
        """Run a check for one of the user's tracked items, subject to the per-item cooldown."""
        item = self.db.get_tracked_item_for_user(tracked_item_id, user_id)
        if item is None:
            raise TrackedItemNotFound(tracked_item_id, user_id)

        await self.rate_limiter.acquire(user_id, tracked_item_id)
        log.info(f"Manual check by {user_id} for tracked item {tracked_item_id}")
        return await self.track_variant(item["variant_id"])
