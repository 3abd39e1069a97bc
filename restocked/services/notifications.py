"""
Notification decision engine.

Given what changed for a variant and one tracked item (with its owner's
settings), decide which durable notifications to create. Pure: no I/O.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..models import NotificationType, StockStatus

IN_STOCK = StockStatus.IN_STOCK.value
OUT_OF_STOCK = StockStatus.OUT_OF_STOCK.value
RESTOCK_FROM = {OUT_OF_STOCK, StockStatus.UNKNOWN.value, None}

# Applied when a settings row exists but leaves the threshold unset
DEFAULT_PRICE_DROP_THRESHOLD = 5.0


class NotificationPayload(BaseModel):
    """Stored notification content"""
    title: str = Field(description="Short headline shown in the notification list")
    body: str = Field(description="Human-readable description of the change")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Machine-readable change details")


@dataclass
class PriceDelta:
    """Price movement for one check. `old` is None on the first observation."""
    old: Optional[float]
    new: float
    percent_change: float

    @classmethod
    def between(cls, old: Optional[float], new: float) -> 'PriceDelta':
        if old is None or old == 0:
            percent = 0.0
        else:
            percent = (new - old) / old * 100
        return cls(old=old, new=new, percent_change=round(percent, 4))

    @property
    def changed(self) -> bool:
        return self.old is None or self.old != self.new

    def to_dict(self) -> Dict[str, Any]:
        return {"old": self.old, "new": self.new, "percent_change": self.percent_change}


@dataclass
class StockDelta:
    """Stock transition for one check. `old_status` is None on the first observation."""
    old_status: Optional[str]
    new_status: str
    went_in_stock: bool
    went_out_of_stock: bool

    @classmethod
    def between(cls, old_status: Optional[str], new_status: str) -> 'StockDelta':
        return cls(
            old_status=old_status,
            new_status=new_status,
            went_in_stock=old_status in RESTOCK_FROM and new_status == IN_STOCK,
            went_out_of_stock=old_status == IN_STOCK and new_status == OUT_OF_STOCK,
        )

    @property
    def changed(self) -> bool:
        return self.old_status != self.new_status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "old_status": self.old_status,
            "new_status": self.new_status,
            "went_in_stock": self.went_in_stock,
            "went_out_of_stock": self.went_out_of_stock,
        }


@dataclass
class NotificationDecision:
    type: NotificationType
    payload: NotificationPayload


def format_money(amount: Optional[float], currency: Optional[str] = None) -> str:
    if amount is None:
        return "n/a"
    if not currency or currency == "USD":
        return f"${amount:.2f}"
    return f"{amount:.2f} {currency}"


class NotificationEngine:
    """
    Decide notifications for one tracked item.

    Rules are evaluated independently; one change can produce several
    notifications (e.g. a price drop that also reaches the target price).
    """

    def decide(
        self,
        tracked_item: Dict[str, Any],
        price_delta: Optional[PriceDelta] = None,
        stock_delta: Optional[StockDelta] = None,
        currency: Optional[str] = None,
    ) -> List[NotificationDecision]:
        decisions: List[NotificationDecision] = []

        if price_delta is not None and self.should_notify_price_drop(tracked_item, price_delta):
            decisions.append(NotificationDecision(NotificationType.PRICE_DROP, NotificationPayload(
                title="Price Drop Detected",
                body=(
                    f"Price dropped from {format_money(price_delta.old, currency)} to "
                    f"{format_money(price_delta.new, currency)} "
                    f"({abs(price_delta.percent_change):.1f}% decrease)"
                ),
                metadata={
                    "price_before": price_delta.old,
                    "price_after": price_delta.new,
                    "percent_change": price_delta.percent_change,
                    "currency": currency,
                },
            )))

        if stock_delta is not None and stock_delta.went_in_stock and tracked_item.get("notify_on_back_in_stock"):
            decisions.append(NotificationDecision(NotificationType.BACK_IN_STOCK, NotificationPayload(
                title="Back In Stock",
                body="Product is now back in stock!",
                metadata={"old_status": stock_delta.old_status, "new_status": stock_delta.new_status},
            )))

        if (
            stock_delta is not None
            and stock_delta.old_status is not None
            and stock_delta.changed
            and not stock_delta.went_in_stock
            and tracked_item.get("notify_on_any_stock_change")
        ):
            decisions.append(NotificationDecision(NotificationType.STOCK_CHANGE, NotificationPayload(
                title="Stock Status Changed",
                body=f"Stock status changed from {stock_delta.old_status} to {stock_delta.new_status}",
                metadata={"old_status": stock_delta.old_status, "new_status": stock_delta.new_status},
            )))

        target = tracked_item.get("target_price")
        if price_delta is not None and target is not None and price_delta.new <= target:
            decisions.append(NotificationDecision(NotificationType.THRESHOLD_MET, NotificationPayload(
                title="Target Price Reached",
                body=(
                    f"Price has reached your target of {format_money(target, currency)}. "
                    f"Current price: {format_money(price_delta.new, currency)}"
                ),
                metadata={"target_price": target, "current_price": price_delta.new, "currency": currency},
            )))

        return decisions

    @staticmethod
    def should_notify_price_drop(tracked_item: Dict[str, Any], delta: PriceDelta) -> bool:
        if delta.old is None or delta.new >= delta.old:
            return False
        if not tracked_item.get("notify_on_price_drop"):
            return False
        # No settings row means any drop counts
        if not tracked_item.get("has_settings"):
            return True
        threshold = tracked_item.get("price_drop_threshold_percent")
        if threshold is None:
            threshold = DEFAULT_PRICE_DROP_THRESHOLD
        return abs(delta.percent_change) >= threshold


def record_decisions(db, tracked_item: Dict[str, Any], variant_id: int,
                     decisions: List[NotificationDecision], created_at: Optional[str] = None) -> List[int]:
    """Write one notification row per decision. Caller owns the transaction."""
    ids = []
    for decision in decisions:
        ids.append(db.insert_notification(
            user_id=tracked_item["user_id"],
            tracked_item_id=tracked_item["id"],
            variant_id=variant_id,
            notification_type=decision.type.value,
            title=decision.payload.title,
            body=decision.payload.body,
            metadata=decision.payload.metadata,
            created_at=created_at,
        ))
    return ids
