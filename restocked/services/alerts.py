"""
Outward alerts.

Low-latency "back in stock" pings, separate from the durable notification
rows. The gate decides whether an alert may go out; a channel delivers it.
"""

import asyncio
import html
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import requests
from pydantic import BaseModel, Field

from ..config import config
from ..logger import get_service_logger
from ..models import NotificationType, to_iso

log = get_service_logger('alerts')

TELEGRAM_API_BASE = "https://api.telegram.org"
RECENT_ALERT_WINDOW = timedelta(hours=1)


class AlertPayload(BaseModel):
    """What a delivery channel needs to announce a restock"""
    product_name: str = Field(description="Display name of the product")
    url: str = Field(description="Link to the product page")
    confidence: int = Field(ge=0, le=100, description="Stock determination confidence, 0-100")


class AlertChannel(ABC):
    """A delivery channel. `send` reports success; it should not raise."""

    name: str = "channel"

    @abstractmethod
    def send(self, payload: AlertPayload) -> bool:
        pass


def confidence_emoji(confidence: int) -> str:
    if confidence >= 90:
        return "🎯"
    if confidence >= 70:
        return "✅"
    return "⚠️"


class TelegramChannel(AlertChannel):
    """Telegram Bot API delivery (sendMessage, HTML parse mode)."""

    name = "telegram"

    def __init__(self, bot_token: Optional[str] = None, chat_id: Optional[str] = None,
                 timeout: float = 10, session: Optional[requests.Session] = None):
        self.bot_token = bot_token or config.TELEGRAM_BOT_TOKEN
        self.chat_id = chat_id or config.TELEGRAM_CHAT_ID
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    @staticmethod
    def format_message(payload: AlertPayload) -> str:
        return (
            "🎉 <b>Back in Stock!</b>\n\n"
            f"<b>Product:</b> {html.escape(payload.product_name)}\n"
            f"<b>Confidence:</b> {confidence_emoji(payload.confidence)} {payload.confidence}%\n\n"
            f"<a href=\"{html.escape(payload.url, quote=True)}\">View Product →</a>"
        )

    def send(self, payload: AlertPayload) -> bool:
        if not self.configured:
            log.warning("Telegram not configured; skipping alert")
            return False

        try:
            response = self.session.post(
                f"{TELEGRAM_API_BASE}/bot{self.bot_token}/sendMessage",
                json={
                    "chat_id": self.chat_id,
                    "text": self.format_message(payload),
                    "parse_mode": "HTML",
                    "disable_web_page_preview": False,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            log.error(f"Telegram request failed: {type(e).__name__}")
            return False

        if response.status_code != 200:
            log.error(f"Telegram API returned {response.status_code}")
            return False
        return True


class AlertGate:
    """
    Decide whether a back-in-stock event may produce an outward alert, and
    deliver it.

    An alert goes out only when:
        - confidence >= the configured minimum
        - the tracked item has not been alerted within the cooldown
        - at most one back_in_stock notification row exists for the item
          in the last hour (the row for this very event)

    Runs after the check's transaction has committed. A delivery failure is
    logged and reported as False; it never raises.
    """

    def __init__(self, db, channel: AlertChannel,
                 confidence_min: Optional[int] = None,
                 cooldown_seconds: Optional[int] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.channel = channel
        self.confidence_min = (
            confidence_min if confidence_min is not None else config.STOCKCHECK_NOTIFY_CONFIDENCE_MIN
        )
        self.cooldown = timedelta(
            seconds=cooldown_seconds if cooldown_seconds is not None else config.TELEGRAM_ALERT_COOLDOWN_SECONDS
        )
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def allows(self, tracked_item_id: int, confidence: Optional[int]) -> bool:
        if confidence is None or confidence < self.confidence_min:
            log.info(f"Alert skipped for tracked item {tracked_item_id}: confidence {confidence}")
            return False

        item = self.db.get_tracked_item(tracked_item_id)
        if item is None:
            return False

        now = self.clock()
        last = item.get("last_notified_at")
        if last and datetime.fromisoformat(last) > now - self.cooldown:
            log.info(f"Alert skipped for tracked item {tracked_item_id}: cooldown active")
            return False

        recent = self.db.count_recent_notifications(
            tracked_item_id, NotificationType.BACK_IN_STOCK.value, to_iso(now - RECENT_ALERT_WINDOW)
        )
        if recent > 1:
            log.info(f"Alert skipped for tracked item {tracked_item_id}: {recent} recent restock rows")
            return False
        return True

    async def notify_back_in_stock(self, tracked_item_id: int, product_name: Optional[str],
                                   url: str, confidence: Optional[int]) -> bool:
        if not self.allows(tracked_item_id, confidence):
            return False

        payload = AlertPayload(product_name=product_name or url, url=url, confidence=confidence)
        try:
            sent = await asyncio.to_thread(self.channel.send, payload)
        except Exception as e:
            log.error(f"Alert delivery via {self.channel.name} raised: {e!r}")
            return False

        if not sent:
            log.warning(f"Alert delivery via {self.channel.name} failed for tracked item {tracked_item_id}")
            return False

        self.db.mark_tracked_item_notified(tracked_item_id, to_iso(self.clock()))
        log.info(f"Back-in-stock alert sent for tracked item {tracked_item_id}")
        return True
