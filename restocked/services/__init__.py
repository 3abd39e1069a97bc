"""Ingestion, tracking, notification and alert services."""

from .alerts import AlertChannel, AlertGate, AlertPayload, TelegramChannel
from .check_now import CheckNowRateLimiter
from .ingestion import IngestionResult, IngestionService
from .notifications import NotificationEngine, NotificationPayload, PriceDelta, StockDelta
from .tracking import TrackingService, TrackVariantResult, TrackVariantsResult

__all__ = [
    "AlertChannel",
    "AlertGate",
    "AlertPayload",
    "TelegramChannel",
    "CheckNowRateLimiter",
    "IngestionResult",
    "IngestionService",
    "NotificationEngine",
    "NotificationPayload",
    "PriceDelta",
    "StockDelta",
    "TrackingService",
    "TrackVariantResult",
    "TrackVariantsResult",
]
