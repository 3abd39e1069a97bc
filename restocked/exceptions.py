"""Custom exceptions for the restock tracker."""

from typing import Any, Dict, Optional


class RestockedError(Exception):
    """Base exception for the restock tracker."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class FetchFailure(RestockedError):
    """Product page could not be retrieved."""

    def __init__(self, url: str, error: Optional[str] = None):
        super().__init__(f"Failed to fetch product page: {error or 'unknown error'}", {"url": url})
        self.url = url
        self.error = error


class VariantNotFound(RestockedError):
    """Variant id has no row."""

    def __init__(self, variant_id: int):
        super().__init__(f"Variant {variant_id} not found", {"variant_id": variant_id})
        self.variant_id = variant_id


class ProductNotFound(RestockedError):
    """Product row referenced by a variant is missing."""

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found", {"product_id": product_id})
        self.product_id = product_id


class TrackedItemNotFound(RestockedError):
    """Tracked item does not exist or is not owned by the user."""

    def __init__(self, tracked_item_id: int, user_id: Optional[str] = None):
        super().__init__(
            f"Tracked item {tracked_item_id} not found",
            {"tracked_item_id": tracked_item_id, "user_id": user_id},
        )
        self.tracked_item_id = tracked_item_id


class CheckNowRateLimited(RestockedError):
    """Manual check requested again inside the cooldown window."""

    def __init__(self, retry_after: int):
        super().__init__(
            f"Please wait {retry_after} seconds before checking this item again",
            {"retry_after": retry_after},
        )
        self.retry_after = retry_after


class PersistFailure(RestockedError):
    """Database error while persisting a check; the transaction was rolled back."""

    pass
