"""
Restock tracker.

Extracts variants, price and stock from product pages, stores them with
change history, and notifies users when tracked items drop in price or come
back in stock.
"""

from .models import (
    ExtractionContext,
    FetchResult,
    PriceShell,
    ProductShell,
    StockShell,
    StockStatus,
    VariantAttribute,
    VariantShell,
)
from .product import extract_product_shell

__version__ = "0.1.0"

__all__ = [
    "ExtractionContext",
    "FetchResult",
    "PriceShell",
    "ProductShell",
    "StockShell",
    "StockStatus",
    "VariantAttribute",
    "VariantShell",
    "extract_product_shell",
]
