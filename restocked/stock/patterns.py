"""
Text-to-status matching shared by the stock strategies.
"""

import re
from typing import Any, Optional, Tuple

from ..models import StockStatus

# Checked in order; negative phrases come first so "not available" never reads as available
STATUS_PATTERNS = [
    (StockStatus.OUT_OF_STOCK, re.compile(
        r'\b(?:out\s+of\s+stock|sold\s+out|unavailable|not\s+available|no\s+longer\s+available|'
        r'temporarily\s+unavailable|currently\s+unavailable|notify\s+me|'
        r'email\s+me\s+when\s+available|coming\s+soon)\b', re.IGNORECASE)),
    (StockStatus.PREORDER, re.compile(
        r'\b(?:pre[-\s]?order|presale|back[-\s]?order(?:ed)?|ships\s+when\s+available)\b', re.IGNORECASE)),
    (StockStatus.LOW_STOCK, re.compile(
        r'\b(?:low\s+stock|only\s+\d+\s+left|few\s+left|limited\s+(?:stock|quantity))\b', re.IGNORECASE)),
    (StockStatus.IN_STOCK, re.compile(
        r'\b(?:in\s+stock|available\s+now|available|ships\s+today|ships\s+in|ships\s+within|'
        r'ready\s+to\s+ship|\d+\s+(?:left|remaining|in\s+inventory))\b', re.IGNORECASE)),
]

QUANTITY_RE = re.compile(r'\b(\d{1,6})\s*(?:left|remaining|in\s+stock|available|in\s+inventory)\b', re.IGNORECASE)

# schema.org availability values, full URL or bare
SCHEMA_AVAILABILITY = {
    "instock": StockStatus.IN_STOCK,
    "onlineonly": StockStatus.IN_STOCK,
    "instoreonly": StockStatus.IN_STOCK,
    "limitedavailability": StockStatus.LOW_STOCK,
    "outofstock": StockStatus.OUT_OF_STOCK,
    "soldout": StockStatus.OUT_OF_STOCK,
    "discontinued": StockStatus.OUT_OF_STOCK,
    "preorder": StockStatus.PREORDER,
    "presale": StockStatus.PREORDER,
    "backorder": StockStatus.PREORDER,
}

LOW_STOCK_THRESHOLD = 5


def match_stock_text(text: Optional[str]) -> Optional[Tuple[StockStatus, str]]:
    """First status whose phrase appears in `text`, with the matched phrase."""
    if not text:
        return None
    for status, pattern in STATUS_PATTERNS:
        match = pattern.search(text)
        if match:
            return status, match.group(0)
    return None


def parse_quantity(text: Optional[str]) -> Optional[int]:
    if not text:
        return None
    match = QUANTITY_RE.search(text)
    return int(match.group(1)) if match else None


def status_from_value(value: Any) -> Optional[StockStatus]:
    """
    Map a structured availability value onto a status.

    Booleans are availability flags, numbers are inventory counts, strings are
    schema.org values or free text. None when the value says nothing.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return StockStatus.IN_STOCK if value else StockStatus.OUT_OF_STOCK
    if isinstance(value, (int, float)):
        if value <= 0:
            return StockStatus.OUT_OF_STOCK
        return StockStatus.LOW_STOCK if value < LOW_STOCK_THRESHOLD else StockStatus.IN_STOCK
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    if text.lower() in ("true", "false"):
        return StockStatus.IN_STOCK if text.lower() == "true" else StockStatus.OUT_OF_STOCK
    bare = re.sub(r'[^a-z]', '', text.rsplit("/", 1)[-1].lower())
    if bare in SCHEMA_AVAILABILITY:
        return SCHEMA_AVAILABILITY[bare]

    normalized = StockStatus.normalize(text)
    if normalized != StockStatus.UNKNOWN:
        return normalized
    matched = match_stock_text(text)
    return matched[0] if matched else None
