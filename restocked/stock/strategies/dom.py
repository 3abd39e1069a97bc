"""
DOM stock strategy.

Looks for stock phrases in short text elements and in data-stock style
attributes, preferring elements whose class or id says they report stock.
"""

import re
from typing import List, Optional

from bs4 import Tag

from ...models import ExtractionContext, StockReading, StockStatus, StrategyOutcome
from ...parser.dom import class_string, find_all, get_attr
from ...parser.text import clean_text, normalize_text
from ...strategy import BaseStrategy
from ..patterns import match_stock_text, parse_quantity, status_from_value

BASE_SCORE = 50
MAX_ELEMENT_TEXT = 120
SKIP_TAGS = {"script", "style", "noscript", "template", "svg", "option", "select"}
STOCK_MARKER_RE = re.compile(r'stock|availab|inventory', re.IGNORECASE)
EXACT_PHRASES = {"in stock", "out of stock", "sold out"}
DATA_ATTRIBUTES = ("data-stock", "data-availability", "data-inventory", "data-stock-status")


def context_score(element: Tag, text: str, status: StockStatus) -> int:
    score = 0
    if STOCK_MARKER_RE.search(class_string(element)):
        score += 10
    parent = element.parent
    if parent is not None and STOCK_MARKER_RE.search(f"{class_string(parent)} {clean_text(parent)[:200]}"):
        score += 5
    if normalize_text(text) in EXACT_PHRASES:
        score += 3
    if status in (StockStatus.IN_STOCK, StockStatus.OUT_OF_STOCK):
        score += 2
    return score


def _has_text_children(element: Tag) -> bool:
    return any(isinstance(child, Tag) and clean_text(child) for child in element.children)


class DomStockStrategy(BaseStrategy):
    """Extract stock status from stock-reporting elements."""

    name = "dom-stock-strategy"

    def extract(self, context: ExtractionContext) -> StrategyOutcome:
        body = context.dom.body or context.dom
        candidates: List[dict] = []

        for element in find_all(body, "*"):
            if element.name in SKIP_TAGS or _has_text_children(element):
                continue
            text = clean_text(element)
            if len(text) < 3 or len(text) > MAX_ELEMENT_TEXT:
                continue
            matched = match_stock_text(text)
            if matched is None:
                continue
            status, phrase = matched
            candidates.append({
                "status": status,
                "raw": phrase,
                "quantity": parse_quantity(text),
                "score": context_score(element, text, status),
            })

        for element in find_all(body, ", ".join(f"[{a}]" for a in DATA_ATTRIBUTES)):
            raw = next((get_attr(element, a) for a in DATA_ATTRIBUTES if get_attr(element, a)), None)
            status = status_from_value(self._coerce(raw))
            if status is None:
                continue
            candidates.append({
                "status": status,
                "raw": raw,
                "quantity": int(raw) if raw and raw.strip().isdigit() else None,
                "score": context_score(element, raw, status) + 5,
            })

        if not candidates:
            return StrategyOutcome(None, ["No stock patterns found in DOM"])

        best = max(candidates, key=lambda c: c["score"])
        notes = [
            f"Found {len(candidates)} stock pattern(s) in DOM",
            f"Selected best match: {best['status'].value} ({best['raw']})",
        ]
        return StrategyOutcome(StockReading(
            status=best["status"],
            raw_text=best["raw"],
            score=BASE_SCORE + best["score"],
            quantity=best["quantity"],
            metadata={"source": "dom", "candidates_count": len(candidates)},
        ), notes)

    @staticmethod
    def _coerce(raw: Optional[str]):
        if raw is not None and raw.strip().isdigit():
            return int(raw.strip())
        return raw
