"""
Button stock strategy.

Reads the purchase button: an enabled "Add to cart" means in stock, a
"Sold out" button or a disabled add-to-cart means out of stock.
"""

import re

from ...models import ExtractionContext, StockReading, StockStatus, StrategyOutcome
from ...parser.dom import find_all
from ...parser.text import normalize_text
from ...strategy import BaseStrategy
from .notify_me import BUTTON_SELECTOR, element_label, is_disabled

BASE_SCORE = 40

IN_STOCK_BUTTON_RE = re.compile(
    r'add\s+to\s+(?:cart|bag|basket)|buy\s+now|checkout|purchase', re.IGNORECASE
)
OUT_OF_STOCK_BUTTON_RE = re.compile(
    r'sold\s+out|out\s+of\s+stock|unavailable|notify\s+me|email\s+when\s+available|coming\s+soon',
    re.IGNORECASE,
)


class ButtonStockStrategy(BaseStrategy):
    """Infer stock from add-to-cart button state."""

    name = "button-stock-strategy"

    def extract(self, context: ExtractionContext) -> StrategyOutcome:
        buttons = find_all(context.dom, BUTTON_SELECTOR)
        if not buttons:
            return StrategyOutcome(None, ["No button elements found"])

        in_stock = None
        out_of_stock = None

        for button in buttons:
            text = element_label(button)
            if not text or len(text) > 60:
                continue
            disabled = is_disabled(button)

            if IN_STOCK_BUTTON_RE.search(text):
                score = 10 + (-5 if disabled else 10)
                if "add to cart" in normalize_text(text):
                    score += 3
                if in_stock is None or score > in_stock[1]:
                    in_stock = (text, score)

            if OUT_OF_STOCK_BUTTON_RE.search(text):
                score = 15 if disabled else 10
                if out_of_stock is None or score > out_of_stock[1]:
                    out_of_stock = (text, score)

            lowered = text.lower()
            if disabled and ("add" in lowered or "cart" in lowered):
                if out_of_stock is None or 15 > out_of_stock[1]:
                    out_of_stock = (f"Disabled: {text}", 15)

        if out_of_stock and (in_stock is None or out_of_stock[1] >= in_stock[1]):
            return self._reading(StockStatus.OUT_OF_STOCK, *out_of_stock, len(buttons))
        if in_stock:
            return self._reading(StockStatus.IN_STOCK, *in_stock, len(buttons))
        return StrategyOutcome(None, ["Found buttons but no clear stock indicators"])

    def _reading(self, status: StockStatus, text: str, score: int, candidates: int) -> StrategyOutcome:
        label = "in-stock" if status == StockStatus.IN_STOCK else "out-of-stock"
        return StrategyOutcome(StockReading(
            status=status,
            raw_text=text,
            score=BASE_SCORE + score,
            metadata={"source": "button", "candidates_count": candidates},
        ), [f"Found {label} indicator: {text}"])
