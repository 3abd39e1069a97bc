"""
Heuristic stock strategy: stock-like phrases anywhere in the visible text.
"""

from ...models import ExtractionContext, StockReading, StockStatus, StrategyOutcome
from ...parser.text import stock_like_strings, visible_text
from ...strategy import BaseStrategy
from ..patterns import match_stock_text, parse_quantity

BASE_SCORE = 20
EXACT_PHRASES = {"in stock", "out of stock", "sold out"}


def score_phrase(phrase: str, status: StockStatus) -> int:
    score = 5
    if phrase in EXACT_PHRASES:
        score += 5
    if status in (StockStatus.IN_STOCK, StockStatus.OUT_OF_STOCK):
        score += 3
    return score


class HeuristicStockStrategy(BaseStrategy):
    """Last-resort stock detection from page text."""

    name = "heuristic-stock-strategy"

    def extract(self, context: ExtractionContext) -> StrategyOutcome:
        phrases = stock_like_strings(visible_text(context.dom))
        if not phrases:
            return StrategyOutcome(None, ["No stock-like strings found in page text"])

        candidates = []
        for phrase in phrases:
            matched = match_stock_text(phrase)
            if matched is None:
                continue
            status = matched[0]
            candidates.append((phrase, status, score_phrase(phrase, status)))

        if not candidates:
            return StrategyOutcome(None, [
                f"Found {len(phrases)} stock-like string(s) but none mapped to valid status"
            ])

        phrase, status, score = max(candidates, key=lambda c: c[2])
        notes = [
            f"Found {len(phrases)} stock-like string(s) in page text",
            f"Filtered to {len(candidates)} valid candidate(s)",
            f"Selected best candidate: {status.value} ({phrase})",
        ]
        return StrategyOutcome(StockReading(
            status=status,
            raw_text=phrase,
            score=BASE_SCORE + score,
            quantity=parse_quantity(phrase),
            metadata={"source": "heuristic", "candidates_count": len(candidates)},
        ), notes)
