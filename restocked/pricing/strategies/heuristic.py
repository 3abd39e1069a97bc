"""
Heuristic price strategy.

Scans the visible page text for currency-marked amounts and for amounts
directly following a price keyword. Anything outside the plausibility band
is rejected, and a bare number with no currency or keyword context is never
considered.
"""

import re
from typing import List, Optional

from ...config import config
from ...models import ExtractionContext, PriceShell, StrategyOutcome
from ...parser.text import PRICE_KEYWORD_RE, PRICE_TOKEN_RE, visible_text
from ...strategy import BaseStrategy
from ..currency import detect_currency, parse_price_amount

# "Sale 45.00", "Now: 19,99" - adjacent and with cents, so years never qualify
SALE_AMOUNT_RE = re.compile(
    r'\b(?P<kw>sale|now|only|from)\b[:\s]{0,3}(?P<num>\d{1,5}[.,]\d{2})(?![\d])',
    re.IGNORECASE,
)
PRICE_CONTEXT_RE = re.compile(r'\b(?:price|cost|total|msrp)\b', re.IGNORECASE)
SALE_CONTEXT_RE = re.compile(r'\b(?:sale|now|only|special|deal|discount)\b', re.IGNORECASE)
CONTEXT_WINDOW = 40


class HeuristicPriceStrategy(BaseStrategy):
    """Pick the best-supported price token from visible text."""

    name = "heuristic-price-strategy"

    def __init__(self, price_min: Optional[float] = None, price_max: Optional[float] = None):
        self.price_min = config.PRICE_MIN if price_min is None else price_min
        self.price_max = config.PRICE_MAX if price_max is None else price_max

    def extract(self, context: ExtractionContext) -> StrategyOutcome:
        text = visible_text(context.dom)
        if not text:
            return StrategyOutcome(None, ["No visible text for heuristic price scan"])

        candidates = self._candidates(text)
        plausible = [c for c in candidates if self.price_min <= c["amount"] <= self.price_max]
        rejected = len(candidates) - len(plausible)

        notes = [f"Heuristic scan found {len(candidates)} price token(s)"]
        if rejected:
            notes.append(f"Rejected {rejected} candidate(s) outside {self.price_min}-{self.price_max}")
        if not plausible:
            notes.append("No plausible price in visible text")
            return StrategyOutcome(None, notes)

        best = max(plausible, key=lambda c: c["score"])
        notes.append(f"Selected heuristic price: {best['raw']}")
        return StrategyOutcome(PriceShell(
            amount=best["amount"],
            currency=best["currency"],
            raw_text=best["raw"],
            source_metadata={
                "source": "heuristic",
                "candidates_count": len(plausible),
                "score": best["score"],
            },
        ), notes)

    def _candidates(self, text: str) -> List[dict]:
        candidates = []
        seen_spans = set()

        for match in PRICE_TOKEN_RE.finditer(text):
            number = match.group("num1") or match.group("num2")
            marker = match.group("pre") or match.group("post")
            amount = parse_price_amount(number)
            if amount is None:
                continue
            seen_spans.add(match.start("num1") if match.group("num1") else match.start("num2"))
            score = 10 + self._context_score(text, match.start())
            candidates.append({
                "amount": amount,
                "currency": detect_currency(marker),
                "raw": match.group(0).strip(),
                "score": score,
            })

        for pattern in (PRICE_KEYWORD_RE, SALE_AMOUNT_RE):
            for match in pattern.finditer(text):
                if match.start("num") in seen_spans:
                    continue
                amount = parse_price_amount(match.group("num"))
                if amount is None:
                    continue
                seen_spans.add(match.start("num"))
                candidates.append({
                    "amount": amount,
                    "currency": None,
                    "raw": match.group(0).strip(),
                    "score": self._context_score(text, match.start("num")),
                })

        return candidates

    @staticmethod
    def _context_score(text: str, position: int) -> int:
        window = text[max(0, position - CONTEXT_WINDOW):position]
        score = 0
        if PRICE_CONTEXT_RE.search(window):
            score += 5
        if SALE_CONTEXT_RE.search(window):
            score += 3
        return score
