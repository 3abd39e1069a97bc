"""
Structured-data price strategy.

Searches embedded JSON (JSON-LD offers, platform state objects) for price
fields. Sale/current fields outrank regular/list fields when both exist.
"""

import re
from typing import Any, Dict, List, Optional

from ...models import ExtractionContext, PriceShell, StrategyOutcome
from ...parser.embedded_json import walk_json
from ...strategy import BaseStrategy
from ..currency import detect_currency, parse_price_amount

# Normalized key -> rank. Higher rank = more likely the price a shopper pays.
PRICE_FIELD_RANKS = {
    "saleprice": 9,
    "currentprice": 9,
    "finalprice": 8,
    "pricenow": 8,
    "specialprice": 8,
    "price": 7,
    "priceamount": 7,
    "pricevalue": 7,
    "lowprice": 6,
    "amount": 5,
    "value": 4,
    "cost": 4,
    "regularprice": 2,
    "listprice": 2,
    "originalprice": 1,
    "compareatprice": 1,
    "highprice": 1,
    "maxprice": 1,
}

# Only count when the same object names a currency
GENERIC_FIELDS = {"amount", "value", "cost"}

CURRENCY_FIELDS = ["priceCurrency", "currency", "currencyCode", "currency_code", "price_currency"]


def _normalize_key(key: str) -> str:
    return re.sub(r'[^a-z]', '', str(key).lower())


def _sibling_currency(obj: Dict) -> Optional[str]:
    for field_name in CURRENCY_FIELDS:
        currency = detect_currency(obj.get(field_name))
        if currency:
            return currency
    return None


def find_price_candidates(blob: Any) -> List[Dict[str, Any]]:
    """Price candidates with their path, currency and rank, in document order."""
    candidates = []
    for obj, path, _depth in walk_json(blob):
        sibling_currency = _sibling_currency(obj)
        for key, value in obj.items():
            rank = PRICE_FIELD_RANKS.get(_normalize_key(key))
            if rank is None or isinstance(value, (dict, list)):
                continue
            if _normalize_key(key) in GENERIC_FIELDS and not sibling_currency:
                continue
            amount = parse_price_amount(value)
            if amount is None:
                continue
            field_path = f"{path}.{key}" if path else str(key)
            candidates.append({
                "amount": amount,
                "currency": sibling_currency or detect_currency(value if isinstance(value, str) else None),
                "raw": value,
                "path": field_path,
                "rank": rank,
            })
    return candidates


def score_candidate(candidate: Dict[str, Any]) -> int:
    score = candidate["rank"]
    if candidate["currency"]:
        score += 10
    if "offers" in candidate["path"].lower():
        score += 5
    return score


class StructuredPriceStrategy(BaseStrategy):
    """Extract the price from embedded JSON structures."""

    name = "structured-price-strategy"

    def extract(self, context: ExtractionContext) -> StrategyOutcome:
        if not context.json_blobs:
            return StrategyOutcome(None, ["No JSON blobs found for price extraction"])

        notes = []
        candidates = []
        for i, blob in enumerate(context.json_blobs, start=1):
            found = find_price_candidates(blob)
            if found:
                notes.append(f"Found {len(found)} price candidate(s) in JSON source {i}")
                candidates.extend(found)

        if not candidates:
            notes.append("No price fields found in JSON")
            return StrategyOutcome(None, notes)

        # max() keeps the first of equal scores
        best = max(candidates, key=score_candidate)
        score = score_candidate(best)
        notes.append(f"Selected best candidate: {best['amount']} {best['currency'] or ''}".rstrip())

        return StrategyOutcome(PriceShell(
            amount=best["amount"],
            currency=best["currency"],
            raw_text=str(best["raw"]),
            source_metadata={
                "source": "structured",
                "path": best["path"],
                "candidates_count": len(candidates),
                "score": score,
            },
        ), notes)
