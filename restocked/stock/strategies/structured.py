"""
Structured-data stock strategy.

Reads availability fields from embedded JSON: schema.org offer availability,
platform flags such as availableForSale, and inventory counts.
"""

import re
from typing import Any, Dict, List

from ...models import ExtractionContext, StockReading, StockStatus, StrategyOutcome
from ...parser.embedded_json import walk_json
from ...strategy import BaseStrategy
from ..patterns import status_from_value

STOCK_FIELDS = {
    "availability",
    "availableforsale",
    "available",
    "instock",
    "isavailable",
    "isinstock",
    "stockstatus",
    "availabilitystatus",
    "inventorystatus",
    "quantity",
    "inventory",
    "inventoryquantity",
    "inventorylevel",
    "stocklevel",
}
COUNT_FIELDS = {"quantity", "inventory", "inventoryquantity", "inventorylevel", "stocklevel"}

BASE_SCORE = 70


def _normalize_key(key: str) -> str:
    return re.sub(r'[^a-z]', '', str(key).lower())


def find_stock_candidates(blob: Any) -> List[Dict[str, Any]]:
    candidates = []
    for obj, path, _depth in walk_json(blob):
        for key, value in obj.items():
            normalized = _normalize_key(key)
            if normalized not in STOCK_FIELDS or isinstance(value, (dict, list)):
                continue
            status = status_from_value(value)
            if status is None:
                continue
            quantity = None
            if normalized in COUNT_FIELDS and isinstance(value, (int, float)) and not isinstance(value, bool):
                quantity = int(value)
            candidates.append({
                "status": status,
                "raw": value,
                "path": f"{path}.{key}" if path else str(key),
                "quantity": quantity,
            })
    return candidates


def score_candidate(candidate: Dict[str, Any]) -> int:
    score = BASE_SCORE
    if candidate["status"] in (StockStatus.IN_STOCK, StockStatus.OUT_OF_STOCK):
        score += 10
    if "offers" in candidate["path"].lower():
        score += 10
    if "availab" in candidate["path"].rsplit(".", 1)[-1].lower():
        score += 5
    return score


class StructuredStockStrategy(BaseStrategy):
    """Extract stock status from embedded JSON."""

    name = "structured-stock-strategy"

    def extract(self, context: ExtractionContext) -> StrategyOutcome:
        if not context.json_blobs:
            return StrategyOutcome(None, ["No JSON blobs found for stock extraction"])

        notes = []
        candidates = []
        for i, blob in enumerate(context.json_blobs, start=1):
            found = find_stock_candidates(blob)
            if found:
                notes.append(f"Found {len(found)} stock candidate(s) in JSON source {i}")
                candidates.extend(found)

        if not candidates:
            notes.append("No stock fields found in JSON")
            return StrategyOutcome(None, notes)

        best = max(candidates, key=score_candidate)
        notes.append(f"Selected best candidate: {best['status'].value} (from {best['path']})")

        return StrategyOutcome(StockReading(
            status=best["status"],
            raw_text=str(best["raw"]),
            score=score_candidate(best),
            quantity=best["quantity"],
            metadata={
                "source": "structured",
                "path": best["path"],
                "candidates_count": len(candidates),
            },
        ), notes)
