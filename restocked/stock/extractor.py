"""
Stock extraction pipeline.

First strategy to produce a reading wins. The reading is turned into a
StockShell with a clamped confidence, a reason code and scrubbed evidence.
"""

from typing import List, Optional, Tuple

from ..logger import get_strategy_logger
from ..models import ExtractionContext, StockReading, StockShell, StockStatus
from ..strategy import run_first_match
from .scrub import is_sensitive, scrub_evidence, scrub_raw_metadata
from .strategies import (
    ButtonStockStrategy,
    DomStockStrategy,
    HeuristicStockStrategy,
    NotifyMeStockStrategy,
    StructuredStockStrategy,
)

log = get_strategy_logger('stock')

DEFAULT_CONFIDENCE = 50


def default_strategies():
    return [
        StructuredStockStrategy(),
        NotifyMeStockStrategy(),
        DomStockStrategy(),
        ButtonStockStrategy(),
        HeuristicStockStrategy(),
    ]


def clamp_confidence(score: Optional[float]) -> int:
    if score is None:
        return DEFAULT_CONFIDENCE
    return int(max(0, min(100, round(score))))


def build_stock_shell(reading: StockReading, strategy_name: str, notes: List[str]) -> StockShell:
    """Normalize a strategy reading into the persisted stock determination."""
    source = reading.metadata.get("source") if reading.metadata else None
    raw_metadata = dict(reading.metadata or {})
    if reading.score is not None:
        raw_metadata.setdefault("score", reading.score)

    return StockShell(
        status=StockStatus.normalize(reading.status),
        strategy_name=strategy_name,
        confidence=clamp_confidence(reading.score),
        reason_code=f"{source or strategy_name}_detection",
        evidence=tuple(scrub_evidence(notes)),
        quantity=reading.quantity,
        raw_text=None if is_sensitive(reading.raw_text) else reading.raw_text,
        raw_metadata=scrub_raw_metadata(raw_metadata),
    )


def extract_stock(context: ExtractionContext, strategies=None) -> Tuple[Optional[StockShell], List[str]]:
    """
    Returns:
        (StockShell or None, notes from every strategy attempted)
    """
    reading, notes, strategy_name = run_first_match(
        strategies if strategies is not None else default_strategies(), context, "Stock status"
    )
    if reading is None:
        return None, notes

    shell = build_stock_shell(reading, strategy_name, notes)
    log.debug(f"{shell.status.value} via {strategy_name} (confidence {shell.confidence})")
    return shell, notes
