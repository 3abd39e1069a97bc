"""
Price extraction pipeline: first strategy to produce a price wins.
"""

from typing import List, Optional, Tuple

from ..models import ExtractionContext, PriceShell
from ..strategy import run_first_match
from .strategies import DomPriceStrategy, HeuristicPriceStrategy, StructuredPriceStrategy


def default_strategies():
    return [
        StructuredPriceStrategy(),
        DomPriceStrategy(),
        HeuristicPriceStrategy(),
    ]


def extract_price(context: ExtractionContext, strategies=None) -> Tuple[Optional[PriceShell], List[str]]:
    """
    Returns:
        (PriceShell or None, notes from every strategy attempted)
    """
    price, notes, _strategy_name = run_first_match(
        strategies if strategies is not None else default_strategies(), context, "Price"
    )
    return price, notes
