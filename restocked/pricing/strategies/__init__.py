"""
Price extraction strategies, in priority order.
"""

from .structured import StructuredPriceStrategy
from .dom import DomPriceStrategy
from .heuristic import HeuristicPriceStrategy

__all__ = ['StructuredPriceStrategy', 'DomPriceStrategy', 'HeuristicPriceStrategy']
