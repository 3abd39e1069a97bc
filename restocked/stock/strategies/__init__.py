"""
Stock extraction strategies, in priority order.
"""

from .structured import StructuredStockStrategy
from .notify_me import NotifyMeStockStrategy
from .dom import DomStockStrategy
from .button import ButtonStockStrategy
from .heuristic import HeuristicStockStrategy

__all__ = [
    'StructuredStockStrategy',
    'NotifyMeStockStrategy',
    'DomStockStrategy',
    'ButtonStockStrategy',
    'HeuristicStockStrategy',
]
