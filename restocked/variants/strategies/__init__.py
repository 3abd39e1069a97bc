"""
Variant extraction strategies, in priority order.
"""

from .structured import StructuredVariantStrategy
from .dom_controls import DomVariantStrategy
from .heuristic import HeuristicVariantStrategy

__all__ = [
    'StructuredVariantStrategy',
    'DomVariantStrategy',
    'HeuristicVariantStrategy',
]
