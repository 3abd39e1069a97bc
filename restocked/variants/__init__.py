"""
Variant discovery: structured data, DOM controls and text heuristics.
"""

from .constants import MAX_VARIANTS
from .combinations import expand
from .extractor import extract_variants, deduplicate, VARIANT_STRATEGIES

__all__ = ['MAX_VARIANTS', 'expand', 'extract_variants', 'deduplicate', 'VARIANT_STRATEGIES']
