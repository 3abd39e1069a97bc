"""
Variant extraction pipeline.

Every strategy runs (structured data first, then DOM controls, then
heuristics) and the merged list is deduplicated, first seen wins.
"""

from typing import List, Tuple

from ..logger import get_strategy_logger
from ..models import ExtractionContext, VariantShell
from ..strategy import run_all
from .constants import MAX_VARIANTS
from .strategies import DomVariantStrategy, HeuristicVariantStrategy, StructuredVariantStrategy

log = get_strategy_logger('variants')

# Order = trust; dedup keeps the first shell it sees
VARIANT_STRATEGIES = [
    StructuredVariantStrategy(),
    DomVariantStrategy(),
    HeuristicVariantStrategy(),
]


def deduplicate(variants: List[VariantShell]) -> List[VariantShell]:
    """
    Collapse shells that describe the same variant.

    Shells with an external id collide on the id. Shells without one collide
    on their unordered attribute set, also against earlier shells that had an
    id (a DOM control repeating a JSON variant). Shells with neither are
    dropped.
    """
    seen_ids = set()
    seen_attrs = set()
    unique = []
    for variant in variants:
        key = variant.attribute_key()
        if variant.external_id:
            if variant.external_id in seen_ids:
                continue
            seen_ids.add(variant.external_id)
        elif not key or key in seen_attrs:
            continue
        if key:
            seen_attrs.add(key)
        unique.append(variant)
    return unique


def extract_variants(context: ExtractionContext, strategies=None) -> Tuple[List[VariantShell], List[str]]:
    """
    Run all variant strategies and merge their output.

    Returns:
        (variants, notes)
    """
    variants, notes = run_all(strategies if strategies is not None else VARIANT_STRATEGIES, context)
    unique = deduplicate(variants)

    if len(unique) > MAX_VARIANTS:
        notes.append(
            f"Variant combinations exceeded {MAX_VARIANTS} (found {len(unique)}). Trimmed for performance."
        )
        log.warning(f"Variant explosion prevented: {len(unique)} -> {MAX_VARIANTS}")
        unique = unique[:MAX_VARIANTS]

    log.debug(f"{len(variants)} raw variant(s), {len(unique)} after dedup")
    return unique, notes
