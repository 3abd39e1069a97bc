"""
Bounded Cartesian expansion of attribute dimensions into variant shells.
"""

from itertools import islice, product
from math import prod
from typing import Dict, List, Optional, Tuple

from ..models import VariantAttribute, VariantShell
from .constants import MAX_VARIANTS


def unique_values(values: List[str]) -> List[str]:
    """Trimmed, non-empty, order-preserving unique values."""
    seen = []
    for value in values:
        value = (value or "").strip()
        if value and value not in seen:
            seen.append(value)
    return seen


def expand(
    dimensions: Dict[str, List[str]],
    source_metadata: Dict,
    cap: int = MAX_VARIANTS,
) -> Tuple[List[VariantShell], Optional[str]]:
    """
    Cartesian product of dimension values, stopping the moment `cap` is reached.

    Args:
        dimensions: attribute name -> candidate values, in discovery order
        source_metadata: attached to every produced shell
        cap: maximum shells to produce

    Returns:
        (shells, note) where note records pre/post-cap counts when capping happened
    """
    names, value_lists = [], []
    for name, values in dimensions.items():
        values = unique_values(values)
        if name and values:
            names.append(name)
            value_lists.append(values)
    if not value_lists:
        return [], None

    total = prod(len(values) for values in value_lists)
    shells = []
    # product() is lazy over small value lists; islice stops generation at the cap
    for combination in islice(product(*value_lists), cap):
        shells.append(VariantShell(
            attributes=[VariantAttribute(name, value) for name, value in zip(names, combination)],
            source_metadata=dict(source_metadata),
        ))

    note = None
    if total > cap:
        note = f"Variant combinations capped at {cap} (from {total})"
    return shells, note
