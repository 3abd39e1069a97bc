"""
Structured-data variant strategy.

Walks embedded JSON blobs for nodes that look like a variant: an identifier
field, or at least two allow-listed attribute fields with scalar values.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from ...models import ExtractionContext, StrategyOutcome, VariantAttribute, VariantShell, StockStatus
from ...parser.text import normalize_attribute_name
from ...pricing.currency import parse_price_amount
from ...strategy import BaseStrategy
from ..constants import (
    ATTRIBUTE_PATTERNS,
    EXCLUDED_ATTRIBUTE_KEYS,
    ID_FIELDS,
    MAX_DEPTH,
    MEDIA_KEYS,
    MEDIA_SEGMENTS,
    VARIANT_KEYS,
)

CAMEL_BOUNDARY_RE = re.compile(r'([a-z0-9])([A-Z])')


def key_segments(key: str) -> List[str]:
    """'colorName' -> ['color', 'name'], 'option1' -> ['option']. Trailing digits are dropped."""
    snake = CAMEL_BOUNDARY_RE.sub(r'\1_\2', key).lower()
    return [segment.rstrip('0123456789') for segment in re.split(r'[^a-z0-9]+', snake) if segment]


def is_attribute_key(key: str) -> bool:
    normalized = normalize_attribute_name(key)
    if not normalized or normalized in EXCLUDED_ATTRIBUTE_KEYS:
        return False
    if normalized in ATTRIBUTE_PATTERNS:
        return True
    segments = key_segments(key)
    if any(segment in MEDIA_SEGMENTS for segment in segments):
        return False
    return any(segment in ATTRIBUTE_PATTERNS for segment in segments)


def _scalar(value: Any) -> Optional[str]:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    text = str(value).strip()
    return text or None


def extract_variant_id(obj: Dict) -> Optional[str]:
    for id_field in ID_FIELDS:
        value = obj.get(id_field)
        if value is not None and not isinstance(value, (dict, list)):
            return str(value)
    return None


def is_variant_like(obj: Any) -> bool:
    if not isinstance(obj, dict):
        return False
    if extract_variant_id(obj) is not None:
        return True
    attribute_fields = sum(
        1 for key, value in obj.items() if is_attribute_key(key) and _scalar(value)
    )
    return attribute_fields >= 2


def _option_names(obj: Dict) -> List[str]:
    """Shopify-style `options: [{name: "Size"}, ...]` or `options: ["Size", ...]`."""
    options = obj.get("options")
    if not isinstance(options, list):
        return []
    names = []
    for option in options:
        if isinstance(option, dict):
            names.append(normalize_attribute_name(str(option.get("name") or "")))
        elif isinstance(option, str):
            names.append(normalize_attribute_name(option))
        else:
            names.append("")
    return names


def _has_variant_children(obj: Dict) -> bool:
    """A product container (owns a variants/offers list) is not itself a variant."""
    for key, value in obj.items():
        if not isinstance(value, list):
            continue
        normalized_key = normalize_attribute_name(key)
        if any(vk in normalized_key for vk in VARIANT_KEYS) and any(is_variant_like(v) for v in value):
            return True
    return False


def _is_leaf_variant(obj: Any) -> bool:
    return is_variant_like(obj) and not _has_variant_children(obj)


def collect_variant_nodes(blob: Any, max_depth: int = MAX_DEPTH) -> List[Tuple[Dict, List[str]]]:
    """
    Depth-bounded search for variant-like objects.

    Returns (node, option_names) pairs; option_names come from the nearest
    enclosing object that declares an `options` list.
    """
    found: List[Tuple[Dict, List[str]]] = []

    def visit(node: Any, depth: int, option_names: List[str]):
        if depth > max_depth or not isinstance(node, (dict, list)):
            return

        if isinstance(node, list):
            for item in node:
                if _is_leaf_variant(item):
                    found.append((item, option_names))
                else:
                    visit(item, depth + 1, option_names)
            return

        if _is_leaf_variant(node):
            found.append((node, option_names))

        names = _option_names(node) or option_names
        for key, value in node.items():
            if not isinstance(value, (dict, list)):
                continue
            if "_".join(key_segments(key)) in MEDIA_KEYS:
                continue
            normalized_key = normalize_attribute_name(key)
            if isinstance(value, list) and any(vk in normalized_key for vk in VARIANT_KEYS):
                for item in value:
                    if _is_leaf_variant(item):
                        found.append((item, names))
                    else:
                        visit(item, depth + 1, names)
            else:
                visit(value, depth + 1, names)

    visit(blob, 0, [])
    return found


def _availability(obj: Dict) -> Optional[bool]:
    available = obj.get("available", obj.get("availableForSale"))
    if isinstance(available, bool):
        return available
    availability = obj.get("availability")
    if isinstance(availability, str):
        # schema.org URLs: https://schema.org/InStock
        status = StockStatus.normalize(availability.rsplit("/", 1)[-1])
        if status in (StockStatus.IN_STOCK, StockStatus.LOW_STOCK):
            return True
        if status == StockStatus.OUT_OF_STOCK:
            return False
    return None


def attributes_from_node(obj: Dict, option_names: List[str]) -> List[VariantAttribute]:
    attributes = []
    seen_names = set()
    for key, value in obj.items():
        if not is_attribute_key(key):
            continue
        text = _scalar(value)
        if not text:
            continue
        name = normalize_attribute_name(key)
        # option1/option2 -> declared option names when the product lists them
        if name.startswith("option") and name[6:].isdigit():
            index = int(name[6:]) - 1
            if 0 <= index < len(option_names) and option_names[index]:
                name = option_names[index]
        if name and name not in seen_names:
            seen_names.add(name)
            attributes.append(VariantAttribute(name, text))
    return attributes


class StructuredVariantStrategy(BaseStrategy):
    """Extract variants from embedded JSON structures."""

    name = "structured-variant-strategy"

    def extract(self, context: ExtractionContext) -> StrategyOutcome:
        if not context.json_blobs:
            return StrategyOutcome([], ["No JSON blobs found in context"])

        notes = [f"Found {len(context.json_blobs)} JSON source(s)"]
        variants: List[VariantShell] = []

        for i, blob in enumerate(context.json_blobs, start=1):
            if not isinstance(blob, (dict, list)):
                continue
            nodes = collect_variant_nodes(blob)
            if not nodes:
                continue
            notes.append(f"Detected {len(nodes)} variant-like object(s) in JSON source {i}")

            for node, option_names in nodes:
                attributes = attributes_from_node(node, option_names)
                if not attributes:
                    continue
                url = node.get("url")
                variants.append(VariantShell(
                    attributes=attributes,
                    external_id=extract_variant_id(node),
                    availability=_availability(node),
                    price=parse_price_amount(node.get("price")),
                    variant_url=url if isinstance(url, str) else None,
                    source_metadata={"source": f"json_blob_{i}"},
                ))

        if variants:
            notes.append(f"Extracted {len(variants)} variant(s) from JSON")
        else:
            notes.append("No variants with attributes found in JSON")
        return StrategyOutcome(variants, notes)
