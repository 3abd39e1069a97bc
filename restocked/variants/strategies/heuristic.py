"""
Heuristic variant strategy.

Last resort for pages with no variant JSON and no recognizable controls.
Gathers attribute/value pairs from text patterns, definition lists, option
lists and clusters of short sibling labels, then expands them.
"""

import re
from typing import Dict, List

from ...models import ExtractionContext, StrategyOutcome
from ...parser.dom import find_all, get_attr
from ...parser.text import clean_text, normalize_attribute_name, visible_text
from ...strategy import BaseStrategy
from ..combinations import expand, unique_values

ALLOWED_ATTRIBUTE_NAMES = [
    "size", "color", "colour", "length", "material", "style", "fit", "waist",
    "inseam", "height", "width", "depth", "model", "flavor", "flavour",
    "variant", "option", "pattern", "finish", "type",
]

TEXT_PATTERN_RE = re.compile(
    r'\b(' + '|'.join(ALLOWED_ATTRIBUTE_NAMES) + r')\s*[:\-]\s*([^\s<,;]+)',
    re.IGNORECASE,
)
CLUSTER_CLASS_RE = re.compile(r'option|variant|choice|size|color|swatch|attribute', re.IGNORECASE)
HEADINGS = ["h1", "h2", "h3", "h4", "h5", "h6", "label", "legend"]
MAX_VALUE_LENGTH = 50


def is_allowed_attribute_name(name: str) -> bool:
    return bool(name) and any(allowed in name for allowed in ALLOWED_ATTRIBUTE_NAMES)


def _merge(target: Dict[str, List[str]], source: Dict[str, List[str]]):
    for name, values in source.items():
        target.setdefault(name, []).extend(values)


def from_text_patterns(text: str) -> Dict[str, List[str]]:
    """'Size: M', 'Color - Black' style pairs in visible text."""
    found: Dict[str, List[str]] = {}
    for match in TEXT_PATTERN_RE.finditer(text or ""):
        name = normalize_attribute_name(match.group(1))
        value = match.group(2).strip()
        if name and value:
            found.setdefault(name, []).append(value)
    return found


def from_definition_lists(dom) -> Dict[str, List[str]]:
    found: Dict[str, List[str]] = {}
    for dl in find_all(dom, "dl"):
        for dt, dd in zip(dl.find_all("dt"), dl.find_all("dd")):
            name = normalize_attribute_name(clean_text(dt))
            value = clean_text(dd)
            if value and is_allowed_attribute_name(name):
                found.setdefault(name, []).append(value)
    return found


def _list_heading(list_element) -> str:
    previous = list_element.find_previous_sibling(HEADINGS)
    if previous is not None:
        return clean_text(previous)
    parent = list_element.parent
    if parent is not None:
        heading = parent.find(HEADINGS, recursive=False)
        if heading is not None:
            return clean_text(heading)
    return ""


def from_option_lists(dom) -> Dict[str, List[str]]:
    found: Dict[str, List[str]] = {}
    for list_element in find_all(dom, "ul, ol"):
        heading = normalize_attribute_name(_list_heading(list_element))
        for item in list_element.find_all("li", recursive=False):
            text = clean_text(item)
            if not text or len(text) > MAX_VALUE_LENGTH:
                continue
            name = normalize_attribute_name(
                get_attr(item, "data-attribute") or get_attr(item, "aria-label") or ""
            )
            if not is_allowed_attribute_name(name):
                name = heading
            if is_allowed_attribute_name(name):
                found.setdefault(name, []).append(text)
    return found


def from_text_clusters(dom) -> Dict[str, List[str]]:
    """Groups of >=2 short labels sharing a variant-looking parent or class."""
    clusters: Dict[str, List[str]] = {}
    for element in find_all(dom, "button, span, a, li, div"):
        # Only leaf-ish labels; containers repeat their children's text
        if element.find(["div", "ul", "ol", "button", "select"]):
            continue
        text = clean_text(element)
        if not text or len(text) > MAX_VALUE_LENGTH:
            continue
        class_name = get_attr(element, "class") or ""
        parent = element.parent
        parent_key = (get_attr(parent, "id") or get_attr(parent, "class") or "") if parent is not None else ""
        if CLUSTER_CLASS_RE.search(class_name) or CLUSTER_CLASS_RE.search(parent_key):
            clusters.setdefault(parent_key or class_name, []).append(text)

    found: Dict[str, List[str]] = {}
    for key, values in clusters.items():
        if len(values) < 2:
            continue
        lowered = key.lower()
        name = next((allowed for allowed in ALLOWED_ATTRIBUTE_NAMES if allowed in lowered), "")
        if name == "colour":
            name = "color"
        if name:
            found.setdefault(name, []).extend(values)
    return found


class HeuristicVariantStrategy(BaseStrategy):
    """Infer variant attributes from loosely structured markup."""

    name = "heuristic-variant-strategy"

    def extract(self, context: ExtractionContext) -> StrategyOutcome:
        notes = []
        dimensions: Dict[str, List[str]] = {}

        sources = [
            ("text patterns", from_text_patterns(visible_text(context.dom))),
            ("definition lists", from_definition_lists(context.dom)),
            ("option lists", from_option_lists(context.dom)),
            ("text clusters", from_text_clusters(context.dom)),
        ]
        for label, found in sources:
            if found:
                notes.append(f"Found {len(found)} attribute(s) from {label}")
                _merge(dimensions, found)

        dimensions = {name: unique_values(values) for name, values in dimensions.items()}
        dimensions = {name: values for name, values in dimensions.items() if values}
        if not dimensions:
            notes.append("No attribute patterns found")
            return StrategyOutcome([], notes)

        variants, cap_note = expand(dimensions, {"source": "heuristic"})
        if cap_note:
            notes.append(cap_note)
        notes.append(f"Built {len(variants)} variant combination(s) from attribute heuristics")
        return StrategyOutcome(variants, notes)
