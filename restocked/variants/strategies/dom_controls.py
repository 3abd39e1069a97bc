"""
DOM variant strategy.

Reads selection controls: dropdowns, radio groups, and buttons/swatches that
carry variant data attributes. Each control contributes one attribute
dimension; dimensions are expanded into combinations.
"""

import re
from typing import Dict, List, Optional

from bs4 import Tag

from ...models import ExtractionContext, StrategyOutcome
from ...parser.dom import find_all, get_attr, safe_query
from ...parser.text import clean_text, normalize_attribute_name
from ...strategy import BaseStrategy
from ..combinations import expand
from ..constants import NON_VARIANT_CONTROLS, PLACEHOLDER_VALUES
from .structured import is_attribute_key

BRACKETED_NAME_RE = re.compile(r'\[([^\]]+)\]\s*$')
NAME_PREFIX_RE = re.compile(r'^(?:attribute_pa_|attribute_|option_|options_|product_option_)')
SWATCH_CLASS_RE = re.compile(r'\b(size|color|colour|length|fit|material)[-_]?(\w*)', re.IGNORECASE)

SWATCH_SELECTOR = (
    "button, [class*='swatch'], [class*='option'], [class*='variant'], "
    "[data-option-name], [data-option-value]"
)


def dimension_name(raw: Optional[str]) -> str:
    """'options[Size]' -> 'size', 'attribute_pa_color' -> 'color'."""
    if not raw:
        return ""
    match = BRACKETED_NAME_RE.search(raw)
    if match:
        raw = match.group(1)
    name = normalize_attribute_name(raw)
    name = NAME_PREFIX_RE.sub('', name)
    if name in NON_VARIANT_CONTROLS:
        return ""
    return name


def _is_placeholder(value: str) -> bool:
    lowered = value.strip().lower().rstrip('.…:')
    return (not lowered
            or lowered in PLACEHOLDER_VALUES
            or lowered.startswith("select ")
            or lowered.startswith("choose "))


def _add(dimensions: Dict[str, List[str]], name: str, value: Optional[str]):
    value = (value or "").strip()
    if not name or _is_placeholder(value):
        return
    values = dimensions.setdefault(name, [])
    if value not in values:
        values.append(value)


def _control_name(element: Tag) -> str:
    for attr in ("name", "id", "data-option-name", "data-attribute", "aria-label"):
        name = dimension_name(get_attr(element, attr))
        if name:
            return name
    return ""


class DomVariantStrategy(BaseStrategy):
    """Extract variant dimensions from form controls and swatches."""

    name = "dom-variant-strategy"

    def extract(self, context: ExtractionContext) -> StrategyOutcome:
        dom = context.dom
        notes = []
        dimensions: Dict[str, List[str]] = {}

        selects = self._from_selects(dom, dimensions)
        radios = self._from_radios(dom, dimensions)
        swatches = self._from_swatches(dom, dimensions)
        notes.append(f"Controls scanned: {selects} select(s), {radios} radio group(s), {swatches} swatch value(s)")

        if not dimensions:
            notes.append("No variant controls found in DOM")
            return StrategyOutcome([], notes)

        notes.append("Dimensions: " + ", ".join(f"{k}({len(v)})" for k, v in dimensions.items()))
        variants, cap_note = expand(dimensions, {"source": "dom"})
        if cap_note:
            notes.append(cap_note)
        notes.append(f"Built {len(variants)} variant combination(s) from DOM")
        return StrategyOutcome(variants, notes)

    def _from_selects(self, dom, dimensions: Dict[str, List[str]]) -> int:
        used = 0
        for select in find_all(dom, "select"):
            name = _control_name(select)
            if not name:
                continue
            before = len(dimensions.get(name, []))
            for option in select.find_all("option"):
                if option.has_attr("disabled") and not option.get("value"):
                    continue
                # Visible text is the human value; value attributes are often ids
                text = clean_text(option)
                _add(dimensions, name, text or get_attr(option, "value"))
            if len(dimensions.get(name, [])) > before:
                used += 1
        return used

    def _from_radios(self, dom, dimensions: Dict[str, List[str]]) -> int:
        groups = set()
        for radio in find_all(dom, "input[type='radio']"):
            name = dimension_name(get_attr(radio, "name"))
            if not name:
                continue
            value = get_attr(radio, "value")
            if not value or not value.strip():
                value = self._label_for(dom, radio)
            if value:
                _add(dimensions, name, value)
                groups.add(name)
        return len(groups)

    def _label_for(self, dom, radio: Tag) -> str:
        radio_id = get_attr(radio, "id")
        if radio_id:
            label = safe_query(dom, f'label[for="{radio_id}"]')
            if label is not None:
                return clean_text(label)
        parent_label = radio.find_parent("label")
        return clean_text(parent_label) if parent_label is not None else ""

    def _from_swatches(self, dom, dimensions: Dict[str, List[str]]) -> int:
        added = 0
        for element in find_all(dom, SWATCH_SELECTOR):
            if element.name in ("select", "option", "input", "form", "body", "html"):
                continue
            text = clean_text(element)

            # data-option-name="Size" data-option-value="M"
            option_name = dimension_name(get_attr(element, "data-option-name"))
            option_value = get_attr(element, "data-option-value") or get_attr(element, "data-value")
            if option_name and (option_value or text):
                _add(dimensions, option_name, option_value or text)
                added += 1
                continue

            # data-size="M", data-color="Black"
            found = False
            for attr, value in element.attrs.items():
                if not attr.startswith("data-") or isinstance(value, list):
                    continue
                key = attr[5:]
                if key in ("option-name", "option-value", "value") or not is_attribute_key(key):
                    continue
                name = dimension_name(key)
                if name and str(value).strip():
                    _add(dimensions, name, str(value))
                    added += 1
                    found = True
            if found:
                continue

            # class="swatch color-black" with a short visible label
            match = SWATCH_CLASS_RE.search(get_attr(element, "class") or "")
            if match and text and len(text) <= 50 and not element.find(["button", "select", "ul"]):
                name = normalize_attribute_name(match.group(1))
                if name == "colour":
                    name = "color"
                _add(dimensions, name, text)
                added += 1
        return added
