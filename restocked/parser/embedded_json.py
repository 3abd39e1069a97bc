"""
Embedded JSON discovery.

Finds structured data that pages ship alongside their markup:
- JSON-LD blocks (<script type="application/ld+json">), @graph arrays flattened
- <script type="application/json"> payloads (including Next.js __NEXT_DATA__)
- object literals assigned in inline scripts (window.__STATE__ = {...},
  Shopify's Product.json = {...}, var meta = {...})

Nothing is executed; literals are decoded with json only.
"""

import json
import re
from typing import Any, Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup

from .dom import load_dom, get_attr

MAX_DEPTH = 10

# `<identifier> = {` or `<identifier>: {` inside inline scripts
ASSIGNMENT_RE = re.compile(r'[\w$.\]\["\']+\s*[=:]\s*(?=[{\[])')

MIN_LITERAL_LENGTH = 20


def _decode(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except (ValueError, TypeError):
        return None


def _flatten(parsed: Any) -> List[Any]:
    """Arrays become their members; JSON-LD @graph members are lifted as well."""
    items = parsed if isinstance(parsed, list) else [parsed]
    flat = []
    for item in items:
        flat.append(item)
        if isinstance(item, dict) and isinstance(item.get('@graph'), list):
            flat.extend(node for node in item['@graph'] if isinstance(node, dict))
    return flat


def _literals_in_script(script: str) -> List[Any]:
    """Decode every JSON object/array literal that is assigned to something."""
    decoder = json.JSONDecoder()
    found = []
    consumed = 0
    for match in ASSIGNMENT_RE.finditer(script):
        start = match.end()
        # Skip keys nested inside a literal we already decoded
        if start < consumed:
            continue
        try:
            value, end = decoder.raw_decode(script, start)
        except ValueError:
            continue
        if end - start >= MIN_LITERAL_LENGTH and isinstance(value, (dict, list)):
            found.append(value)
            consumed = end
    return found


def extract_embedded_json(html: str, dom: Optional[BeautifulSoup] = None) -> List[Any]:
    """
    All JSON blobs embedded in a page, JSON-LD first.

    Args:
        html: Page markup
        dom: Already-parsed tree for the same markup (avoids a second parse)

    Returns:
        List of decoded objects; unparseable blocks are skipped
    """
    if not html:
        return []
    dom = dom if dom is not None else load_dom(html)

    ld_json, app_json, inline = [], [], []
    for script in dom.find_all('script'):
        content = (script.string or script.get_text() or "").strip()
        if not content:
            continue
        script_type = (get_attr(script, 'type') or "").lower().strip()

        if script_type == 'application/ld+json':
            parsed = _decode(content)
            if parsed is not None:
                ld_json.extend(_flatten(parsed))
        elif script_type == 'application/json' or get_attr(script, 'id') == '__NEXT_DATA__':
            parsed = _decode(content)
            if parsed is not None:
                app_json.extend(_flatten(parsed))
        elif script_type in ('', 'text/javascript', 'module'):
            inline.extend(_literals_in_script(content))

    return ld_json + app_json + inline


def walk_json(obj: Any, max_depth: int = MAX_DEPTH) -> Iterator[Tuple[dict, str, int]]:
    """
    Yield every dict inside `obj` with its dotted path and depth.

    Depth is tracked explicitly so adversarial nesting cannot exhaust the stack.
    """
    stack: List[Tuple[Any, str, int]] = [(obj, "", 0)]
    while stack:
        node, path, depth = stack.pop()
        if depth > max_depth:
            continue
        if isinstance(node, dict):
            yield node, path, depth
            children = [(v, f"{path}.{k}" if path else str(k), depth + 1)
                        for k, v in node.items() if isinstance(v, (dict, list))]
        elif isinstance(node, list):
            children = [(v, f"{path}[{i}]", depth + 1)
                        for i, v in enumerate(node) if isinstance(v, (dict, list))]
        else:
            continue
        # Reverse so traversal stays in document order
        stack.extend(reversed(children))
