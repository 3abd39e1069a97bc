"""
Text normalization helpers and price/stock token scanners.
"""

import re
from typing import List, Optional, Union

from bs4 import BeautifulSoup, Comment, Tag

NON_VISIBLE_TAGS = {'script', 'style', 'noscript', 'template', 'head', 'title', 'meta', 'svg'}

CURRENCY_SYMBOL_PATTERN = r'(?:US\$|CA\$|AU\$|NZ\$|HK\$|A\$|C\$|S\$|R\$|CN¥|[$€£¥₹₩])'
CURRENCY_CODE_PATTERN = r'(?:USD|EUR|GBP|JPY|AUD|CAD|CHF|CNY|INR|SEK|NOK|DKK|NZD|HKD|SGD|KRW|BRL|MXN)'
NUMBER_PATTERN = r'\d+(?:[.,]\d{3})*(?:[.,]\d{1,2})?'

# A number carrying an explicit currency marker on either side
PRICE_TOKEN_RE = re.compile(
    rf'(?P<pre>{CURRENCY_SYMBOL_PATTERN}|\b{CURRENCY_CODE_PATTERN})\s?(?P<num1>{NUMBER_PATTERN})'
    rf'|(?<![\w.,])(?P<num2>{NUMBER_PATTERN})\s?(?P<post>{CURRENCY_SYMBOL_PATTERN}|{CURRENCY_CODE_PATTERN}\b)'
)

# A bare number directly following a price keyword ("Price: 45.00")
PRICE_KEYWORD_RE = re.compile(
    rf'\b(?P<kw>price|cost|total|msrp)\b[^\d\n]{{0,12}}?(?<![\w.,])(?P<num>{NUMBER_PATTERN})(?![\w])',
    re.IGNORECASE,
)

STOCK_STATUS_RE = re.compile(
    r'\b(?:in\s+stock|out\s+of\s+stock|sold\s+out|unavailable|available|backorder(?:ed)?|'
    r'pre-?order|discontinued|limited\s+stock|low\s+stock|only\s+\d+\s+left|stock\s+available)\b',
    re.IGNORECASE,
)
STOCK_COUNT_RE = re.compile(
    r'\b\d+\s+(?:in\s+stock|available|left|remaining|in\s+inventory)\b',
    re.IGNORECASE,
)
AVAILABILITY_LABEL_RE = re.compile(
    r'\b(?:availability|stock\s+status|inventory\s+status|item\s+status)\s*[:\-]\s*([^\n<]{1,50})',
    re.IGNORECASE,
)


def clean_text(node: Union[Tag, str, None]) -> str:
    """Element (or raw string) text with whitespace collapsed."""
    if node is None:
        return ""
    if isinstance(node, Tag):
        text = node.get_text(" ", strip=True)
    else:
        text = str(node)
    return re.sub(r'\s+', ' ', text).strip()


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, punctuation to spaces, whitespace collapsed."""
    if not text:
        return ""
    text = re.sub(r'[^\w\s]', ' ', text.lower())
    return re.sub(r'\s+', ' ', text).strip()


def visible_text(dom: Optional[BeautifulSoup]) -> str:
    """
    Text a shopper would see, one line per text node.

    Walks text nodes instead of decomposing script tags so the shared tree
    is left untouched.
    """
    if dom is None:
        return ""
    lines = []
    for string in dom.find_all(string=True):
        if isinstance(string, Comment):
            continue
        if any(parent.name in NON_VISIBLE_TAGS for parent in string.parents if parent.name):
            continue
        value = re.sub(r'\s+', ' ', string).strip()
        if value:
            lines.append(value)
    return "\n".join(lines)


def normalize_attribute_name(name: Optional[str]) -> str:
    """'Shoe Size' -> 'shoe_size'. Lowercase, non-word characters stripped, spaces to '_'."""
    if not name or not isinstance(name, str):
        return ""
    name = re.sub(r'[^\w\s]', '', name.lower().strip())
    return re.sub(r'\s+', '_', name.strip())


def price_like_strings(text: str) -> List[str]:
    """Currency-marked price tokens in order of appearance, deduplicated."""
    if not text:
        return []
    seen = []
    for match in PRICE_TOKEN_RE.finditer(text):
        token = match.group(0).strip()
        if token not in seen:
            seen.append(token)
    return seen


def stock_like_strings(text: str) -> List[str]:
    """Stock status phrases, counts and availability labels, lowercased and deduplicated."""
    if not text:
        return []
    found = []
    for pattern in (STOCK_STATUS_RE, STOCK_COUNT_RE):
        found.extend(m.group(0) for m in pattern.finditer(text))
    found.extend(m.group(1) for m in AVAILABILITY_LABEL_RE.finditer(text))

    unique = []
    for indicator in found:
        indicator = re.sub(r'\s+', ' ', indicator).strip().lower()
        if indicator and indicator not in unique:
            unique.append(indicator)
    return unique
