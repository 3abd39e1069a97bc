"""
Shared DOM, text and embedded-JSON helpers used by every extraction strategy.
"""

from .dom import load_dom, safe_query, find_all, get_attr, exists, count, class_string
from .text import (
    clean_text,
    normalize_text,
    visible_text,
    normalize_attribute_name,
    price_like_strings,
    stock_like_strings,
)
from .embedded_json import extract_embedded_json, walk_json

__all__ = [
    'load_dom', 'safe_query', 'find_all', 'get_attr', 'exists', 'count', 'class_string',
    'clean_text', 'normalize_text', 'visible_text', 'normalize_attribute_name',
    'price_like_strings', 'stock_like_strings',
    'extract_embedded_json', 'walk_json',
]
