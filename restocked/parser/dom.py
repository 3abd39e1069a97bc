"""
Null-safe query helpers over a BeautifulSoup tree.

Strategies run against arbitrary markup, so selector or lookup problems
return empty results instead of raising.
"""

from typing import List, Optional, Union

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from ..logger import get_strategy_logger

log = get_strategy_logger('parser')

Node = Union[BeautifulSoup, Tag]


def load_dom(html: str) -> BeautifulSoup:
    """Parse markup with the stdlib-backed parser. Scripts are never executed."""
    return BeautifulSoup(html or "", 'html.parser')


def safe_query(root: Optional[Node], selector: str) -> Optional[Tag]:
    """First element matching `selector`, or None."""
    if root is None:
        return None
    try:
        return root.select_one(selector)
    except SelectorSyntaxError as e:
        log.debug(f"Invalid selector {selector!r}: {e}")
        return None


def find_all(root: Optional[Node], selector: str) -> List[Tag]:
    """All elements matching `selector`, in document order."""
    if root is None:
        return []
    try:
        return list(root.select(selector))
    except SelectorSyntaxError as e:
        log.debug(f"Invalid selector {selector!r}: {e}")
        return []


def get_attr(element: Optional[Tag], name: str) -> Optional[str]:
    """Attribute value as a string. Multi-valued attributes (class) are space-joined."""
    if element is None or not isinstance(element, Tag):
        return None
    value = element.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


def class_string(element: Optional[Tag]) -> str:
    """Class and id of an element, lowercased, for pattern matching."""
    if element is None:
        return ""
    return f"{get_attr(element, 'class') or ''} {get_attr(element, 'id') or ''}".strip().lower()


def exists(root: Optional[Node], selector: str) -> bool:
    return safe_query(root, selector) is not None


def count(root: Optional[Node], selector: str) -> int:
    return len(find_all(root, selector))
