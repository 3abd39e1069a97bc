"""
DOM price strategy.

Meta tags and microdata first, then elements whose class or id mentions a
price. Sale/current markers raise a candidate's score; regular/was markers
and struck-through text lower it.
"""

import re
from typing import List, Optional

from bs4 import Tag

from ...models import ExtractionContext, PriceShell, StrategyOutcome
from ...parser.dom import class_string, find_all, get_attr, safe_query
from ...parser.text import clean_text, price_like_strings
from ...strategy import BaseStrategy
from ..currency import detect_currency, parse_price_amount

PRICE_SELECTORS = "[class*='price'], [id*='price'], [data-price]"

SALE_MARKER_RE = re.compile(r'(?<![a-z])(?:sale|current|now|final|special|offer|actual|product[-_]?price)', re.IGNORECASE)
REGULAR_MARKER_RE = re.compile(r'(?<![a-z])(?:regular|compare|was|original|list|old|strike|retail|before)', re.IGNORECASE)
STRUCK_TAGS = {"s", "del", "strike"}
DEAL_TEXT_RE = re.compile(r'sale|discount|special|deal', re.IGNORECASE)

META_PRICE_TAGS = [
    ("product:price:amount", "product:price:currency"),
    ("og:price:amount", "og:price:currency"),
]


def _is_struck(element: Tag) -> bool:
    if element.name in STRUCK_TAGS:
        return True
    return any(parent.name in STRUCK_TAGS for parent in element.parents)


def score_element(element: Tag, token: str) -> int:
    markers = class_string(element)
    score = 0
    if SALE_MARKER_RE.search(markers):
        score += 10
    if "price" in markers:
        score += 5
    if REGULAR_MARKER_RE.search(markers):
        score -= 10
    struck_text = " ".join(clean_text(s) for s in element.find_all(list(STRUCK_TAGS)))
    if _is_struck(element) or token in struck_text:
        score -= 15
    parent = element.parent
    if parent is not None and DEAL_TEXT_RE.search(class_string(parent)):
        score += 3
    if detect_currency(token):
        score += 2
    return score


class DomPriceStrategy(BaseStrategy):
    """Extract the price from meta tags, microdata and price-classed elements."""

    name = "dom-price-strategy"

    def extract(self, context: ExtractionContext) -> StrategyOutcome:
        dom = context.dom
        notes = []
        candidates: List[dict] = []

        for amount_tag, currency_tag in META_PRICE_TAGS:
            meta = safe_query(dom, f'meta[property="{amount_tag}"]')
            amount = parse_price_amount(get_attr(meta, "content"))
            if amount is not None:
                currency_meta = safe_query(dom, f'meta[property="{currency_tag}"]')
                candidates.append({
                    "amount": amount,
                    "currency": detect_currency(get_attr(currency_meta, "content")),
                    "raw": get_attr(meta, "content"),
                    "score": 15,
                    "origin": f"meta:{amount_tag}",
                })

        itemprop = safe_query(dom, '[itemprop="price"]')
        if itemprop is not None:
            raw = get_attr(itemprop, "content") or clean_text(itemprop)
            amount = parse_price_amount(raw)
            if amount is not None:
                currency_el = safe_query(dom, '[itemprop="priceCurrency"]')
                currency = detect_currency(get_attr(currency_el, "content") or clean_text(currency_el))
                candidates.append({
                    "amount": amount,
                    "currency": currency or detect_currency(raw),
                    "raw": raw,
                    "score": 12,
                    "origin": "itemprop",
                })

        for element in find_all(dom, PRICE_SELECTORS):
            if element.name in ("meta", "script", "style", "body", "html"):
                continue
            # Containers repeat their children's prices; score the leaves
            if any("price" in class_string(child) for child in element.find_all(True)):
                continue
            tokens = price_like_strings(clean_text(element))
            data_price = get_attr(element, "data-price")
            if not tokens and data_price:
                tokens = [data_price]
            for token in tokens:
                amount = parse_price_amount(token)
                if amount is None:
                    continue
                candidates.append({
                    "amount": amount,
                    "currency": detect_currency(token),
                    "raw": token,
                    "score": score_element(element, token),
                    "origin": class_string(element) or element.name,
                })

        if not candidates:
            return StrategyOutcome(None, ["No price patterns found in DOM"])

        notes.append(f"Found {len(candidates)} price candidate(s) in DOM")
        best = max(candidates, key=lambda c: c["score"])
        currency = best["currency"] or self._page_currency(candidates)
        notes.append(f"Selected price from {best['origin']}: {best['raw']}")

        return StrategyOutcome(PriceShell(
            amount=best["amount"],
            currency=currency,
            raw_text=str(best["raw"]),
            source_metadata={
                "source": "dom",
                "candidates_count": len(candidates),
                "score": best["score"],
            },
        ), notes)

    @staticmethod
    def _page_currency(candidates: List[dict]) -> Optional[str]:
        for candidate in candidates:
            if candidate["currency"]:
                return candidate["currency"]
        return None
