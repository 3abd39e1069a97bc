"""
Notify-me stock strategy.

A "notify me when available" button, a waitlist form or an email capture
next to back-in-stock wording reflects the state of the selected variant more
reliably than page-wide text. Without an active purchase button that UI means
the item is out of stock.
"""

import re
from typing import Dict, List

from bs4 import Tag

from ...models import ExtractionContext, StockReading, StockStatus, StrategyOutcome
from ...parser.dom import find_all, get_attr
from ...parser.text import clean_text
from ...strategy import BaseStrategy

NOTIFY_ME_RE = re.compile(
    r'notify\s+me|get\s+notified|email\s+me\s+when\s+available|alert\s+me|'
    r'(?:join\s+)?wait\s*list|sign\s+up\s+for\s+alerts|register\s+(?:your\s+)?interest|'
    r'remind\s+me|back\s+in\s+stock\s+alert|notify\s+when\s+available|email\s+when\s+back',
    re.IGNORECASE,
)

FUTURE_AVAILABILITY_RE = [
    re.compile(r"receive\s+an?\s+email.*(?:when|as\s+soon\s+as).*available", re.IGNORECASE),
    re.compile(r"we'?ll\s+(?:let\s+you\s+know|notify|email).*(?:when|available)", re.IGNORECASE),
    re.compile(r"as\s+soon\s+as.*(?:product|item).*available", re.IGNORECASE),
    re.compile(r"back\s+in\s+stock", re.IGNORECASE),
    re.compile(r"when\s+(?:it'?s?\s+)?back", re.IGNORECASE),
    re.compile(r"(?:currently|temporarily)\s+(?:out\s+of\s+stock|unavailable|sold\s+out)", re.IGNORECASE),
    re.compile(r"this\s+(?:product|item)\s+is\s+(?:currently\s+)?(?:unavailable|sold\s+out)", re.IGNORECASE),
]

PURCHASE_CTA_RE = re.compile(
    r'add\s+to\s+(?:cart|bag|basket)|buy\s+now|purchase|checkout|shop\s+now|order\s+now',
    re.IGNORECASE,
)

BUTTON_SELECTOR = "button, a[role='button'], input[type='submit'], [class*='button'], [class*='btn']"
NOTIFY_SELECTOR = BUTTON_SELECTOR + ", [class*='notify'], [class*='waitlist']"
EMAIL_SELECTOR = "input[type='email'], input[name*='email'], input[placeholder*='email']"
CONTAINER_SELECTORS = [
    "[class*='product']", "[class*='availability']", "[class*='stock']",
    "[class*='notify']", "[class*='waitlist']", "main", "[role='main']", ".pdp", "#product",
]
FORM_SELECTOR = (
    "form[action*='notify'], form[action*='waitlist'], form[action*='stock'], "
    "form[class*='notify'], form[class*='waitlist']"
)
EMAIL_CONTEXT_RE = re.compile(r'notify|available|stock|alert|waitlist|back\s+in\s+stock', re.IGNORECASE)

ELEMENT_SCORES = {
    "notify-button": 30,
    "notification-email-input": 25,
    "future-availability-text": 20,
    "notification-form": 28,
}
CTA_PENALTY = 20
THRESHOLD = 20
THRESHOLD_WITH_CTA = 40


def is_disabled(element: Tag) -> bool:
    return (
        element.has_attr("disabled")
        or get_attr(element, "aria-disabled") == "true"
        or get_attr(element, "data-disabled") == "true"
        or re.search(r'\bdisabled\b', get_attr(element, "class") or "", re.IGNORECASE) is not None
    )


def element_label(element: Tag) -> str:
    return clean_text(element) or get_attr(element, "value") or get_attr(element, "aria-label") or ""


def active_purchase_cta(dom) -> str:
    """Text of the first enabled purchase button, or ''."""
    for button in find_all(dom, BUTTON_SELECTOR + ", [class*='add-to'], [class*='purchase']"):
        text = element_label(button)
        if text and PURCHASE_CTA_RE.search(text) and not is_disabled(button):
            return text
    return ""


def find_notify_me_ui(dom) -> List[Dict]:
    """One entry per kind of notify-me element found, first occurrence wins."""
    found: Dict[str, Dict] = {}

    def add(kind: str, text: str):
        if kind not in found:
            found[kind] = {"type": kind, "text": text[:100], "score": ELEMENT_SCORES[kind]}

    for button in find_all(dom, NOTIFY_SELECTOR):
        text = element_label(button)
        if text and len(text) <= 100 and NOTIFY_ME_RE.search(text):
            add("notify-button", text)
            break

    for field in find_all(dom, EMAIL_SELECTOR):
        parent = field.parent
        grandparent = parent.parent if parent is not None else None
        nearby = f"{clean_text(parent)} {clean_text(grandparent)}"
        if EMAIL_CONTEXT_RE.search(nearby):
            add("notification-email-input", "Email input in notification context")
            break

    for selector in CONTAINER_SELECTORS:
        if "future-availability-text" in found:
            break
        for container in find_all(dom, selector):
            text = clean_text(container)
            if text and any(p.search(text) for p in FUTURE_AVAILABILITY_RE):
                add("future-availability-text", text)
                break

    for form in find_all(dom, FORM_SELECTOR):
        add("notification-form", clean_text(form) or "Notification form found")
        break

    return list(found.values())


class NotifyMeStockStrategy(BaseStrategy):
    """Detect out-of-stock from notify-me and waitlist UI."""

    name = "notify-me-stock-strategy"

    def extract(self, context: ExtractionContext) -> StrategyOutcome:
        elements = find_notify_me_ui(context.dom)
        if not elements:
            return StrategyOutcome(None, ["No notify-me UI patterns detected"])

        notes = [f"Found {len(elements)} notify-me UI element(s)"]
        for element in elements:
            notes.append(f"  - {element['type']}: \"{element['text']}\" (score: {element['score']})")

        cta = active_purchase_cta(context.dom)
        notes.append(f"Active purchase CTA found: \"{cta}\"" if cta else "No active purchase CTA found")

        notify_score = sum(e["score"] for e in elements)
        adjusted = notify_score - CTA_PENALTY if cta else notify_score
        threshold = THRESHOLD_WITH_CTA if cta else THRESHOLD
        notes.append(f"Notify UI score: {notify_score}, adjusted: {adjusted}")

        if adjusted < threshold:
            notes.append(f"Score {adjusted} below threshold {threshold}, deferring to other strategies")
            return StrategyOutcome(None, notes)

        primary = max(elements, key=lambda e: e["score"])
        notes.append(f"OUT_OF_STOCK detected via notify-me UI (score {adjusted} >= {threshold})")
        return StrategyOutcome(StockReading(
            status=StockStatus.OUT_OF_STOCK,
            raw_text=primary["text"],
            score=adjusted,
            metadata={
                "source": "notify_me",
                "has_active_purchase_cta": bool(cta),
                "elements_found": [e["type"] for e in elements],
            },
        ), notes)
