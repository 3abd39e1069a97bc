"""
Currency detection and locale-tolerant amount parsing.
"""

import math
import re
from typing import Any, Optional

# Longer symbols first so "CN¥" wins over "¥" and "A$" over "$"
CURRENCY_SYMBOLS = {
    "US$": "USD",
    "CA$": "CAD",
    "AU$": "AUD",
    "NZ$": "NZD",
    "HK$": "HKD",
    "CN¥": "CNY",
    "A$": "AUD",
    "C$": "CAD",
    "S$": "SGD",
    "R$": "BRL",
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "₹": "INR",
    "₩": "KRW",
}

CURRENCY_CODES = [
    "USD", "EUR", "GBP", "JPY", "AUD", "CAD", "CHF", "CNY", "INR",
    "SEK", "NOK", "DKK", "NZD", "HKD", "SGD", "KRW", "BRL", "MXN",
]

CURRENCY_CODE_RE = re.compile(r'(?<![A-Z])(' + '|'.join(CURRENCY_CODES) + r')(?![A-Z])')


def detect_currency(value: Any) -> Optional[str]:
    """
    ISO code for a currency field, key name or price string.

    >>> detect_currency("usd")
    'USD'
    >>> detect_currency("€12,50")
    'EUR'
    """
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if not text:
        return None

    match = CURRENCY_CODE_RE.search(text.upper())
    if match:
        return match.group(1)

    for symbol, code in CURRENCY_SYMBOLS.items():
        if symbol in text:
            return code
    return None


def parse_price_amount(value: Any) -> Optional[float]:
    """
    Parse a positive finite amount from a number or a price string.

    Separator handling:
        "1,234.56" -> 1234.56   (both present: commas are grouping)
        "12,50"    -> 12.5      (lone comma with a 2-digit tail is a decimal)
        "1,234"    -> 1234.0    (otherwise the comma is grouping)
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        cleaned = re.sub(r'[^\d.,]', '', value)
        if not cleaned or not any(ch.isdigit() for ch in cleaned):
            return None
        if ',' in cleaned and '.' in cleaned:
            cleaned = cleaned.replace(',', '')
        elif ',' in cleaned:
            head, _, tail = cleaned.rpartition(',')
            if len(tail) in (1, 2):
                cleaned = head.replace(',', '') + '.' + tail
            else:
                cleaned = cleaned.replace(',', '')
        # A second dot means the dots were grouping ("1.234.567")
        if cleaned.count('.') > 1:
            head, _, tail = cleaned.rpartition('.')
            cleaned = head.replace('.', '') + ('.' + tail if len(tail) <= 2 else tail)
        try:
            amount = float(cleaned)
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount
