"""
Price discovery: structured data, DOM and visible-text heuristics.
"""

from .currency import detect_currency, parse_price_amount, CURRENCY_SYMBOLS, CURRENCY_CODES
from .extractor import extract_price

__all__ = ['detect_currency', 'parse_price_amount', 'CURRENCY_SYMBOLS', 'CURRENCY_CODES', 'extract_price']
