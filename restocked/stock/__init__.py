"""
Stock discovery with confidence scoring and scrubbed evidence.
"""

from .extractor import extract_stock, build_stock_shell, clamp_confidence
from .scrub import scrub_evidence, scrub_raw_metadata

__all__ = ['extract_stock', 'build_stock_shell', 'clamp_confidence', 'scrub_evidence', 'scrub_raw_metadata']
