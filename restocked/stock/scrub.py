"""
Evidence scrubbing for persisted stock determinations.

Evidence and raw metadata end up in the stock_checks audit table, so anything
that could carry a credential is removed before a StockShell is built.
"""

import re
from typing import Any, Dict, Iterable, List, Optional

SENSITIVE_RE = re.compile(
    r'token|auth|cookie|password|bearer|api[_-]?key|secret|credential|session',
    re.IGNORECASE,
)

# Keys allowed through from strategy metadata
RAW_METADATA_KEYS = (
    "source",
    "score",
    "candidates_count",
    "has_active_purchase_cta",
    "elements_found",
    "path",
)


def is_sensitive(text: Optional[str]) -> bool:
    return bool(text) and SENSITIVE_RE.search(text) is not None


def scrub_evidence(notes: Iterable[str]) -> List[str]:
    """Drop every note that mentions a credential-like term."""
    return [note for note in notes if note and not is_sensitive(note)]


def scrub_raw_metadata(metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Allow-listed, JSON-safe metadata. Markup and unknown keys never pass."""
    if not metadata:
        return {}
    clean = {}
    for key in RAW_METADATA_KEYS:
        if key not in metadata:
            continue
        value = metadata[key]
        if isinstance(value, str):
            if is_sensitive(value) or "<" in value:
                continue
        elif isinstance(value, (list, tuple)):
            value = [str(v) for v in value if not is_sensitive(str(v))]
        elif not isinstance(value, (int, float, bool)) and value is not None:
            continue
        clean[key] = value
    return clean
