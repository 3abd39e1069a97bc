"""
Data models for commerce extraction.

Shells are transient, pre-persistence results of one extraction pass.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple

from bs4 import BeautifulSoup


def to_iso(moment: datetime) -> str:
    """Fixed-width UTC timestamp so stored values compare correctly as text."""
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def utcnow_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


class StockStatus(Enum):
    """Normalized stock availability."""
    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"
    LOW_STOCK = "low_stock"
    PREORDER = "preorder"
    UNKNOWN = "unknown"

    @classmethod
    def normalize(cls, raw: Optional[Any]) -> 'StockStatus':
        """Map free-form status text onto the enum. Unrecognized text is UNKNOWN."""
        if isinstance(raw, StockStatus):
            return raw
        if raw is None:
            return cls.UNKNOWN
        text = str(raw).strip().lower()
        aliases = {
            "in_stock": cls.IN_STOCK,
            "in stock": cls.IN_STOCK,
            "in-stock": cls.IN_STOCK,
            "instock": cls.IN_STOCK,
            "available": cls.IN_STOCK,
            "out_of_stock": cls.OUT_OF_STOCK,
            "out of stock": cls.OUT_OF_STOCK,
            "out-of-stock": cls.OUT_OF_STOCK,
            "outofstock": cls.OUT_OF_STOCK,
            "unavailable": cls.OUT_OF_STOCK,
            "sold out": cls.OUT_OF_STOCK,
            "soldout": cls.OUT_OF_STOCK,
            "low_stock": cls.LOW_STOCK,
            "low stock": cls.LOW_STOCK,
            "low-stock": cls.LOW_STOCK,
            "limited": cls.LOW_STOCK,
            "limitedavailability": cls.LOW_STOCK,
            "preorder": cls.PREORDER,
            "pre-order": cls.PREORDER,
            "pre order": cls.PREORDER,
            "presale": cls.PREORDER,
            "backorder": cls.PREORDER,
            "back order": cls.PREORDER,
            "back-order": cls.PREORDER,
        }
        return aliases.get(text, cls.UNKNOWN)


class NotificationType(Enum):
    """Durable notification kinds."""
    PRICE_DROP = "price_drop"
    BACK_IN_STOCK = "back_in_stock"
    STOCK_CHANGE = "stock_change"
    THRESHOLD_MET = "threshold_met"


# =============================================================================
# EXTRACTION CONTEXT
# =============================================================================

@dataclass(frozen=True)
class ExtractionContext:
    """Read-only inputs shared by every strategy in one pass."""
    dom: BeautifulSoup = field(compare=False, repr=False)
    html: str = field(repr=False)
    json_blobs: Tuple[Any, ...] = field(default_factory=tuple, repr=False)
    final_url: Optional[str] = None

    @classmethod
    def from_html(cls, html: str, final_url: Optional[str] = None) -> 'ExtractionContext':
        from .parser.dom import load_dom
        from .parser.embedded_json import extract_embedded_json

        html = html or ""
        dom = load_dom(html)
        return cls(
            dom=dom,
            html=html,
            json_blobs=tuple(extract_embedded_json(html, dom)),
            final_url=final_url,
        )


@dataclass
class StrategyOutcome:
    """What a strategy hands back: a result (or None) plus diagnostic notes."""
    result: Any = None
    notes: List[str] = field(default_factory=list)


# =============================================================================
# SHELLS
# =============================================================================

@dataclass(frozen=True)
class VariantAttribute:
    """One normalized attribute, e.g. size=M."""
    name: str
    value: str


@dataclass
class VariantShell:
    """A variant as seen on the page, before persistence."""
    attributes: List[VariantAttribute] = field(default_factory=list)
    external_id: Optional[str] = None
    availability: Optional[bool] = None
    price: Optional[float] = None
    variant_url: Optional[str] = None
    source_metadata: Dict[str, Any] = field(default_factory=dict)

    def attribute_key(self) -> Tuple[Tuple[str, str], ...]:
        """Order-independent identity of the attribute set."""
        return tuple(sorted((a.name, a.value) for a in self.attributes))

    def attributes_dict(self) -> Dict[str, str]:
        """Deterministic name -> value mapping (sorted keys)."""
        pairs = {}
        for attr in self.attributes:
            if attr.name and attr.value:
                pairs[attr.name.strip()] = attr.value.strip()
        return {k: pairs[k] for k in sorted(pairs)}

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["attributes"] = [{"name": a.name, "value": a.value} for a in self.attributes]
        data["source_metadata"] = {
            k: v for k, v in self.source_metadata.items() if k != "original"
        }
        return data


@dataclass(frozen=True)
class PriceShell:
    """The single price chosen for a page."""
    amount: float
    currency: Optional[str]
    raw_text: Optional[str] = None
    source_metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class StockReading:
    """What a stock strategy saw, before the engine turns it into a StockShell."""
    status: StockStatus
    raw_text: Optional[str] = None
    score: Optional[int] = None
    quantity: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StockShell:
    """Stock determination with its confidence and audit trail."""
    status: StockStatus
    strategy_name: str
    confidence: int
    reason_code: str
    evidence: Tuple[str, ...] = ()
    quantity: Optional[int] = None
    raw_text: Optional[str] = None
    raw_metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["evidence"] = list(self.evidence)
        return data


@dataclass(frozen=True)
class ProductShell:
    """Everything one fetch produced. Ingestion input; never mutated."""
    url: str
    final_url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    images: Tuple[str, ...] = ()
    variants: Tuple[VariantShell, ...] = ()
    pricing: Optional[PriceShell] = None
    stock: Optional[StockShell] = None
    notes: Tuple[str, ...] = ()
    fetched_at: str = field(default_factory=utcnow_iso)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "final_url": self.final_url,
            "title": self.title,
            "description": self.description,
            "images": list(self.images),
            "variants": [v.to_dict() for v in self.variants],
            "pricing": self.pricing.to_dict() if self.pricing else None,
            "stock": self.stock.to_dict() if self.stock else None,
            "notes": list(self.notes),
            "fetched_at": self.fetched_at,
            "metadata": dict(self.metadata),
        }


# =============================================================================
# FETCH
# =============================================================================

@dataclass
class FetchResult:
    """Outcome of retrieving a product page."""
    success: bool
    original_url: str
    final_url: Optional[str] = None
    status_code: Optional[int] = None
    raw_html: Optional[str] = None
    rendered_html: Optional[str] = None
    mode_used: str = "http"
    fetched_at: str = field(default_factory=utcnow_iso)
    error: Optional[str] = None

    @property
    def html(self) -> Optional[str]:
        return self.rendered_html or self.raw_html

    @classmethod
    def failure(cls, url: str, error: str, status_code: Optional[int] = None) -> 'FetchResult':
        return cls(success=False, original_url=url, status_code=status_code,
                   mode_used="failed", error=error)
