"""
Product-shell assembly.

Turns one fetched page into an immutable ProductShell: identity fields
(title, description, images) plus the variant, price and stock engines run
over a single shared extraction context.
"""

import re
from typing import Any, Iterable, List, Optional
from urllib.parse import urljoin

from .logger import get_strategy_logger
from .models import ExtractionContext, FetchResult, ProductShell
from .parser.dom import find_all, get_attr, safe_query
from .parser.text import clean_text
from .pricing import extract_price
from .stock import extract_stock
from .variants import extract_variants

log = get_strategy_logger('product')

MAX_IMAGES = 10

PRODUCT_TITLE_SELECTORS = [
    ".product-title",
    ".product__title",
    "[itemprop='name']",
    ".product-name",
    ".product__name",
]

PRODUCT_IMAGE_SELECTORS = [
    ".product-image img",
    ".product__image img",
    ".product__media img",
    ".product-images img",
    "img[itemprop='image']",
    ".product-gallery img",
    ".product-photos img",
]

TITLE_SUFFIX_RE = re.compile(r'\s+[|\-–—:]\s+.*$')


def _is_product(obj: Any) -> bool:
    if not isinstance(obj, dict):
        return False
    types = obj.get("@type")
    if isinstance(types, str):
        types = [types]
    if not isinstance(types, list):
        return False
    return any(isinstance(t, str) and t.rsplit("/", 1)[-1] == "Product" for t in types)


def _meta_content(dom, selector: str) -> Optional[str]:
    content = get_attr(safe_query(dom, selector), "content")
    if content and content.strip():
        return content.strip()
    return None


# =============================================================================
# TITLE / DESCRIPTION
# =============================================================================

def extract_title(dom, json_blobs: Iterable[Any]) -> Optional[str]:
    """Product title, most specific source first."""
    for blob in json_blobs:
        if _is_product(blob) and isinstance(blob.get("name"), str) and blob["name"].strip():
            return blob["name"].strip()
        if isinstance(blob, dict):
            product = blob.get("product")
            if isinstance(product, dict) and isinstance(product.get("title"), str) and product["title"].strip():
                return product["title"].strip()

    for selector in ('meta[property="og:title"]', 'meta[name="twitter:title"]'):
        content = _meta_content(dom, selector)
        if content:
            return content

    for selector in PRODUCT_TITLE_SELECTORS + ["h1"]:
        text = clean_text(safe_query(dom, selector))
        if text:
            return text

    content = _meta_content(dom, 'meta[name="title"]')
    if content:
        return content

    title = clean_text(safe_query(dom, "title"))
    if title:
        # "Linen Shirt | Shop Name" -> "Linen Shirt"
        return TITLE_SUFFIX_RE.sub('', title).strip() or title
    return None


def extract_description(dom) -> Optional[str]:
    for selector in (
        'meta[name="description"]',
        'meta[property="og:description"]',
        'meta[name="twitter:description"]',
    ):
        content = _meta_content(dom, selector)
        if content:
            return content
    return None


# =============================================================================
# IMAGES
# =============================================================================

def _image_urls(value: Any) -> List[str]:
    """URLs from a JSON image field: string, list, or {url|src|contentUrl} objects."""
    if isinstance(value, str):
        return [value]
    if isinstance(value, dict):
        return [str(value[k]) for k in ("url", "src", "contentUrl", "originalSrc") if value.get(k)]
    if isinstance(value, list):
        urls = []
        for item in value:
            urls.extend(_image_urls(item))
        return urls
    return []


def extract_images(dom, json_blobs: Iterable[Any], base_url: Optional[str]) -> List[str]:
    candidates: List[str] = []

    for selector in ('meta[property="og:image"]', 'meta[name="twitter:image"]'):
        content = _meta_content(dom, selector)
        if content:
            candidates.append(content)

    for blob in json_blobs:
        if _is_product(blob):
            candidates.extend(_image_urls(blob.get("image")))
        if isinstance(blob, dict) and isinstance(blob.get("product"), dict):
            product = blob["product"]
            candidates.extend(_image_urls(product.get("image")))
            candidates.extend(_image_urls(product.get("images")))

    for selector in PRODUCT_IMAGE_SELECTORS:
        for img in find_all(dom, selector):
            for attr in ("src", "data-src"):
                src = get_attr(img, attr)
                if src:
                    candidates.append(src)

    if not candidates:
        largest = None
        for img in find_all(dom, "img"):
            src = get_attr(img, "src") or get_attr(img, "data-src")
            if not src:
                continue
            try:
                area = int(get_attr(img, "width") or 0) * int(get_attr(img, "height") or 0)
            except ValueError:
                area = 0
            if largest is None or area > largest[0]:
                largest = (area, src)
        if largest:
            candidates.append(largest[1])

    images = []
    for url in candidates:
        url = url.strip()
        if not url or url.startswith("data:"):
            continue
        if url.startswith("//"):
            url = "https:" + url
        elif base_url and not url.startswith(("http://", "https://")):
            url = urljoin(base_url, url)
        if url not in images:
            images.append(url)
        if len(images) >= MAX_IMAGES:
            break
    return images


# =============================================================================
# ASSEMBLY
# =============================================================================

def extract_product_shell(fetch_result: FetchResult) -> ProductShell:
    """
    Build a ProductShell from a fetch result.

    A failed fetch or empty page yields a shell with no commerce data and a
    note saying why; extraction never raises on page content.
    """
    url = fetch_result.original_url
    final_url = fetch_result.final_url or url
    html = fetch_result.html

    if not fetch_result.success or not html:
        reason = fetch_result.error or "empty response"
        log.warning(f"No HTML to extract from {url}: {reason}")
        return ProductShell(
            url=url,
            final_url=final_url,
            notes=(f"Fetch failed: {reason}",),
            fetched_at=fetch_result.fetched_at,
        )

    context = ExtractionContext.from_html(html, final_url)
    notes: List[str] = []

    variants, variant_notes = extract_variants(context)
    notes.extend(variant_notes)
    pricing, price_notes = extract_price(context)
    notes.extend(price_notes)
    stock, stock_notes = extract_stock(context)
    notes.extend(stock_notes)

    shell = ProductShell(
        url=url,
        final_url=final_url,
        title=extract_title(context.dom, context.json_blobs),
        description=extract_description(context.dom),
        images=tuple(extract_images(context.dom, context.json_blobs, final_url)),
        variants=tuple(variants),
        pricing=pricing,
        stock=stock,
        notes=tuple(notes),
        fetched_at=fetch_result.fetched_at,
        metadata={
            "json_blobs_count": len(context.json_blobs),
            "mode_used": fetch_result.mode_used,
            "status_code": fetch_result.status_code,
        },
    )
    log.info(
        f"Extracted {url}: {len(shell.variants)} variant(s), "
        f"price={'yes' if pricing else 'no'}, stock={stock.status.value if stock else 'none'}"
    )
    return shell
