"""
Product page fetcher.

Plain HTTP retrieval with aiohttp. Page scripts are never executed, so the
extraction engines work on the server-rendered markup and embedded JSON.
"""

import asyncio
from typing import Dict, Optional

import aiohttp

from .config import config
from .logger import get_service_logger
from .models import FetchResult

log = get_service_logger('fetcher')

# WAF/bot challenge detection
WAF_MAX_LENGTH = 5000

WAF_MARKERS = [
    'aws-waf', 'awswaf', 'challenge.js',
    'captcha', 'cf-browser-verification',
    'challenge-platform', 'challenge-form',
    'just a moment', 'checking your browser',
    'attention required', 'cf-challenge',
    'verify you are human',
]


def is_challenge_page(html: Optional[str]) -> bool:
    """A short page carrying bot-challenge markers instead of product content."""
    if not html or len(html) > WAF_MAX_LENGTH:
        return False
    lowered = html.lower()
    return any(marker in lowered for marker in WAF_MARKERS)


class Fetcher:
    """
    Fetch product pages over HTTP.

    Usage:
        fetcher = Fetcher()
        result = await fetcher.fetch("https://shop.example/products/linen-shirt")
        if result.success:
            shell = extract_product_shell(result)
    """

    def __init__(self, timeout: Optional[float] = None, user_agent: Optional[str] = None):
        self.timeout = timeout if timeout is not None else config.FETCH_TIMEOUT_SECONDS
        self.user_agent = user_agent or config.FETCH_USER_AGENT

    def _headers(self) -> Dict[str, str]:
        return {
            'User-Agent': self.user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.9',
        }

    async def fetch(self, url: str) -> FetchResult:
        """Retrieve `url`, following redirects. Network errors become a failed result."""
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(headers=self._headers(), timeout=timeout) as session:
                async with session.get(url, allow_redirects=True) as response:
                    html = await response.text(errors='replace')
                    final_url = str(response.url)
                    status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.error(f"Fetch failed for {url}: {e!r}")
            return FetchResult.failure(url, f"{type(e).__name__}: {e}")

        if status >= 400:
            log.warning(f"HTTP {status} for {url}")
            return FetchResult.failure(url, f"HTTP {status}", status_code=status)

        if is_challenge_page(html):
            log.warning(f"Bot challenge page returned for {url}")
            return FetchResult.failure(url, "Bot challenge page", status_code=status)

        log.debug(f"Fetched {url} -> {final_url} ({status}, {len(html)} chars)")
        return FetchResult(
            success=True,
            original_url=url,
            final_url=final_url,
            status_code=status,
            raw_html=html,
            mode_used="http",
        )
