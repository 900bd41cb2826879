"""Direct homepage fetching for schema and analytics detection."""

import logging
from typing import Optional

import aiohttp

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = aiohttp.ClientTimeout(total=15)
DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}


class PageFetcher:
    """Fetch raw HTML for a prospect's website.

    Usage::

        fetcher = PageFetcher()
        html = await fetcher.fetch("https://example.com")
        await fetcher.close()
    """

    def __init__(self, timeout: Optional[aiohttp.ClientTimeout] = None, max_redirects: int = 5):
        self._timeout = timeout or HTTP_TIMEOUT
        self._max_redirects = max_redirects
        self._http_session: Optional[aiohttp.ClientSession] = None

    async def _get_http_session(self) -> aiohttp.ClientSession:
        """Lazily create and return an aiohttp session."""
        if self._http_session is None or self._http_session.closed:
            self._http_session = aiohttp.ClientSession(
                timeout=self._timeout, headers=DEFAULT_HEADERS
            )
        return self._http_session

    async def close(self) -> None:
        """Clean up resources."""
        if self._http_session and not self._http_session.closed:
            await self._http_session.close()

    async def fetch(self, url: str) -> str:
        """Return the page body, or ``""`` for 4xx responses.

        Raises:
            aiohttp.ClientError: On transport failures and 5xx responses.
        """
        session = await self._get_http_session()
        async with session.get(url, max_redirects=self._max_redirects) as resp:
            if resp.status >= 500:
                resp.raise_for_status()
            if resp.status >= 400:
                logger.info("HTML fetch for %s returned %d", url, resp.status)
                return ""
            html = await resp.text(errors="replace")
        logger.debug("Fetched %d characters from %s", len(html), url)
        return html
