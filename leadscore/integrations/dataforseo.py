"""DataForSEO v3 API client used to collect the raw payloads for scoring."""

import asyncio
import logging
import os
from typing import Any, Optional

import httpx

from leadscore.modules.scoring.payloads import dig
from leadscore.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DATAFORSEO_BASE_URL = "https://api.dataforseo.com/v3"
STATUS_OK = 20000


class DataForSEOError(RuntimeError):
    """Raised for non-retryable DataForSEO failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DataForSEOClient:
    """Async client for the DataForSEO endpoints the scoring workflow needs.

    One instance is meant to live for the whole process; its rate limiter
    is shared by every call made through it.

    Usage::

        client = DataForSEOClient()
        reviews = await client.reviews("Acme Dental", "St. Louis,Missouri,United States")
        await client.close()
    """

    def __init__(
        self,
        login: Optional[str] = None,
        password: Optional[str] = None,
        base_url: str = DATAFORSEO_BASE_URL,
        timeout: float = 60.0,
        max_retries: int = 3,
        rate_limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        backoff_base: float = 2.0,
    ):
        self._login = login or os.getenv("DATAFORSEO_LOGIN", "")
        self._password = password or os.getenv("DATAFORSEO_PASSWORD", "")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._limiter = rate_limiter or RateLimiter(
            requests_per_minute=60, requests_per_day=1000, name="dataforseo"
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._request_count = 0

        if not self.has_credentials:
            logger.warning(
                "DATAFORSEO_LOGIN / DATAFORSEO_PASSWORD not set. "
                "Live DataForSEO requests will fail until credentials are configured."
            )

    @property
    def has_credentials(self) -> bool:
        return bool(self._login and self._password)

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._limiter

    @property
    def request_count(self) -> int:
        return self._request_count

    def _get_client(self) -> httpx.AsyncClient:
        """Lazily create the shared HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                auth=httpx.BasicAuth(self._login, self._password),
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Clean up resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request_with_retry(self, path: str, tasks: list[dict[str, Any]]) -> dict[str, Any]:
        """POST *tasks* to *path* with exponential backoff on 429, 5xx and timeouts."""
        if not self.has_credentials:
            raise RuntimeError("DataForSEO credentials are not configured")

        client = self._get_client()
        for attempt in range(self._max_retries + 1):
            await self._limiter.acquire()
            self._request_count += 1
            try:
                response = await client.post(path, json=tasks)
            except httpx.TimeoutException:
                if attempt < self._max_retries:
                    wait = self._backoff_base * (2 ** attempt)
                    logger.warning(
                        "DataForSEO timeout on %s. Retry %d/%d in %.0fs...",
                        path, attempt + 1, self._max_retries, wait,
                    )
                    await asyncio.sleep(wait)
                    continue
                raise DataForSEOError(f"Timed out calling {path}")
            except httpx.HTTPError as exc:
                raise DataForSEOError(f"HTTP error calling {path}: {exc}") from exc

            retryable = response.status_code == 429 or response.status_code >= 500
            if retryable and attempt < self._max_retries:
                wait = self._backoff_base * (2 ** attempt)
                logger.warning(
                    "DataForSEO %d on %s. Retry %d/%d in %.0fs...",
                    response.status_code, path, attempt + 1, self._max_retries, wait,
                )
                await asyncio.sleep(wait)
                continue
            if response.status_code >= 400:
                raise DataForSEOError(
                    f"DataForSEO returned HTTP {response.status_code} for {path}",
                    status_code=response.status_code,
                )

            try:
                data = response.json()
            except ValueError as exc:
                raise DataForSEOError(f"Invalid JSON from {path}") from exc

            status = data.get("status_code") if isinstance(data, dict) else None
            if isinstance(status, int) and status != STATUS_OK and status >= 40000:
                raise DataForSEOError(
                    f"DataForSEO error {status} for {path}: {data.get('status_message', '')}",
                    status_code=status,
                )
            task = dig(data, "tasks", 0, default={})
            task_status = task.get("status_code") if isinstance(task, dict) else None
            if isinstance(task_status, int) and task_status >= 40000:
                raise DataForSEOError(
                    f"DataForSEO task error {task_status} for {path}: {task.get('status_message', '')}",
                    status_code=task_status,
                )
            logger.debug("DataForSEO %s ok (cost=%s)", path, data.get("cost") if isinstance(data, dict) else None)
            return data

        raise DataForSEOError(f"Retries exhausted for {path}")

    # ------------------------------------------------------------------
    # Business data
    # ------------------------------------------------------------------

    async def business_listings(self, business_name: str, location_code: int, limit: int = 10) -> dict:
        return await self._request_with_retry(
            "/business_data/business_listings/search/live",
            [{"title": business_name, "location_code": location_code, "limit": limit}],
        )

    async def my_business_info(self, business_name: str, location_name: str) -> dict:
        return await self._request_with_retry(
            "/business_data/google/my_business_info/live",
            [{"keyword": business_name, "location_name": location_name, "language_code": "en"}],
        )

    async def reviews(self, business_name: str, location_name: str, depth: int = 100) -> dict:
        return await self._request_with_retry(
            "/business_data/google/reviews/live",
            [{
                "keyword": business_name,
                "location_name": location_name,
                "language_code": "en",
                "depth": depth,
                "sort_by": "newest",
            }],
        )

    # ------------------------------------------------------------------
    # Labs, on-page, backlinks
    # ------------------------------------------------------------------

    async def ranked_keywords(self, domain: str, location_name: str, limit: int = 1000) -> dict:
        return await self._request_with_retry(
            "/dataforseo_labs/google/ranked_keywords/live",
            [{"target": domain, "location_name": location_name, "language_name": "English", "limit": limit}],
        )

    async def bulk_traffic_estimation(self, domain: str, location_name: str) -> dict:
        return await self._request_with_retry(
            "/dataforseo_labs/google/bulk_traffic_estimation/live",
            [{"targets": [domain], "location_name": location_name, "language_name": "English"}],
        )

    async def on_page_instant(self, url: str, preset: str = "desktop") -> dict:
        """Instant on-page audit of one URL, including Core Web Vitals timing."""
        return await self._request_with_retry(
            "/on_page/instant_pages",
            [{
                "url": url,
                "enable_javascript": True,
                "enable_browser_rendering": True,
                "browser_preset": preset,
            }],
        )

    async def backlinks(self, domain: str, limit: int = 100) -> dict:
        return await self._request_with_retry(
            "/backlinks/backlinks/live",
            [{"target": domain, "mode": "one_per_domain", "limit": limit}],
        )

    # ------------------------------------------------------------------
    # SERP and ads
    # ------------------------------------------------------------------

    async def ads_search(self, domain: str, location_code: int, depth: int = 40) -> dict:
        return await self._request_with_retry(
            "/serp/google/ads_search/live/advanced",
            [{"target": domain, "location_code": location_code, "platform": "google_search", "depth": depth}],
        )

    async def ads_advertisers(self, keyword: str, location_code: int) -> dict:
        return await self._request_with_retry(
            "/serp/google/ads_advertisers/live/advanced",
            [{"keyword": keyword, "location_code": location_code, "language_code": "en"}],
        )

    async def serp_organic(self, keyword: str, location_code: int, depth: int = 100) -> dict:
        return await self._request_with_retry(
            "/serp/google/organic/live/regular",
            [{"keyword": keyword, "location_code": location_code, "language_code": "en", "depth": depth}],
        )

    async def local_finder(self, keyword: str, location_code: int, depth: int = 20) -> dict:
        return await self._request_with_retry(
            "/serp/google/local_finder/live/advanced",
            [{"keyword": keyword, "location_code": location_code, "language_code": "en", "depth": depth}],
        )

