"""Tests for the DataForSEO client and its rate limiter."""

import json

import httpx
import pytest

from leadscore.integrations.dataforseo import DataForSEOClient, DataForSEOError
from leadscore.utils.rate_limiter import RateLimiter, RateLimitExceeded


def _ok(payload=None):
    return httpx.Response(200, json=payload or {"status_code": 20000, "tasks": [{"result": []}]})


def _client(handler, **kwargs):
    return DataForSEOClient(
        login="user",
        password="secret",
        transport=httpx.MockTransport(handler),
        backoff_base=0,
        **kwargs,
    )


# ===========================================================================
# 1. Requests
# ===========================================================================
class TestDataForSEOClient:
    """Request shape, retries and error mapping."""

    @pytest.mark.asyncio
    async def test_posts_task_array_with_basic_auth(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("authorization", "")
            seen["body"] = json.loads(request.content)
            return _ok()

        async with _client(handler) as client:
            await client.ads_search("acmedental.com", 1020618)

        assert seen["path"] == "/v3/serp/google/ads_search/live/advanced"
        assert seen["auth"].startswith("Basic ")
        assert seen["body"] == [{
            "target": "acmedental.com",
            "location_code": 1020618,
            "platform": "google_search",
            "depth": 40,
        }]

    @pytest.mark.asyncio
    async def test_retries_429_then_succeeds(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(429)
            return _ok({"status_code": 20000, "tasks": [{"result": [{"ok": True}]}]})

        async with _client(handler, max_retries=3) as client:
            data = await client.reviews("Acme Dental", "St. Louis,Missouri,United States")

        assert len(calls) == 3
        assert data["tasks"][0]["result"][0]["ok"] is True
        assert client.request_count == 3

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        async with _client(lambda request: httpx.Response(503), max_retries=2) as client:
            with pytest.raises(DataForSEOError) as exc_info:
                await client.backlinks("acmedental.com")
        assert exc_info.value.status_code == 503
        assert client.request_count == 3

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401)

        async with _client(handler) as client:
            with pytest.raises(DataForSEOError):
                await client.ranked_keywords("acmedental.com", "Chicago,Illinois,United States")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_api_level_error(self):
        handler = lambda request: _ok({"status_code": 40101, "status_message": "Auth failed"})
        async with _client(handler) as client:
            with pytest.raises(DataForSEOError) as exc_info:
                await client.serp_organic("dentist", 1016367)
        assert exc_info.value.status_code == 40101

    @pytest.mark.asyncio
    async def test_task_level_error(self):
        payload = {
            "status_code": 20000,
            "tasks": [{"status_code": 40501, "status_message": "Invalid Field", "result": None}],
        }
        async with _client(lambda request: _ok(payload)) as client:
            with pytest.raises(DataForSEOError) as exc_info:
                await client.reviews("Acme Dental", "Chicago,Illinois,United States")
        assert exc_info.value.status_code == 40501

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        handler = lambda request: httpx.Response(200, content=b"<html>")
        async with _client(handler) as client:
            with pytest.raises(DataForSEOError):
                await client.local_finder("dentist", 1016367)

    @pytest.mark.asyncio
    async def test_timeout_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return _ok()

        async with _client(handler) as client:
            await client.on_page_instant("https://acmedental.com", preset="mobile")
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_missing_credentials(self, monkeypatch):
        monkeypatch.delenv("DATAFORSEO_LOGIN", raising=False)
        monkeypatch.delenv("DATAFORSEO_PASSWORD", raising=False)
        client = DataForSEOClient(transport=httpx.MockTransport(lambda request: _ok()))
        assert not client.has_credentials
        with pytest.raises(RuntimeError):
            await client.my_business_info("Acme Dental", "Chicago,Illinois,United States")
        await client.close()

    @pytest.mark.asyncio
    async def test_credentials_from_environment(self, monkeypatch):
        monkeypatch.setenv("DATAFORSEO_LOGIN", "env-user")
        monkeypatch.setenv("DATAFORSEO_PASSWORD", "env-pass")
        assert DataForSEOClient().has_credentials

    @pytest.mark.asyncio
    async def test_daily_quota_stops_requests(self):
        limiter = RateLimiter(requests_per_minute=60, requests_per_day=1, name="test")
        async with _client(lambda request: _ok(), rate_limiter=limiter) as client:
            await client.business_listings("Acme Dental", 1016367)
            with pytest.raises(RateLimitExceeded):
                await client.business_listings("Acme Dental", 1016367)


# ===========================================================================
# 2. RateLimiter
# ===========================================================================
class TestRateLimiter:
    """Sliding windows with an injected clock."""

    def test_invalid_rate(self):
        with pytest.raises(ValueError):
            RateLimiter(requests_per_minute=0)

    @pytest.mark.asyncio
    async def test_windows_expire(self):
        clock = [1000.0]
        limiter = RateLimiter(requests_per_minute=5, requests_per_day=10, clock=lambda: clock[0])
        await limiter.acquire()
        await limiter.acquire()
        assert limiter.requests_in_last_minute == 2
        clock[0] += 61
        assert limiter.requests_in_last_minute == 0
        assert limiter.requests_today == 2
        assert limiter.remaining_today == 8
        limiter.reset()
        assert limiter.requests_today == 0

    @pytest.mark.asyncio
    async def test_minute_window_waits(self, monkeypatch):
        clock = [0.0]
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            clock[0] += seconds

        monkeypatch.setattr("leadscore.utils.rate_limiter.asyncio.sleep", fake_sleep)
        limiter = RateLimiter(requests_per_minute=2, requests_per_day=None, clock=lambda: clock[0])
        async with limiter:
            pass
        async with limiter:
            pass
        async with limiter:
            pass
        assert sleeps == [60.0]
        assert limiter.remaining_today is None

    @pytest.mark.asyncio
    async def test_daily_quota(self):
        clock = [0.0]
        limiter = RateLimiter(requests_per_minute=100, requests_per_day=2, clock=lambda: clock[0])
        await limiter.acquire()
        await limiter.acquire()
        with pytest.raises(RateLimitExceeded):
            await limiter.acquire()
        clock[0] += 86401
        await limiter.acquire()
        assert limiter.requests_today == 1
