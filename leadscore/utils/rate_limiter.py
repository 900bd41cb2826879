"""Sliding-window rate limiter for upstream API quotas (per-minute and per-day)."""

import asyncio
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

_MINUTE = 60.0
_DAY = 86400.0


class RateLimitExceeded(RuntimeError):
    """Raised when the daily request quota has been used up."""


class RateLimiter:
    """Sliding-window rate limiter owned by a single API client instance.

    The per-minute window is enforced by waiting for a free slot; the
    per-day window cannot reasonably be waited out and raises
    :class:`RateLimitExceeded` instead.

    Usage::

        limiter = RateLimiter(requests_per_minute=60, requests_per_day=1000)

        async with limiter:
            await client.post(...)
    """

    def __init__(
        self,
        requests_per_minute: int = 60,
        requests_per_day: Optional[int] = 1000,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ):
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive")
        self._rpm = requests_per_minute
        self._rpd = requests_per_day
        self._name = name
        self._clock = clock
        self._minute_window: list[float] = []
        self._day_window: list[float] = []
        self._async_lock = asyncio.Lock()

    def _clean_windows(self, now: float) -> None:
        """Remove expired timestamps from sliding windows."""
        self._minute_window = [t for t in self._minute_window if now - t < _MINUTE]
        if self._rpd:
            self._day_window = [t for t in self._day_window if now - t < _DAY]

    def _wait_time(self) -> float:
        """Seconds until the next request is allowed by the minute window."""
        now = self._clock()
        self._clean_windows(now)
        if self._rpd and len(self._day_window) >= self._rpd:
            raise RateLimitExceeded(
                f"Daily request quota of {self._rpd} reached for {self._name}"
            )
        if len(self._minute_window) >= self._rpm:
            return max(0.0, _MINUTE - (now - self._minute_window[0]))
        return 0.0

    def _record(self) -> None:
        now = self._clock()
        self._minute_window.append(now)
        if self._rpd:
            self._day_window.append(now)

    async def acquire(self) -> None:
        """Wait until a request slot is available."""
        async with self._async_lock:
            while True:
                wait = self._wait_time()
                if wait <= 0:
                    break
                logger.debug("RateLimiter(%s) sleeping %.2fs", self._name, wait)
                await asyncio.sleep(wait)
            self._record()

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, *args):
        pass

    @property
    def requests_in_last_minute(self) -> int:
        """Number of requests made in the last 60 seconds."""
        self._clean_windows(self._clock())
        return len(self._minute_window)

    @property
    def requests_today(self) -> int:
        """Number of requests made in the last 24 hours."""
        self._clean_windows(self._clock())
        return len(self._day_window)

    @property
    def remaining_today(self) -> Optional[int]:
        """Requests left in the daily quota, or ``None`` when unbounded."""
        if not self._rpd:
            return None
        return max(0, self._rpd - self.requests_today)

    def reset(self) -> None:
        """Clear all recorded timestamps."""
        self._minute_window.clear()
        self._day_window.clear()

    def __repr__(self) -> str:
        return (
            f"RateLimiter(name={self._name!r}, rpm={self._rpm}, "
            f"rpd={self._rpd}, used_today={self.requests_today})"
        )
