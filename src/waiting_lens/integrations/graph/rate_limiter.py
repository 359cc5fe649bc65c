"""Client-side throttling for Graph API calls."""

from __future__ import annotations

import asyncio
from time import monotonic


class RateLimiter:
    """Minimum-interval limiter shared by every request a client issues.

    Graph throttles per app and per tenant; spacing requests evenly keeps a
    refresh (four sources plus identity and avatar batches) from tripping
    429s. Requests waiting on the lock are released in arrival order.

    Attributes:
        requests_per_second: Maximum requests allowed per second.
    """

    def __init__(self, requests_per_second: int = 10) -> None:
        """Initialize rate limiter.

        Args:
            requests_per_second: Maximum requests per second (default: 10).

        Raises:
            ValueError: If requests_per_second is not positive.
        """
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        self.requests_per_second = requests_per_second
        self._interval = 1.0 / requests_per_second
        self._last_request_time: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until the next request slot is available."""
        async with self._lock:
            if self._last_request_time is not None:
                wait_time = self._interval - (monotonic() - self._last_request_time)
                if wait_time > 0:
                    await asyncio.sleep(wait_time)
            self._last_request_time = monotonic()

    def reset(self) -> None:
        """Forget the last request so the next one goes out immediately."""
        self._last_request_time = None

    @property
    def interval_seconds(self) -> float:
        """Minimum seconds between consecutive requests."""
        return self._interval
