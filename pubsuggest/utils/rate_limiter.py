import asyncio
import time

import structlog

logger = structlog.get_logger()


class RateLimiter:
    """
    Token bucket shared by all hydration requests of a provider.

    Concurrent callers are served one at a time, so a burst of hydrations
    drains the bucket in request order instead of all waking up together.
    """

    def __init__(self, requests_per_minute: int = 600, burst_size: int = 20):
        self.rate = requests_per_minute / 60.0
        self.burst_size = burst_size
        self._tokens = float(burst_size)
        self._refilled_at = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        self._tokens = min(
            float(self.burst_size), self._tokens + (now - self._refilled_at) * self.rate
        )
        self._refilled_at = now

    async def acquire(self) -> None:
        async with self._lock:
            self._refill()
            if self._tokens < 1:
                wait_seconds = (1 - self._tokens) / self.rate
                logger.debug("rate_limit_wait", wait_seconds=round(wait_seconds, 3))
                await asyncio.sleep(wait_seconds)
                self._refill()
            self._tokens = max(0.0, self._tokens - 1)
