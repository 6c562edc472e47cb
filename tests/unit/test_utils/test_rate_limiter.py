import asyncio

import pytest
from unittest.mock import AsyncMock, patch

from pubsuggest.utils.rate_limiter import RateLimiter


@pytest.mark.asyncio
async def test_burst_does_not_wait():
    limiter = RateLimiter(requests_per_minute=60, burst_size=3)
    with patch("asyncio.sleep", new=AsyncMock()) as mock_sleep:
        for _ in range(3):
            await limiter.acquire()
    mock_sleep.assert_not_called()


@pytest.mark.asyncio
async def test_waits_when_bucket_is_empty():
    limiter = RateLimiter(requests_per_minute=60, burst_size=1)
    with patch("asyncio.sleep", new=AsyncMock()) as mock_sleep:
        await limiter.acquire()
        await limiter.acquire()
    mock_sleep.assert_awaited_once()
    wait_time = mock_sleep.await_args.args[0]
    assert 0 < wait_time <= 1.0


@pytest.mark.asyncio
async def test_concurrent_callers_are_serialized():
    limiter = RateLimiter(requests_per_minute=60, burst_size=1)
    with patch("asyncio.sleep", new=AsyncMock()) as mock_sleep:
        await asyncio.gather(*(limiter.acquire() for _ in range(3)))
    assert mock_sleep.await_count == 2
