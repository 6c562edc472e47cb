import pytest
from unittest.mock import AsyncMock, MagicMock

from pubsuggest.models.config import CacheConfig
from pubsuggest.services.cache_service import CacheService
from pubsuggest.services.providers.base import PublicationProvider
from pubsuggest.services.providers.cached import CachedPublicationProvider
from pubsuggest.utils.exceptions import HydrationFailure


@pytest.fixture
def inner():
    provider = AsyncMock(spec=PublicationProvider)
    provider.name = "inner"
    provider.fetch.return_value = {"title": "Fetched"}
    return provider


@pytest.fixture
def cache_service(tmp_path):
    service = CacheService(CacheConfig(cache_dir=str(tmp_path / "cache")))
    yield service
    service.close()


@pytest.mark.asyncio
async def test_fetch_populates_cache(inner, cache_service):
    provider = CachedPublicationProvider(inner, cache_service)

    first = await provider.fetch("10.1/x")
    second = await provider.fetch("10.1/x")

    assert first == second == {"title": "Fetched"}
    inner.fetch.assert_awaited_once_with("10.1/x", no_cache=False)
    assert provider.name == "cached_inner"


@pytest.mark.asyncio
async def test_no_cache_bypasses_and_refreshes(inner, cache_service):
    cache_service.set_record("10.1/x", {"title": "Old"})
    provider = CachedPublicationProvider(inner, cache_service)

    result = await provider.fetch("10.1/x", no_cache=True)

    assert result == {"title": "Fetched"}
    assert cache_service.get_record("10.1/x") == {"title": "Fetched"}


@pytest.mark.asyncio
async def test_failures_are_not_cached(inner):
    inner.fetch.side_effect = HydrationFailure("gone", doi="10.1/x")
    cache_service = MagicMock()
    cache_service.get_record.return_value = None
    provider = CachedPublicationProvider(inner, cache_service)

    with pytest.raises(HydrationFailure):
        await provider.fetch("10.1/x")

    cache_service.set_record.assert_not_called()
