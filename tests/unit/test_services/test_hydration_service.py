"""Unit tests for concurrent publication hydration"""

import asyncio
from typing import Dict

import pytest
from unittest.mock import AsyncMock

from pubsuggest.models.publication import Publication
from pubsuggest.services.hydration_service import HydrationService
from pubsuggest.services.providers.base import PublicationProvider
from pubsuggest.utils.exceptions import HydrationFailure, ProviderUnavailableError


class GatedProvider(PublicationProvider):
    """Provider whose responses are released manually, in any order"""

    def __init__(self):
        self.gates: Dict[int, asyncio.Event] = {}
        self.responses: Dict[int, dict] = {}
        self.calls = 0

    @property
    def name(self) -> str:
        return "gated"

    async def fetch(self, doi: str, no_cache: bool = False) -> Dict:
        self.calls += 1
        call = self.calls
        self.gates[call] = asyncio.Event()
        await self.gates[call].wait()
        return self.responses[call]


def make_provider(side_effect):
    provider = AsyncMock(spec=PublicationProvider)
    provider.fetch.side_effect = side_effect
    return provider


@pytest.mark.asyncio
async def test_hydrate_populates_publication():
    provider = make_provider(lambda doi, no_cache=False: {"title": "Paper", "citation": "10.1/c"})
    service = HydrationService(provider)
    publication = Publication.create("10.1/x")

    assert await service.hydrate(publication)
    assert publication.was_fetched
    assert publication.citation_dois == ["10.1/c"]
    assert service.applied_generation("10.1/x") == 1


@pytest.mark.asyncio
async def test_hydrate_skips_fetched_publications():
    provider = make_provider(lambda doi, no_cache=False: {})
    service = HydrationService(provider)
    publication = Publication.create("10.1/x").hydrate({"title": "Known"})

    assert await service.hydrate(publication)
    provider.fetch.assert_not_called()


@pytest.mark.asyncio
async def test_hydration_failure_leaves_stub():
    def fail(doi, no_cache=False):
        raise HydrationFailure("not found", doi=doi)

    service = HydrationService(make_provider(fail))
    publication = Publication.create("10.1/x")

    assert not await service.hydrate(publication)
    assert publication.hydration_failed
    assert publication.doi == "10.1/x"


@pytest.mark.asyncio
async def test_stale_result_is_discarded():
    provider = GatedProvider()
    service = HydrationService(provider)
    publication = Publication.create("10.1/x")

    first = asyncio.ensure_future(service.hydrate(publication, no_cache=True))
    await asyncio.sleep(0)
    second = asyncio.ensure_future(service.hydrate(publication, no_cache=True))
    await asyncio.sleep(0)

    provider.responses[1] = {"title": "Old title"}
    provider.responses[2] = {"title": "New title"}

    # Later-issued request completes first
    provider.gates[2].set()
    await second
    provider.gates[1].set()
    await first

    assert publication.title == "New title"
    assert service.stale_discarded == 1
    assert service.issued_generation("10.1/x") == 2
    assert service.applied_generation("10.1/x") == 2


@pytest.mark.asyncio
async def test_hydrate_many_reports_failures_without_aborting():
    def fetch(doi, no_cache=False):
        if doi == "10.1/bad":
            raise HydrationFailure("gone", doi=doi)
        if doi == "10.1/boom":
            raise RuntimeError("unexpected")
        return {"title": doi}

    service = HydrationService(make_provider(fetch))
    publications = [Publication.create(d) for d in ("10.1/a", "10.1/bad", "10.1/boom")]

    report = await service.hydrate_many(publications)

    assert report.requested == 3
    assert report.hydrated == 1
    assert sorted(report.failed) == ["10.1/bad", "10.1/boom"]
    assert not report.provider_unavailable
    assert publications[0].was_fetched
    assert publications[2].hydration_failed


@pytest.mark.asyncio
async def test_hydrate_many_flags_provider_unavailable_once():
    def fetch(doi, no_cache=False):
        raise ProviderUnavailableError("circuit open")

    service = HydrationService(make_provider(fetch))
    publications = [Publication.create(f"10.1/{i}") for i in range(5)]

    report = await service.hydrate_many(publications)

    assert report.provider_unavailable
    assert report.unavailable_error == "circuit open"
    assert len(report.failed) == 5


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    running = 0
    peak = 0

    async def fetch(doi, no_cache=False):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1
        return {}

    service = HydrationService(make_provider(fetch), max_concurrent=2)
    await service.hydrate_many([Publication.create(f"10.1/{i}") for i in range(6)])

    assert peak == 2
