"""Unit tests for suggestion aggregation and ranking"""

import asyncio
from typing import Dict, Optional, Set

import pytest

from pubsuggest.models.config import SuggestionConfig
from pubsuggest.models.publication import Publication
from pubsuggest.models.scoring import ScoringConfig
from pubsuggest.services.hydration_service import HydrationService
from pubsuggest.services.providers.base import PublicationProvider
from pubsuggest.services.scoring_service import ScoringService
from pubsuggest.services.suggestion_service import SuggestionService
from pubsuggest.utils.exceptions import (
    AggregationFailure,
    HydrationFailure,
    ProviderUnavailableError,
)


class FakeProvider(PublicationProvider):
    """In-memory publication records"""

    def __init__(
        self,
        records: Dict[str, dict],
        missing: Optional[Set[str]] = None,
        unavailable: bool = False,
    ):
        self.records = records
        self.missing = missing or set()
        self.unavailable = unavailable
        self.fetched = []

    @property
    def name(self) -> str:
        return "fake"

    async def fetch(self, doi: str, no_cache: bool = False) -> Dict:
        if self.unavailable:
            raise ProviderUnavailableError("service down")
        self.fetched.append(doi)
        if doi in self.missing:
            raise HydrationFailure("unknown", doi=doi)
        return self.records.get(doi, {"title": f"Paper {doi}"})


@pytest.fixture
def records():
    # s1 and s2 are selected; c is cited by both, d cites s1, e is cited by s2
    return {
        "10.1/s1": {"title": "Seed One", "year": 2010, "reference": "10.1/c; 10.1/s2", "citation": "10.1/d"},
        "10.1/s2": {"title": "Seed Two", "year": 2012, "reference": "10.1/c; 10.1/e"},
        "10.1/c": {"title": "Common Ancestor", "year": 2000},
        "10.1/d": {"title": "Descendant", "year": 2015},
        "10.1/e": {"title": "Other", "year": 2005},
    }


def make_service(provider, max_suggestions=100, scoring=None, prefetch=False):
    return SuggestionService(
        HydrationService(provider),
        scoring_service=scoring,
        config=SuggestionConfig(max_suggestions=max_suggestions, prefetch_next_page=prefetch),
    )


def selected(*dois):
    return [Publication.create(doi) for doi in dois]


def never_excluded(doi):
    return False


class TestAggregate:
    def test_multiplicity_counts_distinct_sources(self):
        s1 = Publication(doi="10.1/s1", reference_dois=["10.1/c", "10.1/d"])
        s2 = Publication(doi="10.1/s2", citation_dois=["10.1/c"])
        service = make_service(FakeProvider({}))

        candidates, _ = service.aggregate([s1, s2], never_excluded)

        assert candidates["10.1/c"].multiplicity == 2
        assert candidates["10.1/c"].citation_count == 1
        assert candidates["10.1/c"].reference_count == 1
        assert candidates["10.1/d"].multiplicity == 1

    def test_same_source_listing_twice_counts_once(self):
        s1 = Publication(
            doi="10.1/s1", reference_dois=["10.1/c"], citation_dois=["10.1/c"]
        )
        candidates, _ = make_service(FakeProvider({})).aggregate([s1], never_excluded)
        assert candidates["10.1/c"].multiplicity == 1

    def test_selected_and_excluded_are_never_candidates(self):
        s1 = Publication(doi="10.1/s1", reference_dois=["10.1/s2", "10.1/x", "10.1/c"])
        s2 = Publication(doi="10.1/s2", citation_dois=["10.1/s1"])

        candidates, connections = make_service(FakeProvider({})).aggregate(
            [s1, s2], lambda doi: doi == "10.1/x"
        )

        assert set(candidates) == {"10.1/c"}
        assert connections["10.1/s2"].total == 1
        assert connections["10.1/s1"].total == 1

    def test_self_links_are_ignored(self):
        s1 = Publication(doi="10.1/s1", reference_dois=["10.1/s1"])
        candidates, connections = make_service(FakeProvider({})).aggregate([s1], never_excluded)
        assert candidates == {}
        assert connections["10.1/s1"].total == 0

    def test_edges_are_recorded_on_placeholders(self):
        s1 = Publication(doi="10.1/s1", reference_dois=["10.1/c"], citation_dois=["10.1/d"])
        candidates, _ = make_service(FakeProvider({})).aggregate([s1], never_excluded)

        assert candidates["10.1/c"].publication.citation_dois == ["10.1/s1"]
        assert candidates["10.1/d"].publication.reference_dois == ["10.1/s1"]

    def test_known_publications_are_reused(self):
        known = Publication(doi="10.1/c").hydrate({"title": "Known"})
        s1 = Publication(doi="10.1/s1", reference_dois=["10.1/c"])

        candidates, _ = make_service(FakeProvider({})).aggregate(
            [s1], never_excluded, known={"10.1/c": known}
        )

        assert candidates["10.1/c"].publication is known


class TestCompute:
    @pytest.mark.asyncio
    async def test_ranks_by_multiplicity_then_score_then_doi(self, records):
        service = make_service(FakeProvider(records))

        result = await service.compute(selected("10.1/s1", "10.1/s2"), never_excluded)

        assert result.dois[0] == "10.1/c"
        assert result.dois[1:] == ["10.1/d", "10.1/e"]
        assert result.total_suggestions == 3
        assert all(s.publication.was_fetched for s in result.suggestions)

    @pytest.mark.asyncio
    async def test_ordering_is_deterministic(self, records):
        first = await make_service(FakeProvider(records)).compute(
            selected("10.1/s1", "10.1/s2"), never_excluded
        )
        second = await make_service(FakeProvider(records)).compute(
            selected("10.1/s2", "10.1/s1"), never_excluded
        )
        assert first.dois == second.dois

    @pytest.mark.asyncio
    async def test_score_breaks_multiplicity_ties(self, records):
        scoring = ScoringService(ScoringConfig(boost_keywords=["OTHER"]))
        service = make_service(FakeProvider(records), scoring=scoring)

        result = await service.compute(selected("10.1/s1", "10.1/s2"), never_excluded)

        assert result.dois == ["10.1/c", "10.1/e", "10.1/d"]

    @pytest.mark.asyncio
    async def test_excluded_never_resurface(self, records):
        service = make_service(FakeProvider(records))
        result = await service.compute(
            selected("10.1/s1", "10.1/s2"), lambda doi: doi == "10.1/c"
        )
        assert "10.1/c" not in result.dois

    @pytest.mark.asyncio
    async def test_failed_candidates_are_kept_as_stubs(self, records):
        service = make_service(FakeProvider(records, missing={"10.1/d"}))

        result = await service.compute(selected("10.1/s1", "10.1/s2"), never_excluded)

        stub = result.get("10.1/d")
        assert stub is not None
        assert stub.publication.hydration_failed
        assert not stub.publication.was_fetched

    @pytest.mark.asyncio
    async def test_provider_unavailable_raises_aggregation_failure(self, records):
        service = make_service(FakeProvider(records, unavailable=True))
        with pytest.raises(AggregationFailure):
            await service.compute(selected("10.1/s1"), never_excluded)

    @pytest.mark.asyncio
    async def test_only_top_candidates_are_hydrated(self, records):
        provider = FakeProvider(records)
        service = make_service(provider, max_suggestions=1)

        result = await service.compute(selected("10.1/s1", "10.1/s2"), never_excluded)

        assert result.dois == ["10.1/c"]
        assert result.total_suggestions == 3
        assert "10.1/d" not in provider.fetched

    @pytest.mark.asyncio
    async def test_next_page_is_prefetched(self, records):
        provider = FakeProvider(records)
        service = make_service(provider, max_suggestions=1, prefetch=True)

        await service.compute(selected("10.1/s1", "10.1/s2"), never_excluded)
        await service.wait_for_prefetch()

        assert {"10.1/d", "10.1/e"} <= set(provider.fetched)

    @pytest.mark.asyncio
    async def test_next_compute_does_not_cancel_prefetch(self, records):
        provider = FakeProvider(records)
        service = make_service(provider, max_suggestions=1, prefetch=True)
        seeds = selected("10.1/s1", "10.1/s2")

        await service.compute(seeds, never_excluded)
        prefetch = next(iter(service._prefetch_tasks))
        await service.compute(seeds, never_excluded, max_suggestions=3)
        await asyncio.gather(prefetch, return_exceptions=True)

        assert not prefetch.cancelled()

    @pytest.mark.asyncio
    async def test_load_more_reuses_prefetched_records(self, records):
        provider = FakeProvider(records)
        service = make_service(provider, max_suggestions=1, prefetch=True)
        seeds = selected("10.1/s1", "10.1/s2")

        await service.compute(seeds, never_excluded)
        await service.wait_for_prefetch()
        result = await service.compute(seeds, never_excluded, max_suggestions=3)

        assert result.dois == ["10.1/c", "10.1/d", "10.1/e"]
        assert provider.fetched.count("10.1/d") == 1
        assert provider.fetched.count("10.1/e") == 1

    @pytest.mark.asyncio
    async def test_cancel_prefetch_stops_background_work(self, records):
        service = make_service(FakeProvider(records), max_suggestions=1, prefetch=True)

        await service.compute(selected("10.1/s1", "10.1/s2"), never_excluded)
        prefetch = next(iter(service._prefetch_tasks))
        service.cancel_prefetch()
        await asyncio.gather(prefetch, return_exceptions=True)

        assert prefetch.cancelled()
        assert not service._prefetch_tasks

    @pytest.mark.asyncio
    async def test_read_state_is_applied(self, records):
        service = make_service(FakeProvider(records))
        result = await service.compute(
            selected("10.1/s1", "10.1/s2"), never_excluded, read_dois={"10.1/d"}
        )
        assert result.get("10.1/d").publication.is_read
        assert not result.get("10.1/c").publication.is_read

    @pytest.mark.asyncio
    async def test_empty_selection(self):
        result = await make_service(FakeProvider({})).compute([], never_excluded)
        assert result.suggestions == []
        assert result.total_suggestions == 0


def test_rank_uses_given_scorer():
    service = make_service(FakeProvider({}))
    s1 = Publication(doi="10.1/s1", reference_dois=["10.1/a", "10.1/b"])
    candidates, _ = service.aggregate([s1], never_excluded)
    candidates["10.1/b"].publication.title = "Boosted"

    ranked = service.rank(
        list(candidates.values()),
        ScoringService(ScoringConfig(boost_keywords=["BOOSTED"])),
    )

    assert [s.doi for s in ranked] == ["10.1/b", "10.1/a"]
    assert ranked[0].score == 2
