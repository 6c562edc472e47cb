"""
Suggestion aggregation service.

Expands the selected set one hop along citation and reference edges:
1. Collect candidate DOIs from every selected publication
2. Merge multi-path discoveries per DOI (multiplicity = distinct sources)
3. Drop selected and excluded DOIs
4. Hydrate the top candidates concurrently (failures stay as stubs)
5. Rank by multiplicity, then score, then DOI
"""

import asyncio
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple

import structlog

from pubsuggest.models.config import SuggestionConfig
from pubsuggest.models.publication import Publication
from pubsuggest.models.session import ConnectionCounts, Suggestion, SuggestionResult
from pubsuggest.services.hydration_service import HydrationService
from pubsuggest.services.scoring_service import ScoringService
from pubsuggest.utils.exceptions import AggregationFailure

logger = structlog.get_logger()


class SuggestionService:
    """
    Compute ranked suggestions from the citation network of the selected set.
    """

    def __init__(
        self,
        hydration_service: HydrationService,
        scoring_service: Optional[ScoringService] = None,
        config: Optional[SuggestionConfig] = None,
    ):
        """
        Initialize suggestion service.

        Args:
            hydration_service: Hydrates selected and candidate publications
            scoring_service: Scores candidates for ranking
            config: Suggestion configuration
        """
        self.hydration_service = hydration_service
        self.scoring_service = scoring_service or ScoringService()
        self.config = config or SuggestionConfig()
        self._prefetch_tasks: Set[asyncio.Task] = set()
        self._prefetched: Dict[str, Publication] = {}

    # ==================== Graph expansion ====================

    def aggregate(
        self,
        selected: Sequence[Publication],
        is_excluded: Callable[[str], bool],
        known: Optional[Mapping[str, Publication]] = None,
    ) -> Tuple[Dict[str, Suggestion], Dict[str, ConnectionCounts]]:
        """
        Collect the one-hop frontier of the selected set.

        Args:
            selected: Selected publications with citation/reference lists
            is_excluded: Predicate for excluded DOIs
            known: Publications to reuse for candidate DOIs (e.g. the
                previous suggestions) instead of creating placeholders

        Returns:
            Tuple of (candidates by DOI, connection counts of selected DOIs)
        """
        known = known or {}
        selected_dois = {p.doi for p in selected}
        candidates: Dict[str, Suggestion] = {}
        selected_connections = {doi: ConnectionCounts() for doi in selected_dois}

        def visit(doi: str, source: Publication, cites_source: bool) -> None:
            doi = doi.strip().lower()
            if not doi or doi == source.doi or is_excluded(doi):
                return

            if doi in selected_dois:
                counts = selected_connections[doi]
                if cites_source:
                    counts.citation_count += 1
                else:
                    counts.reference_count += 1
                return

            suggestion = candidates.get(doi)
            if suggestion is None:
                publication = known.get(doi) or Publication(doi=doi)
                suggestion = Suggestion(publication=publication)
                candidates[doi] = suggestion

            # Record the edge on the placeholder so DOI filters work before hydration
            edges = (
                suggestion.publication.reference_dois
                if cites_source
                else suggestion.publication.citation_dois
            )
            if source.doi not in edges:
                edges.append(source.doi)

            if source.doi not in suggestion.source_dois:
                suggestion.source_dois.add(source.doi)
                if cites_source:
                    suggestion.citation_count += 1
                else:
                    suggestion.reference_count += 1

        for publication in selected:
            for doi in publication.citation_dois:
                visit(doi, publication, cites_source=True)
            for doi in publication.reference_dois:
                visit(doi, publication, cites_source=False)

        return candidates, selected_connections

    # ==================== Ranking ====================

    def rank(
        self,
        suggestions: Sequence[Suggestion],
        scoring_service: Optional[ScoringService] = None,
    ) -> List[Suggestion]:
        """
        Score and order suggestions.

        Order: multiplicity (desc), score (desc), DOI (asc).

        Args:
            suggestions: Suggestions to rank
            scoring_service: Scorer to use instead of the configured one

        Returns:
            New list of suggestions with scores set
        """
        scorer = scoring_service or self.scoring_service
        for suggestion in suggestions:
            suggestion.score = scorer.score(
                suggestion.publication, suggestion.connections
            ).total_score
        return sorted(
            suggestions, key=lambda s: (-s.multiplicity, -s.score, s.doi)
        )

    @staticmethod
    def _preliminary_order(candidates: Dict[str, Suggestion]) -> List[Suggestion]:
        # Titles are not loaded yet, so only graph signals are available
        return sorted(
            candidates.values(),
            key=lambda s: (
                -s.multiplicity,
                -(s.citation_count + s.reference_count),
                s.doi,
            ),
        )

    # ==================== Computation ====================

    async def compute(
        self,
        selected: Sequence[Publication],
        is_excluded: Callable[[str], bool],
        max_suggestions: Optional[int] = None,
        known: Optional[Mapping[str, Publication]] = None,
        read_dois: Optional[Set[str]] = None,
        generation: int = 0,
    ) -> SuggestionResult:
        """
        Compute suggestions for the selected set.

        Selected publications that are still placeholders are hydrated
        first, then the top candidates.

        Args:
            selected: Selected publications
            is_excluded: Predicate for excluded DOIs
            max_suggestions: Number of candidates to hydrate and return
            known: Publications to reuse for candidate DOIs
            read_dois: DOIs the user has already looked at
            generation: Aggregation generation recorded on the result

        Returns:
            SuggestionResult with ranked suggestions

        Raises:
            AggregationFailure: If the fetch layer is unavailable
        """
        max_suggestions = max_suggestions or self.config.max_suggestions
        read_dois = read_dois or set()
        # Records of an earlier prefetch are reused, finished or not
        known = {**self._prefetched, **(known or {})}
        self._prefetched = {}

        logger.info(
            "suggestion_computation_started",
            selected=len(selected),
            max_suggestions=max_suggestions,
            generation=generation,
        )

        selected_report = await self.hydration_service.hydrate_many(selected)
        if selected_report.provider_unavailable:
            raise AggregationFailure(
                f"Publication service unavailable: {selected_report.unavailable_error}"
            )

        candidates, selected_connections = self.aggregate(selected, is_excluded, known)
        ordered = self._preliminary_order(candidates)
        top = ordered[:max_suggestions]
        preload = ordered[
            max_suggestions : max_suggestions + self.config.load_more_increment
        ]

        logger.info(
            "suggestion_candidates_identified",
            total=len(candidates),
            hydrating=len(top),
        )

        report = await self.hydration_service.hydrate_many(
            [s.publication for s in top]
        )
        if report.provider_unavailable:
            raise AggregationFailure(
                f"Publication service unavailable: {report.unavailable_error}"
            )

        ranked = self.rank(top)
        for suggestion in ranked:
            suggestion.publication.is_read = suggestion.doi in read_dois

        if self.config.prefetch_next_page and preload:
            self._schedule_prefetch([s.publication for s in preload])

        logger.info(
            "suggestions_computed",
            total=len(candidates),
            returned=len(ranked),
            stubs=len(report.failed),
            generation=generation,
        )

        return SuggestionResult(
            suggestions=ranked,
            total_suggestions=len(candidates),
            selected_connections=selected_connections,
            generation=generation,
        )

    # ==================== Prefetch ====================

    def _schedule_prefetch(self, publications: List[Publication]) -> None:
        self._prefetched = {p.doi: p for p in publications}
        task = asyncio.ensure_future(self.hydration_service.hydrate_many(publications))
        self._prefetch_tasks.add(task)
        task.add_done_callback(self._prefetch_done)
        logger.debug("suggestion_prefetch_scheduled", count=len(publications))

    def _prefetch_done(self, task: asyncio.Task) -> None:
        self._prefetch_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("suggestion_prefetch_failed", error=str(error))

    def cancel_prefetch(self) -> None:
        """Cancel background prefetching of the next suggestion page."""
        for task in list(self._prefetch_tasks):
            task.cancel()
        self._prefetch_tasks.clear()
        self._prefetched = {}

    async def wait_for_prefetch(self) -> None:
        if self._prefetch_tasks:
            await asyncio.gather(*self._prefetch_tasks, return_exceptions=True)
