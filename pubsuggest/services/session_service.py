"""
Session and queue controller.

Owns the per-DOI state of one user session, the batch queues, the filter
and the current suggestion result. Synchronous methods mutate state
immediately and contain no awaits; the async methods combine a mutation
with a suggestion refresh.
"""

import asyncio
import uuid
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

import structlog

from pubsuggest.models.filters import Filter
from pubsuggest.models.publication import Publication, normalize_doi
from pubsuggest.models.session import (
    DoiState,
    SessionSnapshot,
    SuggestionResult,
)
from pubsuggest.services.event_sink import EventSink, StructlogEventSink
from pubsuggest.services.scoring_service import (
    normalize_boost_keyword_string,
    parse_unique_boost_keywords,
)
from pubsuggest.services.suggestion_service import SuggestionService
from pubsuggest.utils.exceptions import (
    AggregationFailure,
    InvalidIdentifier,
    InvariantViolation,
)

logger = structlog.get_logger()

DoiInput = Union[str, Iterable[Any]]


def _as_list(dois: DoiInput) -> List[Any]:
    if isinstance(dois, str):
        return [dois]
    if not isinstance(dois, Iterable):
        return []
    return list(dois)


def _valid_dois(dois: DoiInput) -> List[str]:
    """Normalize DOIs, silently dropping invalid entries and duplicates."""
    result: List[str] = []
    for raw in _as_list(dois):
        try:
            doi = normalize_doi(raw)
        except InvalidIdentifier:
            continue
        if doi not in result:
            result.append(doi)
    return result


class SessionService:
    """
    Selection, exclusion and queue state of a single user session.
    """

    def __init__(
        self,
        suggestion_service: SuggestionService,
        event_sink: Optional[EventSink] = None,
        session_id: Optional[str] = None,
    ):
        """
        Initialize session.

        Args:
            suggestion_service: Aggregator used to refresh suggestions
            event_sink: Receiver for session events
            session_id: Identifier bound to log entries
        """
        self.suggestion_service = suggestion_service
        self.event_sink = event_sink or StructlogEventSink()
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.logger = logger.bind(session_id=self.session_id)

        self._generation = 0
        self._inflight: Optional[asyncio.Task] = None
        self._reset_state()

        self.logger.info("session_initialized")

    def _reset_state(self) -> None:
        self._states: Dict[str, DoiState] = {}
        self._publications: Dict[str, Publication] = {}
        self.filter = Filter()
        self.suggestion: Optional[SuggestionResult] = None
        self.max_suggestions = self.suggestion_service.config.max_suggestions
        self.boost_keyword_string = ""
        self.read_dois: Set[str] = set()
        self.is_stale = False
        self.last_error: Optional[AggregationFailure] = None

    # ==================== State views ====================

    def state_of(self, doi: str) -> DoiState:
        try:
            return self._states.get(normalize_doi(doi), DoiState.UNQUEUED)
        except InvalidIdentifier:
            return DoiState.UNQUEUED

    def _dois_in(self, state: DoiState) -> List[str]:
        return [doi for doi, s in self._states.items() if s is state]

    @property
    def selected(self) -> List[str]:
        return self._dois_in(DoiState.SELECTED)

    @property
    def excluded(self) -> List[str]:
        return self._dois_in(DoiState.EXCLUDED)

    @property
    def selected_queue(self) -> List[str]:
        return self._dois_in(DoiState.QUEUED_FOR_SELECTION)

    @property
    def excluded_queue(self) -> List[str]:
        return self._dois_in(DoiState.QUEUED_FOR_EXCLUSION)

    def is_selected(self, doi: str) -> bool:
        return self.state_of(doi) is DoiState.SELECTED

    def is_excluded(self, doi: str) -> bool:
        return self.state_of(doi) is DoiState.EXCLUDED

    def is_queued_for_selection(self, doi: str) -> bool:
        return self.state_of(doi) is DoiState.QUEUED_FOR_SELECTION

    def is_queued_for_exclusion(self, doi: str) -> bool:
        return self.state_of(doi) is DoiState.QUEUED_FOR_EXCLUSION

    @property
    def is_updatable(self) -> bool:
        """Whether there is anything queued to apply."""
        return any(
            s in (DoiState.QUEUED_FOR_SELECTION, DoiState.QUEUED_FOR_EXCLUSION)
            for s in self._states.values()
        )

    @property
    def is_empty(self) -> bool:
        return not self._states

    def get_publication(self, doi: str) -> Optional[Publication]:
        """Look up a selected or suggested publication."""
        try:
            doi = normalize_doi(doi)
        except InvalidIdentifier:
            return None
        if doi in self._publications:
            return self._publications[doi]
        if self.suggestion is not None:
            suggestion = self.suggestion.get(doi)
            if suggestion is not None:
                return suggestion.publication
        return None

    # ==================== Publication views ====================

    @property
    def selected_publications(self) -> List[Publication]:
        """Selected publications in selection order."""
        return [self._publications[doi] for doi in self.selected]

    @property
    def suggested_publications(self) -> List[Publication]:
        """Ranked suggestions, unfiltered."""
        return self.suggestion.publications if self.suggestion else []

    def ranked_selected_publications(self) -> List[Publication]:
        """Selected publications ordered by score."""
        connections = self.suggestion.selected_connections if self.suggestion else {}
        return self.suggestion_service.scoring_service.sort_publications(
            self.selected_publications, connections, is_selected=True
        )

    @property
    def selected_filtered(self) -> List[Publication]:
        return self.filter.select(
            self.ranked_selected_publications(), self.filter.apply_to_selected
        )

    @property
    def suggested_filtered(self) -> List[Publication]:
        return self.filter.select(
            self.suggested_publications, self.filter.apply_to_suggested
        )

    def suggested_with_matches_first(self) -> List[Publication]:
        """All suggestions, filter matches first."""
        return self.filter.apply(
            self.suggested_publications, self.filter.apply_to_suggested
        )

    @property
    def unread_suggestions_count(self) -> int:
        return sum(1 for p in self.suggested_filtered if not p.is_read)

    def year_range(self) -> Tuple[Optional[int], Optional[int]]:
        """Min and max year over selected and filtered suggested publications."""
        years = [
            p.year
            for p in self.selected_publications + self.suggested_filtered
            if p.year is not None
        ]
        if not years:
            return None, None
        return min(years), max(years)

    # ==================== Selection ====================

    def _publication_for(self, doi: str) -> Publication:
        existing = self.get_publication(doi)
        return existing if existing is not None else Publication.create(doi)

    def add_publications_to_selection(self, dois: DoiInput) -> List[str]:
        """
        Add DOIs to the selected set.

        Invalid entries (None, empty, whitespace, non-strings) are dropped
        without error. Excluded or queued DOIs move to selected.

        Args:
            dois: DOI or sequence of DOIs, e.g. from an identifier import

        Returns:
            DOIs newly selected, in input order
        """
        added: List[str] = []
        for doi in _valid_dois(dois):
            if self._states.get(doi) is DoiState.SELECTED:
                continue
            self._publications[doi] = self._publication_for(doi)
            self._states.pop(doi, None)
            self._states[doi] = DoiState.SELECTED
            added.append(doi)

        if added:
            self.logger.info(
                "publications_selected", count=len(added), total=len(self.selected)
            )
            self.event_sink.emit(
                "publications_selected", dois=added, selected_count=len(self.selected)
            )
        return added

    def remove_from_selection(self, dois: DoiInput) -> List[str]:
        """Return selected DOIs to the neutral state."""
        removed = [d for d in _valid_dois(dois) if self._states.get(d) is DoiState.SELECTED]
        for doi in removed:
            del self._states[doi]
            self._publications.pop(doi, None)
        if removed:
            self.event_sink.emit("publications_unselected", dois=removed)
        return removed

    def exclude_publications(self, dois: DoiInput) -> List[str]:
        """Move DOIs to the excluded set directly, leaving any selection."""
        excluded: List[str] = []
        for doi in _valid_dois(dois):
            if self._states.get(doi) is DoiState.EXCLUDED:
                continue
            self._publications.pop(doi, None)
            self._states.pop(doi, None)
            self._states[doi] = DoiState.EXCLUDED
            excluded.append(doi)
        if excluded:
            self.event_sink.emit("publications_excluded", dois=excluded)
        return excluded

    def remove_from_excluded(self, dois: DoiInput) -> List[str]:
        """Return excluded DOIs to the neutral state."""
        removed = [d for d in _valid_dois(dois) if self._states.get(d) is DoiState.EXCLUDED]
        for doi in removed:
            del self._states[doi]
        if removed:
            self.event_sink.emit("publications_unexcluded", dois=removed)
        return removed

    # ==================== Queues ====================

    def queue_for_selection(self, dois: DoiInput) -> List[str]:
        """
        Mark DOIs for batch selection.

        Clears any pending exclusion of the same DOIs. Only neutral or
        queued DOIs can be queued; selected and excluded DOIs are skipped.

        Returns:
            DOIs newly queued
        """
        queued: List[str] = []
        for doi in _valid_dois(dois):
            state = self._states.get(doi)
            if state in (
                DoiState.SELECTED,
                DoiState.EXCLUDED,
                DoiState.QUEUED_FOR_SELECTION,
            ):
                continue
            self._states[doi] = DoiState.QUEUED_FOR_SELECTION
            queued.append(doi)
        return queued

    def queue_for_exclusion(self, dois: DoiInput) -> List[str]:
        """
        Mark DOIs for batch exclusion.

        Clears any pending selection of the same DOIs. Only neutral or
        queued DOIs can be queued; selected and excluded DOIs are skipped.

        Returns:
            DOIs newly queued
        """
        queued: List[str] = []
        for doi in _valid_dois(dois):
            state = self._states.get(doi)
            if state in (
                DoiState.SELECTED,
                DoiState.EXCLUDED,
                DoiState.QUEUED_FOR_EXCLUSION,
            ):
                continue
            self._states[doi] = DoiState.QUEUED_FOR_EXCLUSION
            queued.append(doi)
        return queued

    def remove_from_queues(self, doi: str) -> None:
        try:
            doi = normalize_doi(doi)
        except InvalidIdentifier:
            return
        if self._states.get(doi) in (
            DoiState.QUEUED_FOR_SELECTION,
            DoiState.QUEUED_FOR_EXCLUSION,
        ):
            del self._states[doi]
            self.logger.debug("removed_from_queues", doi=doi)

    def clear(self) -> None:
        """Empty both queues; selected and excluded DOIs are untouched."""
        self._states = {
            doi: state
            for doi, state in self._states.items()
            if state in (DoiState.SELECTED, DoiState.EXCLUDED)
        }
        self.logger.debug("queues_cleared")

    def drain_queues(self) -> Tuple[List[str], List[str]]:
        """
        Move queued DOIs into their target sets.

        The new state is built aside and swapped in with one assignment, so
        no reader can observe a partially applied batch.

        Returns:
            Tuple of (newly selected DOIs, newly excluded DOIs)
        """
        to_select = self.selected_queue
        to_exclude = self.excluded_queue
        if not to_select and not to_exclude:
            return [], []

        states = {
            doi: state
            for doi, state in self._states.items()
            if state not in (DoiState.QUEUED_FOR_SELECTION, DoiState.QUEUED_FOR_EXCLUSION)
        }
        for doi in to_exclude:
            states[doi] = DoiState.EXCLUDED
        for doi in to_select:
            states[doi] = DoiState.SELECTED

        publications = {
            doi: publication
            for doi, publication in self._publications.items()
            if states.get(doi) is DoiState.SELECTED
        }
        for doi in to_select:
            publications[doi] = self._publication_for(doi)

        self._states, self._publications = states, publications

        self.logger.info(
            "queues_applied", selected=len(to_select), excluded=len(to_exclude)
        )
        self.event_sink.emit("queues_applied", selected=to_select, excluded=to_exclude)
        return to_select, to_exclude

    # ==================== Restore / reset ====================

    def restore(self, selected: DoiInput, excluded: DoiInput = ()) -> None:
        """
        Replace the session state, e.g. from a saved session.

        A DOI listed as both selected and excluded stays excluded.
        """
        selected_dois = _valid_dois(selected)
        excluded_dois = _valid_dois(excluded)
        conflicts = [doi for doi in selected_dois if doi in excluded_dois]
        if conflicts:
            violation = InvariantViolation(
                "DOIs listed as both selected and excluded; keeping them excluded",
                conflicts,
            )
            self.logger.warning("invariant_violation", error=str(violation), dois=conflicts)
            self.event_sink.emit("invariant_violation", dois=conflicts)

        self._states = {}
        self._publications = {}
        self.suggestion = None
        self.is_stale = False
        for doi in excluded_dois:
            self._states[doi] = DoiState.EXCLUDED
        for doi in selected_dois:
            if doi not in self._states:
                self._states[doi] = DoiState.SELECTED
                self._publications[doi] = Publication.create(doi)

        self.event_sink.emit(
            "session_restored",
            selected_count=len(self.selected),
            excluded_count=len(self.excluded),
        )

    def reset(self) -> None:
        """Return to an empty session."""
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self.suggestion_service.cancel_prefetch()
        self._reset_state()
        self.event_sink.emit("session_reset")

    def verify_invariants(self) -> None:
        """
        Check that the session's containers agree.

        Raises:
            InvariantViolation: If selected records and states disagree, or
                suggestions contain selected or excluded DOIs
        """
        selected = set(self.selected)
        mismatched = sorted(selected.symmetric_difference(self._publications))
        if mismatched:
            raise InvariantViolation("Selected records out of sync", mismatched)

        if self.suggestion is not None:
            leaked = [
                doi
                for doi in self.suggestion.dois
                if self._states.get(doi) in (DoiState.SELECTED, DoiState.EXCLUDED)
            ]
            if leaked:
                raise InvariantViolation("Suggestions contain decided DOIs", leaked)

    # ==================== Reading state ====================

    def mark_read(self, doi: str) -> None:
        publication = self.get_publication(doi)
        if publication is None:
            return
        publication.is_read = True
        self.read_dois.add(publication.doi)

    # ==================== Scoring ====================

    @property
    def boost_keywords(self) -> List[str]:
        return parse_unique_boost_keywords(self.boost_keyword_string)

    def set_boost_keywords(self, boost_keyword_string: str) -> None:
        """Set title boost keywords and re-rank without refetching."""
        self.boost_keyword_string = normalize_boost_keyword_string(boost_keyword_string)
        self.suggestion_service.scoring_service = (
            self.suggestion_service.scoring_service.with_boost_keywords(self.boost_keywords)
        )
        self.update_scores()

    def update_scores(self) -> None:
        if self.suggestion is None:
            return
        self.suggestion.suggestions = self.suggestion_service.rank(
            self.suggestion.suggestions
        )
        self.logger.debug("suggestion_scores_updated", keywords=self.boost_keywords)

    # ==================== Suggestions ====================

    async def refresh_suggestions(self) -> Optional[SuggestionResult]:
        """
        Recompute suggestions for the current selection.

        A newer call supersedes one still in flight; the superseded caller
        receives the suggestions current at that moment.

        Returns:
            The current suggestion result

        Raises:
            AggregationFailure: If the fetch layer is unavailable; the
                previous suggestions are kept and marked stale
        """
        self._generation += 1
        generation = self._generation

        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
            self.logger.debug("aggregation_superseded", generation=generation - 1)

        task = asyncio.ensure_future(self._aggregate(generation))
        self._inflight = task
        try:
            return await task
        except asyncio.CancelledError:
            if task.cancelled() and generation != self._generation:
                return self.suggestion
            raise

    async def _aggregate(self, generation: int) -> Optional[SuggestionResult]:
        known = (
            {s.doi: s.publication for s in self.suggestion.suggestions}
            if self.suggestion
            else {}
        )
        try:
            result = await self.suggestion_service.compute(
                self.selected_publications,
                self.is_excluded,
                max_suggestions=self.max_suggestions,
                known=known,
                read_dois=self.read_dois,
                generation=generation,
            )
        except AggregationFailure as e:
            if generation == self._generation:
                self.is_stale = True
                self.last_error = e
                self.logger.error("aggregation_failed", error=str(e))
                self.event_sink.emit("aggregation_failed", error=str(e))
            raise

        if generation != self._generation:
            return self.suggestion

        # Drop candidates whose state changed while hydration was in flight
        result.suggestions = [
            s
            for s in result.suggestions
            if self._states.get(s.doi) not in (DoiState.SELECTED, DoiState.EXCLUDED)
        ]
        self.suggestion = result
        self.is_stale = False
        self.last_error = None
        self.event_sink.emit(
            "suggestions_updated",
            selected_count=len(self.selected),
            suggestion_count=len(result.suggestions),
            total_suggestions=result.total_suggestions,
        )
        return result

    async def apply_queue(self) -> Optional[SuggestionResult]:
        """Apply queued selections and exclusions, then refresh suggestions."""
        self.drain_queues()
        return await self.refresh_suggestions()

    async def select(self, dois: DoiInput) -> Optional[SuggestionResult]:
        """Add DOIs to the selection and refresh suggestions."""
        self.add_publications_to_selection(dois)
        return await self.refresh_suggestions()

    async def exclude(self, dois: DoiInput) -> Optional[SuggestionResult]:
        """Exclude DOIs and refresh suggestions."""
        self.exclude_publications(dois)
        return await self.refresh_suggestions()

    async def unselect(self, dois: DoiInput) -> Optional[SuggestionResult]:
        """Remove DOIs from the selection and refresh suggestions."""
        self.remove_from_selection(dois)
        return await self.refresh_suggestions()

    async def load_more_suggestions(self) -> Optional[SuggestionResult]:
        """Raise the suggestion limit by one page and refresh."""
        self.max_suggestions += self.suggestion_service.config.load_more_increment
        return await self.refresh_suggestions()

    # ==================== Snapshot ====================

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.session_id,
            selected=self.selected,
            excluded=self.excluded,
            selected_queue=self.selected_queue,
            excluded_queue=self.excluded_queue,
            suggested=[p.doi for p in self.suggested_publications],
            suggested_filtered=[p.doi for p in self.suggested_filtered],
            boost_keywords=self.boost_keywords,
            has_active_filters=self.filter.has_active_filters(),
            total_suggestions=self.suggestion.total_suggestions if self.suggestion else 0,
            is_stale=self.is_stale,
        )
