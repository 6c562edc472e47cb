"""Data models for session state and suggestion results."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field

from pubsuggest.models.publication import Publication


class DoiState(str, Enum):
    """Lifecycle state of a DOI within a session.

    Held in a single mapping so a DOI cannot be in two sets at once.
    """

    UNQUEUED = "unqueued"
    QUEUED_FOR_SELECTION = "queued_for_selection"
    QUEUED_FOR_EXCLUSION = "queued_for_exclusion"
    SELECTED = "selected"
    EXCLUDED = "excluded"


class ConnectionCounts(BaseModel):
    """Links between a publication and the selected set"""

    citation_count: int = Field(0, ge=0)  # selected works this one cites
    reference_count: int = Field(0, ge=0)  # selected works citing this one

    @property
    def total(self) -> int:
        return self.citation_count + self.reference_count


class Suggestion(BaseModel):
    """A candidate publication discovered through the selected set"""

    publication: Publication
    citation_count: int = Field(0, ge=0)
    reference_count: int = Field(0, ge=0)
    source_dois: Set[str] = Field(default_factory=set)
    score: float = Field(0.0, ge=0.0)

    @property
    def doi(self) -> str:
        return self.publication.doi

    @property
    def multiplicity(self) -> int:
        """Number of distinct selected publications linked to this candidate."""
        return len(self.source_dois)

    @property
    def connections(self) -> ConnectionCounts:
        return ConnectionCounts(
            citation_count=self.citation_count, reference_count=self.reference_count
        )


class SuggestionResult(BaseModel):
    """Outcome of one aggregation pass"""

    suggestions: List[Suggestion] = Field(default_factory=list)
    total_suggestions: int = Field(0, ge=0)
    selected_connections: Dict[str, ConnectionCounts] = Field(default_factory=dict)
    generation: int = 0
    computed_at: datetime = Field(default_factory=datetime.now)

    @property
    def publications(self) -> List[Publication]:
        return [s.publication for s in self.suggestions]

    @property
    def dois(self) -> List[str]:
        return [s.doi for s in self.suggestions]

    def get(self, doi: str) -> Optional[Suggestion]:
        for suggestion in self.suggestions:
            if suggestion.doi == doi:
                return suggestion
        return None


class SessionSnapshot(BaseModel):
    """Read-only view of a session for rendering and export"""

    session_id: str
    selected: List[str] = Field(default_factory=list)
    excluded: List[str] = Field(default_factory=list)
    selected_queue: List[str] = Field(default_factory=list)
    excluded_queue: List[str] = Field(default_factory=list)
    suggested: List[str] = Field(default_factory=list)
    suggested_filtered: List[str] = Field(default_factory=list)
    boost_keywords: List[str] = Field(default_factory=list)
    has_active_filters: bool = False
    total_suggestions: int = 0
    is_stale: bool = False


class HydrationReport(BaseModel):
    """Outcome of hydrating a batch of publications"""

    requested: int = 0
    hydrated: int = 0
    failed: List[str] = Field(default_factory=list)
    stale_discarded: int = 0
    provider_unavailable: bool = False
    unavailable_error: Optional[str] = None
