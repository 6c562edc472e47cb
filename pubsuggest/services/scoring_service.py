"""
Publication scoring service.

Score = connection strength to the selected set (plus a weighted
citations-per-year term), multiplied by independent boost factors:
- Boost keywords matched in the title
- Researcher is first author
- Recently published
- Survey detection

Scores are recomputed from stored publication state on every call, so
enabling or disabling a boost can never be applied twice.
"""

import math
import re
from typing import Iterable, List, Optional, Sequence

import structlog

from pubsuggest.models.publication import Publication
from pubsuggest.models.scoring import KeywordMatch, PublicationScore, ScoringConfig
from pubsuggest.models.session import ConnectionCounts
from pubsuggest.utils.text import name_to_id

logger = structlog.get_logger()


def normalize_boost_keyword_string(boost_keyword_string: str) -> str:
    """Normalise spacing around separators and upper-case the keywords.

    Examples:
        >>> normalize_boost_keyword_string("graph ,network| net")
        'GRAPH, NETWORK|NET'
    """
    text = re.sub(r"\s*,\s*", ", ", boost_keyword_string)
    text = re.sub(r"\s*\|\s*", "|", text)
    return text.upper()


def parse_unique_boost_keywords(boost_keyword_string: str) -> List[str]:
    """Split a comma-separated keyword string into unique keywords.

    Order of first appearance is kept; empty entries are dropped.
    """
    keywords: List[str] = []
    for keyword in normalize_boost_keyword_string(boost_keyword_string).split(","):
        keyword = keyword.strip()
        if keyword and keyword not in keywords:
            keywords.append(keyword)
    return keywords


def find_keyword_matches(title: str, boost_keywords: Iterable[str]) -> List[KeywordMatch]:
    """Find boost keyword matches in a title.

    Each keyword may list alternatives separated by '|'; at most one
    alternative per keyword is counted, and matches never overlap.

    Args:
        title: Title to search
        boost_keywords: Upper-case keywords

    Returns:
        Matches sorted by position
    """
    matches: List[KeywordMatch] = []
    upper_title = title.upper()

    for keyword in boost_keywords:
        if not keyword:
            continue
        for alternative in keyword.split("|"):
            alternative = alternative.strip()
            if not alternative:
                continue
            index = upper_title.find(alternative)
            if index < 0:
                continue
            overlaps = any(
                index < m.position + m.length and index + len(alternative) > m.position
                for m in matches
            )
            if not overlaps:
                matches.append(
                    KeywordMatch(
                        keyword=keyword,
                        position=index,
                        length=len(alternative),
                        text=title[index : index + len(alternative)],
                    )
                )
                break

    return sorted(matches, key=lambda m: m.position)


class ScoringService:
    """
    Compute comparable relevance scores for publications.

    Uses a ScoringConfig for boost toggles and factors.
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        """
        Initialize scoring service.

        Args:
            config: Scoring configuration
        """
        self.config = config or ScoringConfig()
        self._researcher_id = (
            name_to_id(self.config.researcher_name) if self.config.researcher_name else None
        )

        logger.debug(
            "scoring_service_initialized",
            is_boost=self.config.is_boost,
            boost_keywords=len(self.config.boost_keywords),
            first_author_boost=self.config.first_author_boost_enabled,
            new_publication_boost=self.config.new_publication_boost_enabled,
            survey_boost=self.config.survey_boost_enabled,
        )

    def with_boost_keywords(self, boost_keywords: Sequence[str]) -> "ScoringService":
        """Return a scorer with the same config but different keywords."""
        return ScoringService(
            self.config.model_copy(update={"boost_keywords": list(boost_keywords)})
        )

    def keyword_matches(self, publication: Publication) -> List[KeywordMatch]:
        return find_keyword_matches(publication.title, self.config.boost_keywords)

    def _keyword_factor(self, match_count: int) -> float:
        if not self.config.is_boost or match_count == 0:
            return 1.0
        return self.config.boost_multiplier**match_count

    def _first_author_factor(self, publication: Publication) -> float:
        if not self.config.first_author_boost_enabled or not self._researcher_id:
            return 1.0
        authors = publication.authors
        if authors and name_to_id(authors[0]) == self._researcher_id:
            return self.config.first_author_boost
        return 1.0

    def _new_publication_factor(self, publication: Publication) -> float:
        if self.config.new_publication_boost_enabled and publication.is_new:
            return self.config.new_publication_boost
        return 1.0

    def _survey_factor(self, publication: Publication) -> float:
        if not self.config.survey_boost_enabled:
            return 1.0
        if publication.survey_reason(self.config.survey_keywords):
            return self.config.survey_boost
        return 1.0

    def score(
        self,
        publication: Publication,
        connections: Optional[ConnectionCounts] = None,
        is_selected: bool = False,
    ) -> PublicationScore:
        """
        Calculate the score for a publication.

        Args:
            publication: Publication to score
            connections: Links to the selected set found during aggregation
            is_selected: Whether the publication itself is selected

        Returns:
            PublicationScore with breakdown; total is finite and non-negative
        """
        connections = connections or ConnectionCounts()
        citations_per_year = publication.citations_per_year
        connection_score = (
            connections.total
            + (1 if is_selected else 0)
            + self.config.citations_per_year_weight * citations_per_year
        )

        matches = self.keyword_matches(publication)
        keyword_factor = self._keyword_factor(len(matches))
        first_author_factor = self._first_author_factor(publication)
        new_factor = self._new_publication_factor(publication)
        survey_factor = self._survey_factor(publication)

        total = (
            connection_score * keyword_factor * first_author_factor * new_factor * survey_factor
        )
        if not math.isfinite(total) or total < 0:
            logger.warning("non_finite_score_clamped", doi=publication.doi, score=total)
            total = 0.0

        return PublicationScore(
            doi=publication.doi,
            connection_score=connection_score,
            citations_per_year=citations_per_year,
            keyword_factor=keyword_factor,
            first_author_factor=first_author_factor,
            new_publication_factor=new_factor,
            survey_factor=survey_factor,
            keyword_matches=matches,
            total_score=total,
        )

    def sort_publications(
        self,
        publications: Sequence[Publication],
        connections: Optional[dict] = None,
        is_selected: bool = False,
    ) -> List[Publication]:
        """Sort publications by score, newer first on ties.

        Args:
            publications: Publications to sort
            connections: Optional mapping DOI -> ConnectionCounts
            is_selected: Whether these are selected publications

        Returns:
            New sorted list
        """
        connections = connections or {}

        def sort_key(publication: Publication) -> tuple:
            total = self.score(
                publication, connections.get(publication.doi), is_selected
            ).total_score
            return (-total, -(publication.year or 0), publication.doi)

        return sorted(publications, key=sort_key)
