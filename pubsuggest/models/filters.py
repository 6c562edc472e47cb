"""Filter predicate over publications.

A Filter narrows the selected and suggested views without mutating the
underlying publication lists. Each criterion is vacuously true when unset;
set criteria are combined with AND, values within a criterion with OR.
"""

from typing import List, Optional, Sequence, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field

from pubsuggest.models.publication import Publication
from pubsuggest.utils.text import name_to_id

logger = structlog.get_logger()

MIN_YEAR = 1000
MAX_YEAR = 10000

YearBound = Optional[Union[int, float, str]]


def _year_bound(value: YearBound) -> Optional[float]:
    """Return the numeric bound if it is active, else None.

    A bound is active only when numeric and within [MIN_YEAR, MAX_YEAR).
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    if numeric != numeric:  # NaN
        return None
    if MIN_YEAR <= numeric < MAX_YEAR:
        return numeric
    return None


class Filter(BaseModel):
    """Session-scoped publication filter"""

    model_config = ConfigDict(validate_assignment=False)

    string: str = ""
    year_start: YearBound = None
    year_end: YearBound = None
    tags: List[str] = Field(default_factory=list)
    dois: List[str] = Field(default_factory=list)
    authors: List[str] = Field(default_factory=list)

    is_active: bool = True
    apply_to_selected: bool = True
    apply_to_suggested: bool = True

    # ==================== Criteria ====================

    def matches_string(self, publication: Publication) -> bool:
        if not self.string:
            return True
        return publication.matches_meta_string(self.string)

    def is_year_active(self) -> bool:
        return (
            _year_bound(self.year_start) is not None
            or _year_bound(self.year_end) is not None
        )

    def matches_year(self, publication: Publication) -> bool:
        start = _year_bound(self.year_start)
        end = _year_bound(self.year_end)
        if start is None and end is None:
            return True
        if publication.year is None:
            return False
        if start is not None and publication.year < start:
            return False
        if end is not None and publication.year > end:
            return False
        return True

    def matches_tag(self, publication: Publication) -> bool:
        if not self.tags:
            return True
        return any(bool(getattr(publication, tag, None)) for tag in self.tags)

    def matches_dois(self, publication: Publication) -> bool:
        if not self.dois:
            return True
        return any(
            publication.doi == doi or publication.is_linked_to(doi) for doi in self.dois
        )

    def matches_authors(self, publication: Publication) -> bool:
        if not self.authors:
            return True
        author_ids = {name_to_id(name) for name in publication.authors}
        return any(author_id in author_ids for author_id in self.authors)

    def matches(self, publication: Publication) -> bool:
        """Check a publication against all criteria.

        Returns:
            True if the filter is inactive or every criterion matches
        """
        if not self.is_active:
            return True
        return (
            self.matches_string(publication)
            and self.matches_tag(publication)
            and self.matches_year(publication)
            and self.matches_dois(publication)
            and self.matches_authors(publication)
        )

    def has_active_filters(self) -> bool:
        """Whether the filter currently restricts anything."""
        has_criterion = bool(
            self.string
            or self.tags
            or self.is_year_active()
            or self.dois
            or self.authors
        )
        return (
            self.is_active
            and has_criterion
            and (self.apply_to_selected or self.apply_to_suggested)
        )

    # ==================== Views ====================

    def apply(
        self, publications: Sequence[Publication], scope_enabled: bool
    ) -> List[Publication]:
        """Order publications so that matches come first.

        Non-matching publications are kept after the matches, so turning the
        filter off restores the full list without recomputation.

        Args:
            publications: Publications in their ranked order
            scope_enabled: Whether the filter applies to this list

        Returns:
            New list; the input is not modified
        """
        if not scope_enabled or not self.has_active_filters():
            return list(publications)
        matching = [p for p in publications if self.matches(p)]
        rest = [p for p in publications if not self.matches(p)]
        return matching + rest

    def select(
        self, publications: Sequence[Publication], scope_enabled: bool
    ) -> List[Publication]:
        """Return only the matching publications (all when not applicable)."""
        if not scope_enabled or not self.has_active_filters():
            return list(publications)
        return [p for p in publications if self.matches(p)]

    def count(self, publications: Sequence[Publication], matching: bool = True) -> int:
        if not self.has_active_filters():
            return 0
        return sum(1 for p in publications if self.matches(p) == matching)

    # ==================== Mutation ====================

    def add_doi(self, doi: str) -> None:
        doi = doi.strip().lower()
        if doi and doi not in self.dois:
            self.dois.append(doi)

    def remove_doi(self, doi: str) -> None:
        doi = doi.strip().lower()
        self.dois = [d for d in self.dois if d != doi]
        logger.debug("filter_doi_removed", doi=doi, remaining=len(self.dois))

    def toggle_doi(self, doi: str) -> None:
        if doi.strip().lower() in self.dois:
            self.remove_doi(doi)
        else:
            self.add_doi(doi)

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def remove_tag(self, tag: str) -> None:
        self.tags = [t for t in self.tags if t != tag]

    def toggle_tag(self, tag: str) -> None:
        if tag in self.tags:
            self.remove_tag(tag)
        else:
            self.add_tag(tag)

    def add_author(self, author: str) -> None:
        author_id = name_to_id(author)
        if author_id and author_id not in self.authors:
            self.authors.append(author_id)

    def remove_author(self, author: str) -> None:
        author_id = name_to_id(author)
        self.authors = [a for a in self.authors if a != author_id]

    def toggle_author(self, author: str) -> None:
        if name_to_id(author) in self.authors:
            self.remove_author(author)
        else:
            self.add_author(author)
