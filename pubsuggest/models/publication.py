"""Publication model.

A Publication is identified by its normalized DOI. It starts as a
placeholder holding only the DOI and is hydrated with metadata from the
publication service. All score-relevant quantities (citations per year,
tag flags) are derived from stored fields on every access.
"""

import re
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field, field_validator

from pubsuggest.utils.exceptions import InvalidIdentifier
from pubsuggest.utils.text import (
    clean_container,
    clean_title,
    join_subtitle,
    split_authors,
    strip_orcids,
)

SURVEY_REFERENCE_COUNT_HIGH = 100
SURVEY_REFERENCE_COUNT_MIN = 50
HIGHLY_CITED_PER_YEAR = 10
UNNOTED_PER_YEAR = 1
NEW_PUBLICATION_YEARS = 2

DEFAULT_SURVEY_REGEX = re.compile(r"(survey|state|review|advances|future)", re.IGNORECASE)

# (attribute name, display name)
PUBLICATION_TAGS = [
    ("is_highly_cited", "Highly cited"),
    ("is_survey", "Literature survey"),
    ("is_new", "New"),
    ("is_unnoted", "Unnoted"),
]


def current_year() -> int:
    return datetime.now().year


def normalize_doi(doi: Any) -> str:
    """Normalize a DOI for use as a key.

    Args:
        doi: Raw DOI value

    Returns:
        Trimmed, lower-cased DOI

    Raises:
        InvalidIdentifier: If the value is not a non-empty string
    """
    if not isinstance(doi, str):
        raise InvalidIdentifier(f"DOI must be a string, got {type(doi).__name__}", doi)
    normalized = doi.strip().lower()
    if not normalized:
        raise InvalidIdentifier("DOI cannot be empty", doi)
    return normalized


def _parse_year(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _split_dois(value: Any) -> List[str]:
    """Accept '; '-separated strings or sequences of DOIs."""
    if not value:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(";")]
    return [str(part).strip() for part in value if part]


def _merge_dois(existing: List[str], incoming: Iterable[str]) -> List[str]:
    """Append unseen DOIs (case-insensitive) keeping existing order."""
    merged = list(existing)
    seen = set(merged)
    for doi in incoming:
        key = doi.strip().lower()
        if key and key not in seen:
            seen.add(key)
            merged.append(key)
    return merged


class Publication(BaseModel):
    """Bibliographic record keyed by DOI"""

    doi: str

    # Metadata
    title: str = ""
    author: Optional[str] = None
    year: Optional[int] = None
    container: Optional[str] = None
    volume: Optional[str] = None
    issue: Optional[str] = None
    page: Optional[str] = None
    abstract: Optional[str] = None

    # Citation graph
    citation_dois: List[str] = Field(default_factory=list)
    reference_dois: List[str] = Field(default_factory=list)
    too_many_citations: bool = False

    # Hydration and reading state
    was_fetched: bool = False
    hydration_failed: bool = False
    is_read: bool = False

    @field_validator("doi", mode="before")
    @classmethod
    def validate_doi(cls, v: Any) -> str:
        return normalize_doi(v)

    @classmethod
    def create(cls, doi: Any) -> "Publication":
        """Create an unhydrated publication.

        Raises:
            InvalidIdentifier: If the DOI is empty or not a string
        """
        return cls(doi=normalize_doi(doi))

    # ==================== Hydration ====================

    def hydrate(self, record: dict) -> "Publication":
        """Merge fetched metadata into this record.

        Safe to call repeatedly: DOI lists are merged without duplicates and
        existing entries keep their order.

        Args:
            record: Raw record from the publication service

        Returns:
            self, for chaining
        """
        title = record.get("title") or self.title or ""
        title = join_subtitle(title, record.get("subtitle"))
        self.title = clean_title(title)
        self.abstract = record.get("abstract", self.abstract)

        year = _parse_year(record.get("year"))
        if year is not None:
            self.year = year

        if record.get("author"):
            self.author = strip_orcids(str(record["author"]))

        if record.get("container"):
            self.container = clean_container(record["container"])
        for key in ("volume", "issue", "page"):
            if record.get(key) is not None:
                setattr(self, key, str(record[key]))

        self.reference_dois = _merge_dois(
            self.reference_dois, _split_dois(record.get("reference"))
        )
        self.citation_dois = _merge_dois(
            self.citation_dois, _split_dois(record.get("citation"))
        )
        self.too_many_citations = bool(record.get("tooManyCitations", False))

        self.was_fetched = True
        self.hydration_failed = False
        return self

    def mark_hydration_failed(self) -> None:
        """Keep this publication as a DOI-only stub."""
        if not self.was_fetched:
            self.hydration_failed = True

    # ==================== Derived quantities ====================

    @property
    def doi_url(self) -> str:
        return f"https://doi.org/{self.doi}"

    @property
    def citations_per_year(self) -> float:
        """Average citations per year since publication.

        Unknown or future years fall back to a denominator of 1.
        """
        age = current_year() - self.year if self.year is not None else 1
        return len(self.citation_dois) / max(1, age)

    @property
    def authors(self) -> List[str]:
        return split_authors(self.author)

    @property
    def author_short(self) -> Optional[str]:
        names = self.authors
        if not names:
            return None
        first = names[0].split(",")[0]
        if len(names) == 1:
            return first
        if len(names) == 2:
            return f"{first} and {names[1].split(',')[0]}"
        return f"{first} et al."

    def meta_string(self) -> str:
        parts = [self.title, self.author, self.year, self.container]
        return " ".join(str(part) for part in parts if part)

    def matches_meta_string(self, needle: str) -> bool:
        """Case-insensitive substring match over title, author, year, venue."""
        if not needle:
            return True
        return needle.lower() in self.meta_string().lower()

    def is_linked_to(self, doi: str) -> bool:
        return doi in self.citation_dois or doi in self.reference_dois

    # ==================== Tags ====================

    def survey_reason(self, keywords: Optional[Sequence[str]] = None) -> Optional[str]:
        """Explain why this publication counts as a survey, if it does.

        Args:
            keywords: Title keywords hinting at a survey. Defaults to the
                built-in list.
        """
        reference_count = len(self.reference_dois)
        if reference_count > SURVEY_REFERENCE_COUNT_HIGH:
            return f"more than {SURVEY_REFERENCE_COUNT_HIGH} references ({reference_count})"

        if reference_count < SURVEY_REFERENCE_COUNT_MIN:
            return None

        if keywords is None:
            regex = DEFAULT_SURVEY_REGEX
        elif keywords:
            regex = re.compile(
                "(" + "|".join(re.escape(k) for k in keywords if k) + ")", re.IGNORECASE
            )
        else:
            return None

        match = regex.search(self.title)
        if match:
            return (
                f"more than {SURVEY_REFERENCE_COUNT_MIN} references ({reference_count})"
                f' and "{match.group(0)}" in the title'
            )
        return None

    @property
    def is_survey(self) -> Optional[str]:
        return self.survey_reason()

    @property
    def is_highly_cited(self) -> Optional[str]:
        if self.citations_per_year > HIGHLY_CITED_PER_YEAR or self.too_many_citations:
            return f"more than {HIGHLY_CITED_PER_YEAR} citations per year"
        return None

    @property
    def is_new(self) -> Optional[str]:
        if self.year is None:
            return None
        if current_year() - self.year <= NEW_PUBLICATION_YEARS:
            return "published within this or the previous two calendar years"
        return None

    @property
    def is_unnoted(self) -> Optional[str]:
        if self.citations_per_year < UNNOTED_PER_YEAR and not self.too_many_citations:
            return f"less than {UNNOTED_PER_YEAR} citation per year"
        return None

    def tags(self) -> List[str]:
        """Names of tags currently set on this publication."""
        return [name for name, _ in PUBLICATION_TAGS if getattr(self, name)]
