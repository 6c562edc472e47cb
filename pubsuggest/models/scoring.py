"""Data models for publication scoring."""

from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict

DEFAULT_SURVEY_KEYWORDS = ["survey", "state", "review", "advances", "future"]


class ScoringConfig(BaseModel):
    """Publication scoring configuration

    Every boost is an independent multiplicative factor that equals 1.0
    when disabled.
    """

    model_config = ConfigDict(protected_namespaces=())

    citations_per_year_weight: float = Field(0.0, ge=0.0, le=100.0)

    # Keyword boost (title matches against the session's boost keywords)
    is_boost: bool = True
    boost_multiplier: float = Field(2.0, ge=1.0, le=100.0)
    boost_keywords: List[str] = Field(default_factory=list)

    # Researcher first-author boost
    first_author_boost_enabled: bool = False
    first_author_boost: float = Field(2.0, ge=1.0, le=100.0)
    researcher_name: Optional[str] = None

    # New publication boost
    new_publication_boost_enabled: bool = False
    new_publication_boost: float = Field(2.0, ge=1.0, le=100.0)

    # Survey boost
    survey_boost_enabled: bool = False
    survey_boost: float = Field(2.0, ge=1.0, le=100.0)
    survey_keywords: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SURVEY_KEYWORDS)
    )


class KeywordMatch(BaseModel):
    """A boost keyword found in a title"""

    keyword: str
    position: int = Field(..., ge=0)
    length: int = Field(..., ge=1)
    text: str


class PublicationScore(BaseModel):
    """Score breakdown for a publication"""

    model_config = ConfigDict(protected_namespaces=())

    doi: str
    connection_score: float = Field(0.0, ge=0.0)
    citations_per_year: float = Field(0.0, ge=0.0)
    keyword_factor: float = Field(1.0, ge=1.0)
    first_author_factor: float = Field(1.0, ge=1.0)
    new_publication_factor: float = Field(1.0, ge=1.0)
    survey_factor: float = Field(1.0, ge=1.0)
    keyword_matches: List[KeywordMatch] = Field(default_factory=list)
    total_score: float = Field(0.0, ge=0.0)

    @property
    def boost_factor(self) -> float:
        return (
            self.keyword_factor
            * self.first_author_factor
            * self.new_publication_factor
            * self.survey_factor
        )
