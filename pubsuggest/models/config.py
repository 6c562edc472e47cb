"""Application configuration models.

Loaded from YAML by ConfigManager; every section has defaults so an empty
file (or no file at all) yields a working configuration.
"""

from typing import Optional

from pydantic import BaseModel, Field, ConfigDict

from pubsuggest.models.scoring import ScoringConfig


class CircuitBreakerConfig(BaseModel):
    """Configuration for circuit breaker pattern

    Implements the circuit breaker pattern to prevent cascading failures:
    - CLOSED: Normal operation, requests allowed
    - OPEN: After failure threshold, requests blocked
    - HALF_OPEN: After cooldown, testing with limited requests
    """

    enabled: bool = Field(
        default=True, description="Whether circuit breaker is enabled"
    )
    failure_threshold: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Consecutive failures to open circuit",
    )
    success_threshold: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Consecutive successes to close from half-open",
    )
    cooldown_seconds: float = Field(
        default=60.0,
        ge=0.0,
        le=3600.0,
        description="Seconds to wait before testing an open circuit",
    )


class ProviderConfig(BaseModel):
    """Publication metadata service settings"""

    publications_url: str = Field(
        "https://pure-publications-cw3de4q5va-ew.a.run.app/", pattern=r"^https?://"
    )
    crossref_url: str = Field("https://api.crossref.org/works", pattern=r"^https?://")
    crossref_mailto: Optional[str] = None
    timeout_seconds: float = Field(30.0, gt=0.0, le=300.0)
    requests_per_minute: int = Field(600, ge=1, le=10000)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)


class CacheConfig(BaseModel):
    """Publication record cache configuration"""

    model_config = ConfigDict(protected_namespaces=())

    enabled: bool = True
    cache_dir: str = "./cache"

    # 100 days, matching how rarely citation lists change in practice
    ttl_record_days: int = Field(100, ge=0)
    ttl_search_hours: int = Field(24, ge=0)

    @property
    def ttl_record_seconds(self) -> int:
        return self.ttl_record_days * 86400

    @property
    def ttl_search_seconds(self) -> int:
        return self.ttl_search_hours * 3600


class SuggestionConfig(BaseModel):
    """Suggestion computation settings"""

    max_suggestions: int = Field(100, ge=1, le=10000)
    load_more_increment: int = Field(100, ge=1, le=10000)
    max_concurrent_hydrations: int = Field(10, ge=1, le=100)
    prefetch_next_page: bool = True


class AppConfig(BaseModel):
    """Top-level configuration"""

    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    suggestion: SuggestionConfig = Field(default_factory=SuggestionConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    log_level: str = Field("INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    json_logs: bool = False
