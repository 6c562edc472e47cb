"""Shared CLI utilities.

Config loading, error handling, console output and construction of the
service stack used by every command.
"""

import functools
from pathlib import Path
from typing import Callable, Iterable, List, Optional, TypeVar

import structlog
import typer

from pubsuggest.models.config import AppConfig
from pubsuggest.models.publication import PUBLICATION_TAGS, Publication
from pubsuggest.observability import configure_logging
from pubsuggest.services.cache_service import CacheService
from pubsuggest.services.config_manager import ConfigManager, ConfigValidationError
from pubsuggest.services.hydration_service import HydrationService
from pubsuggest.services.providers.cached import CachedPublicationProvider
from pubsuggest.services.providers.pure_publications import PurePublicationsProvider
from pubsuggest.services.scoring_service import ScoringService
from pubsuggest.services.session_service import SessionService
from pubsuggest.services.suggestion_service import SuggestionService

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable)


def load_config(config_path: Path, no_cache: bool = False) -> AppConfig:
    """Load configuration and set up logging.

    Raises:
        typer.Exit: If configuration is missing or invalid.
    """
    overrides = {"cache": {"enabled": False}} if no_cache else None
    config_manager = ConfigManager(config_path=str(config_path))
    try:
        config = config_manager.load_config(overrides=overrides)
    except (FileNotFoundError, ConfigValidationError) as e:
        typer.secho(f"Configuration Error: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    configure_logging(level=config.log_level, json_output=config.json_logs)
    return config


def handle_errors(func: F) -> F:
    """Decorator turning unexpected exceptions into a red message and exit 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except Exception as e:
            logger.exception("command_failed")
            typer.secho(f"Error: {e}", fg=typer.colors.RED)
            raise typer.Exit(code=1)

    return wrapper  # type: ignore[return-value]


def display_success(message: str) -> None:
    typer.secho(message, fg=typer.colors.GREEN)


def display_warning(message: str) -> None:
    typer.secho(message, fg=typer.colors.YELLOW)


def display_error(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)


def display_info(message: str) -> None:
    typer.secho(message, fg=typer.colors.CYAN)


def format_publication(publication: Publication, prefix: str = "") -> str:
    """One-line rendering: author/year label, title and DOI."""
    if not publication.was_fetched:
        state = "unavailable" if publication.hydration_failed else "not loaded"
        return f"{prefix}{publication.doi} ({state})"

    label = publication.author_short or "[unknown author]"
    year = publication.year if publication.year is not None else "[unknown year]"
    title = publication.title or "[unknown title]"
    names = publication.tags()
    tags = ", ".join(label for name, label in PUBLICATION_TAGS if name in names)
    line = f"{prefix}{label} {year}: {title} <{publication.doi_url}>"
    return f"{line} [{tags}]" if tags else line


def read_doi_arguments(dois: Iterable[str], input_file: Optional[Path]) -> List[str]:
    """Collect raw DOI text from arguments and an optional file."""
    items = list(dois)
    if input_file is not None:
        items.append(input_file.read_text(encoding="utf-8"))
    return items


def build_session(
    config: AppConfig, cache_service: Optional[CacheService] = None
) -> SessionService:
    """Wire provider, cache, hydration, suggestion and session services."""
    provider = PurePublicationsProvider(config.provider)
    if cache_service is not None and cache_service.enabled:
        provider = CachedPublicationProvider(provider, cache_service)  # type: ignore[assignment]

    hydration = HydrationService(
        provider, max_concurrent=config.suggestion.max_concurrent_hydrations
    )
    suggestions = SuggestionService(
        hydration,
        scoring_service=ScoringService(config.scoring),
        config=config.suggestion,
    )
    return SessionService(suggestions)
