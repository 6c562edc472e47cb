"""Suggest command.

Selects the given DOIs, expands their citation network and prints the
ranked suggestions.
"""

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import typer

from pubsuggest.cli.utils import (
    build_session,
    display_error,
    display_info,
    display_warning,
    format_publication,
    handle_errors,
    load_config,
    read_doi_arguments,
)
from pubsuggest.models.config import AppConfig
from pubsuggest.observability import correlation_id_context
from pubsuggest.services.cache_service import CacheService
from pubsuggest.services.search_service import extract_dois
from pubsuggest.services.session_service import SessionService
from pubsuggest.utils.exceptions import AggregationFailure


@handle_errors
def suggest_command(
    dois: List[str] = typer.Argument(None, help="DOIs or text containing DOIs"),
    input_file: Optional[Path] = typer.Option(
        None, "--file", "-f", help="Read DOIs from a file (e.g. BibTeX)"
    ),
    exclude: List[str] = typer.Option(
        [], "--exclude", "-x", help="DOI to exclude (repeatable)"
    ),
    boost: str = typer.Option(
        "", "--boost", "-b", help="Comma-separated title keywords to boost"
    ),
    text: str = typer.Option("", "--filter", help="Only show matching suggestions"),
    tag: List[str] = typer.Option([], "--tag", help="Only show tagged suggestions"),
    year_start: Optional[int] = typer.Option(None, "--from", help="Earliest year"),
    year_end: Optional[int] = typer.Option(None, "--to", help="Latest year"),
    limit: Optional[int] = typer.Option(
        None, "--limit", "-n", help="Number of suggestions to load"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print a JSON snapshot"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the disk cache"),
    config_path: Path = typer.Option(
        "config/suggest_config.yaml", "--config", "-c", help="Path to config YAML"
    ),
):
    """Suggest publications connected to the given ones."""
    config = load_config(config_path, no_cache=no_cache)

    raw = read_doi_arguments(dois or [], input_file)
    selected = [doi for item in raw for doi in extract_dois(item)]
    if not selected:
        display_error("No DOIs found in input")
        raise typer.Exit(code=1)

    cache_service = CacheService(config.cache)
    try:
        session = build_session(config, cache_service)
        if limit:
            session.max_suggestions = limit
        session.filter.string = text
        session.filter.tags = list(tag)
        session.filter.year_start = year_start
        session.filter.year_end = year_end
        if boost:
            session.set_boost_keywords(boost)

        with correlation_id_context(session.session_id):
            stale = asyncio.run(_run(session, selected, exclude))
    finally:
        cache_service.close()

    if as_json:
        typer.echo(json.dumps(session.snapshot().model_dump(), indent=2))
        return

    _display_session(session, config, stale)


async def _run(session: SessionService, selected: List[str], exclude: List[str]) -> bool:
    session.add_publications_to_selection(selected)
    session.exclude_publications(exclude)
    try:
        await session.refresh_suggestions()
    except AggregationFailure as e:
        display_warning(f"Suggestions may be outdated: {e}")
        return True
    finally:
        session.suggestion_service.cancel_prefetch()
    return False


def _display_session(session: SessionService, config: AppConfig, stale: bool) -> None:
    display_info(f"Selected ({len(session.selected)}):")
    for publication in session.ranked_selected_publications():
        typer.echo(format_publication(publication, prefix="  "))

    total = session.suggestion.total_suggestions if session.suggestion else 0
    shown = session.suggested_filtered
    header = f"\nSuggested ({len(shown)} shown of {total} connected)"
    if session.filter.has_active_filters():
        header += ", filtered"
    display_info(header + ":")
    if stale:
        display_warning("  (stale)")

    suggestions = {s.doi: s for s in session.suggestion.suggestions} if session.suggestion else {}
    for rank, publication in enumerate(shown, start=1):
        suggestion = suggestions[publication.doi]
        typer.echo(
            format_publication(
                publication,
                prefix=f"{rank:>3}. [{suggestion.multiplicity}x {suggestion.score:.1f}] ",
            )
        )
