"""Search command.

Resolves free text to publications: DOIs found in the text are used
directly, anything else is sent as a Crossref query.
"""

import asyncio
from pathlib import Path

import typer

from pubsuggest.cli.utils import (
    display_info,
    display_warning,
    format_publication,
    handle_errors,
    load_config,
)
from pubsuggest.observability import correlation_id_context
from pubsuggest.services.cache_service import CacheService
from pubsuggest.services.hydration_service import HydrationService
from pubsuggest.services.providers.cached import CachedPublicationProvider
from pubsuggest.services.providers.pure_publications import PurePublicationsProvider
from pubsuggest.services.search_service import PublicationSearch


@handle_errors
def search_command(
    query: str = typer.Argument(..., help="Bibliographic query or DOIs"),
    rows: int = typer.Option(20, "--rows", "-r", min=1, max=100),
    config_path: Path = typer.Option(
        "config/suggest_config.yaml", "--config", "-c", help="Path to config YAML"
    ),
):
    """Find publications by query or DOI."""
    config = load_config(config_path)
    cache_service = CacheService(config.cache)
    try:
        search = PublicationSearch(config.provider, cache_service, rows=rows)
        provider = CachedPublicationProvider(
            PurePublicationsProvider(config.provider), cache_service
        )
        hydration = HydrationService(
            provider, max_concurrent=config.suggestion.max_concurrent_hydrations
        )

        async def _search():
            results, kind = await search.search(query)
            await hydration.hydrate_many(results)
            return results, kind

        with correlation_id_context():
            publications, kind = asyncio.run(_search())
    finally:
        cache_service.close()

    if not publications:
        display_warning("No publications found")
        return

    source = "identified DOIs" if kind == "doi" else "search results"
    display_info(f"{len(publications)} {source}:")
    for publication in publications:
        typer.echo(format_publication(publication, prefix="  "))
