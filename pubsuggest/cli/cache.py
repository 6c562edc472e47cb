"""Cache maintenance commands."""

from pathlib import Path
from typing import Optional

import typer

from pubsuggest.cli.utils import display_info, display_success, handle_errors, load_config
from pubsuggest.services.cache_service import CacheService

cache_app = typer.Typer(help="Manage the publication cache")


@cache_app.command(name="stats")
@handle_errors
def cache_stats(
    config_path: Path = typer.Option(
        "config/suggest_config.yaml", "--config", "-c", help="Path to config YAML"
    ),
):
    """Show cache statistics."""
    config = load_config(config_path)
    cache_service = CacheService(config.cache)
    try:
        stats = cache_service.get_stats()
    finally:
        cache_service.close()

    display_info(f"Cache directory: {config.cache.cache_dir}")
    typer.echo(f"  Records: {stats.record_cache_size}")
    typer.echo(f"  Record hit rate: {stats.record_hit_rate:.0%}")
    typer.echo(f"  Searches: {stats.search_cache_size}")


@cache_app.command(name="clear")
@handle_errors
def cache_clear(
    cache_type: Optional[str] = typer.Argument(
        None, help="'records' or 'search'; both when omitted"
    ),
    config_path: Path = typer.Option(
        "config/suggest_config.yaml", "--config", "-c", help="Path to config YAML"
    ),
):
    """Clear cached records and search results."""
    if cache_type not in (None, "records", "search"):
        raise typer.BadParameter("expected 'records' or 'search'")

    config = load_config(config_path)
    cache_service = CacheService(config.cache)
    try:
        cache_service.clear_cache(cache_type)
    finally:
        cache_service.close()
    display_success(f"Cleared {cache_type or 'all'} cache")
