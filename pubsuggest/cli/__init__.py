"""Publication suggestion CLI.

Usage:
    python -m pubsuggest.cli suggest 10.1109/tvcg.2019.2934268 --boost "visual"
    python -m pubsuggest.cli search "citation network exploration"
    python -m pubsuggest.cli validate config/suggest_config.yaml
    python -m pubsuggest.cli cache clear
"""

import typer

from pubsuggest.cli.cache import cache_app
from pubsuggest.cli.search import search_command
from pubsuggest.cli.suggest import suggest_command
from pubsuggest.cli.validate import validate_command

app = typer.Typer(help="Suggest publications from the citation network of a selection")

app.command(name="suggest")(suggest_command)
app.command(name="search")(search_command)
app.command(name="validate")(validate_command)
app.add_typer(cache_app, name="cache")

__all__ = [
    "app",
    "suggest_command",
    "search_command",
    "validate_command",
    "cache_app",
]
