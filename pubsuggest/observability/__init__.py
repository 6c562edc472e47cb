"""Logging and tracing helpers.

Usage:
    from pubsuggest.observability import configure_logging, correlation_id_context

    configure_logging(level="INFO", json_output=False)
    with correlation_id_context():
        ...
"""

from pubsuggest.observability.context import (
    set_correlation_id,
    get_correlation_id,
    clear_correlation_id,
    correlation_id_context,
)
from pubsuggest.observability.logging import (
    get_logger,
    configure_logging,
    bind_context,
    clear_context,
    add_correlation_id_processor,
)

__all__ = [
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "correlation_id_context",
    "get_logger",
    "configure_logging",
    "bind_context",
    "clear_context",
    "add_correlation_id_processor",
]
