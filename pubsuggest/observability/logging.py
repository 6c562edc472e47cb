"""Structured logging setup.

All modules log through ``structlog.get_logger()`` with snake_case event
names. ``configure_logging`` installs the processor chain once at startup:

    configure_logging(level="DEBUG", json_output=False)
    logger = get_logger("session", session_id="a1b2")
    logger.info("queues_applied", selected=3)
"""

import logging
import sys
from typing import Any, Callable, List, Optional

import structlog
from structlog.typing import EventDict, WrappedLogger

from pubsuggest.observability.context import get_correlation_id


def add_correlation_id_processor(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add the current correlation ID (or "none") to every entry."""
    corr_id = get_correlation_id()
    event_dict["correlation_id"] = corr_id if corr_id else "none"
    return event_dict


def add_component_processor(
    component: str,
) -> Callable[[WrappedLogger, str, EventDict], EventDict]:
    """Build a processor that tags entries with a component name."""

    def processor(
        logger: WrappedLogger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        event_dict.setdefault("component", component)
        return event_dict

    return processor


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    add_timestamp: bool = True,
    component: Optional[str] = None,
) -> None:
    """Configure structlog for the application.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_output: JSON lines when True, coloured console output otherwise
        add_timestamp: Add an ISO timestamp to each entry
        component: Default component name for entries that bind none
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    # aiohttp and asyncio report through the standard library
    logging.basicConfig(level=log_level, stream=sys.stderr, format="%(name)s: %(message)s")
    logging.getLogger().setLevel(log_level)

    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        add_correlation_id_processor,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if component:
        processors.insert(2, add_component_processor(component))

    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(component: Optional[str] = None, **initial_context: Any) -> Any:
    """Get a logger, optionally bound to a component and extra context."""
    logger = structlog.get_logger()
    if component:
        logger = logger.bind(component=component)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


def bind_context(**context: Any) -> None:
    """Bind context to all later entries of the current task."""
    structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
