"""Correlation ID context for tracing one CLI command or session.

Stored in a ContextVar so the ID follows asyncio tasks spawned from the
command (hydration batches, background prefetch).
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator, Optional

_correlation_id_var: ContextVar[Optional[str]] = ContextVar(
    "correlation_id", default=None
)


def set_correlation_id(corr_id: Optional[str] = None) -> str:
    """Set the correlation ID for the current context.

    Args:
        corr_id: Explicit ID; a UUID4 is generated when omitted

    Returns:
        The ID now in effect
    """
    if corr_id is None:
        corr_id = str(uuid.uuid4())
    _correlation_id_var.set(corr_id)
    return corr_id


def get_correlation_id() -> Optional[str]:
    return _correlation_id_var.get()


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)


@contextmanager
def correlation_id_context(
    corr_id: Optional[str] = None,
) -> Generator[str, None, None]:
    """Use a correlation ID for the duration of a block.

    The previous ID is restored on exit, also when the block raises.

    Example:
        with correlation_id_context(session.session_id):
            await session.apply_queue()
    """
    token = _correlation_id_var.set(corr_id or str(uuid.uuid4()))
    try:
        yield _correlation_id_var.get() or ""
    finally:
        _correlation_id_var.reset(token)
