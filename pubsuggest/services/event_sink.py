"""Structured session events.

The session reports user-level events (publications selected, suggestions
computed, failures) to an injected sink instead of a module-level list, so
exporters and tests can collect them per session.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger()


class SessionEvent(BaseModel):
    """One recorded session event"""

    event: str
    timestamp: datetime = Field(default_factory=datetime.now)
    fields: Dict[str, Any] = Field(default_factory=dict)


class EventSink(Protocol):
    """Receiver for session events"""

    def emit(self, event: str, **fields: Any) -> None: ...


class StructlogEventSink:
    """Forward events to the structured log"""

    def __init__(self, component: str = "session_events"):
        self._logger = logger.bind(component=component)

    def emit(self, event: str, **fields: Any) -> None:
        self._logger.info(event, **fields)


class MemoryEventSink:
    """Collect events in memory, optionally forwarding them"""

    def __init__(self, forward_to: Optional[EventSink] = None):
        self.events: List[SessionEvent] = []
        self.forward_to = forward_to

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append(SessionEvent(event=event, fields=fields))
        if self.forward_to is not None:
            self.forward_to.emit(event, **fields)

    def names(self) -> List[str]:
        return [e.event for e in self.events]

    def clear(self) -> None:
        self.events.clear()
