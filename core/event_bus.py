"""In-process event bus carrying directory lifecycle events."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger("tc.event_bus")

TAB_CREATED = "tabs.created"
TAB_REMOVED = "tabs.removed"
CONTAINER_CREATED = "containers.created"
CONTAINER_UPDATED = "containers.updated"
CONTAINER_REMOVED = "containers.removed"
STARTUP = "runtime.startup"

LIFECYCLE_EVENTS = (
    TAB_CREATED,
    TAB_REMOVED,
    CONTAINER_CREATED,
    CONTAINER_UPDATED,
    CONTAINER_REMOVED,
    STARTUP,
)


@dataclass(frozen=True)
class Event:
    """One lifecycle notification."""

    name: str
    payload: dict[str, Any] = field(default_factory=dict)


EventHandler = Callable[[Event], None]


class EventBus:
    """Dispatches events to subscribers by event name."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Register a callback for an event."""
        self._handlers[event_name].append(handler)

    def emit(self, event_name: str, **payload: Any) -> None:
        """Deliver an event to every subscriber; a failing subscriber is logged and skipped."""
        event = Event(name=event_name, payload=payload)
        for handler in self._handlers.get(event_name, []):
            try:
                handler(event)
            except Exception:
                logger.exception("Subscriber failed for %s", event_name)
