"""In-process listener registry for store events."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

EXPORT_PROGRESS_EVENT = "export-progress"
CONTENT_CHANGED_EVENT = "clipboard-changed"

EventListener = Callable[[Any], None]


class Subscription:
    """Handle for one registered listener.

    ``release()`` unregisters the listener exactly once; later calls are
    no-ops.
    """

    def __init__(self, hub: EventHub, event: str, listener: EventListener) -> None:
        self._hub = hub
        self.event = event
        self._listener: EventListener | None = listener

    @property
    def active(self) -> bool:
        return self._listener is not None

    def release(self) -> None:
        listener = self._listener
        self._listener = None
        if listener is not None:
            self._hub._remove(self.event, listener)


class EventHub:
    """Dispatches named events to registered listeners."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[EventListener]] = defaultdict(list)

    def listen(self, event: str, listener: EventListener) -> Subscription:
        self._listeners[event].append(listener)
        logger.debug("Listening for %s", event)
        return Subscription(self, event, listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def emit(self, event: str, payload: Any = None) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(payload)
            except Exception:
                logger.error("Listener for %s raised", event, exc_info=True)

    def _remove(self, event: str, listener: EventListener) -> None:
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)


__all__ = [
    "CONTENT_CHANGED_EVENT",
    "EXPORT_PROGRESS_EVENT",
    "EventHub",
    "EventListener",
    "Subscription",
]
