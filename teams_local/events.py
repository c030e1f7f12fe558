"""Publish/subscribe registry for client notifications.

Listeners are registered per EventType (or for every type) and called
synchronously, in registration order, from the task that emits. Coroutine
listeners are scheduled on the running loop instead of awaited.
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    STATE_CHANGED = "state_changed"
    TOKEN_RECEIVED = "token_received"
    ERROR_RECEIVED = "error_received"
    SUCCESS_RECEIVED = "success_received"


@dataclass(frozen=True)
class Event:
    type: EventType
    data: dict[str, Any] = field(default_factory=dict)


Listener = Callable[[Event], Any]


class EventBus:
    """Fan-out of events to any number of listeners."""

    def __init__(self) -> None:
        self._listeners: dict[EventType, list[Listener]] = defaultdict(list)
        self._wildcard: list[Listener] = []
        self._tasks: set[asyncio.Task] = set()

    def on(self, event_type: EventType, listener: Listener) -> None:
        """Register a listener for one event type."""
        self._listeners[event_type].append(listener)

    def on_all(self, listener: Listener) -> None:
        """Register a listener for every event type."""
        self._wildcard.append(listener)

    def off(self, event_type: EventType, listener: Listener) -> None:
        """Remove a listener; unknown listeners are ignored."""
        if listener in self._listeners[event_type]:
            self._listeners[event_type].remove(listener)
        elif listener in self._wildcard:
            self._wildcard.remove(listener)

    def emit(self, event_type: EventType, **data: Any) -> Event:
        """Deliver an event to its listeners, then to wildcard listeners."""
        event = Event(event_type, data)
        for listener in [*self._listeners.get(event_type, []), *self._wildcard]:
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    self._schedule(result, event)
            except Exception as exc:
                logger.warning("Listener for %s failed: %s", event_type.value, exc, exc_info=True)
        return event

    def _schedule(self, awaitable: Any, event: Event) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.warning(
                    "Async listener for %s failed: %s", event.type.value, t.exception(),
                )

        task.add_done_callback(_done)
