"""Last-known meeting state and permissions, with minimal-diff notifications."""

import logging
import threading
from typing import Optional

from .events import EventBus, EventType
from .protocol.messages import MeetingPermissions, MeetingState, MeetingUpdate

logger = logging.getLogger(__name__)

STATE_FIELDS = tuple(MeetingState.model_fields)
PERMISSION_FIELDS = tuple(MeetingPermissions.model_fields)
ALL_FIELDS = STATE_FIELDS + PERMISSION_FIELDS


class StateSynchronizer:
    """Owns the single live snapshot.

    Incoming updates are merged field by field: a field absent from the
    update keeps its cached value, and only fields whose value actually
    changed produce a STATE_CHANGED event.
    """

    def __init__(self, events: EventBus):
        self.events = events
        self._values: dict[str, bool] = {name: False for name in ALL_FIELDS}
        self._lock = threading.Lock()

    def get(self, name: str) -> bool:
        with self._lock:
            return self._values[name]

    def snapshot(self) -> dict[str, bool]:
        with self._lock:
            return dict(self._values)

    def apply(self, update: MeetingUpdate) -> list[tuple[str, bool]]:
        """Merge an update and emit one event per changed field.

        Returns the (field, new value) pairs that changed, in field order.
        """
        incoming: dict[str, Optional[bool]] = {}
        if update.meeting_state is not None:
            incoming.update(update.meeting_state.model_dump(include=set(STATE_FIELDS)))
        if update.meeting_permissions is not None:
            incoming.update(update.meeting_permissions.model_dump(include=set(PERMISSION_FIELDS)))

        changes: list[tuple[str, bool]] = []
        with self._lock:
            for name in ALL_FIELDS:
                value = incoming.get(name)
                if value is None or value == self._values[name]:
                    continue
                self._values[name] = value
                changes.append((name, value))

        # Notify outside the lock so listeners may read the snapshot
        for name, value in changes:
            logger.debug("State changed: %s=%s", name, value)
            self.events.emit(EventType.STATE_CHANGED, field=name, value=value)
        return changes
