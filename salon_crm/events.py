"""
In-process event bus shared by dashboard components.

Components receive the bus at construction instead of broadcasting on a
global object.
"""

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

# Event names
ONLINE_BOOKINGS_UPDATED = "online_bookings:updated"
APPOINTMENT_CREATED = "appointment-created"

Listener = Callable[[dict], Any]


class EventBus:
    """Named events with synchronous listeners"""

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def on(self, event_name: str, listener: Listener) -> Callable[[], None]:
        """Register a listener and return a function that removes it"""
        self._listeners[event_name].append(listener)

        def remove():
            self.off(event_name, listener)

        return remove

    def off(self, event_name: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_name, [])
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, event_name: str, detail: dict | None = None) -> int:
        """
        Call every listener for ``event_name``.

        A failing listener is logged and does not stop the others.
        Returns the number of listeners called.
        """
        payload = detail or {}
        called = 0
        for listener in list(self._listeners.get(event_name, [])):
            try:
                listener(payload)
            except Exception as e:
                logger.error(f"❌ Listener for {event_name} failed: {e}")
            called += 1
        return called

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, []))
