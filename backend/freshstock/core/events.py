# backend/freshstock/core/events.py

import logging
import threading
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Listener = Callable[[str, Dict[str, Any]], None]


class EventBus:
    """In-process fan-out for real-time events (stockUpdated, newNotification, ...).

    Emitting is fire-and-forget: a failing listener is logged and skipped,
    the emitter never sees the error. Safe to call from scheduler threads.
    """

    def __init__(self):
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event, payload)
            except Exception as e:
                logger.warning(f"Event listener failed for {event}: {e}")


event_bus = EventBus()
