"""
Event Bus - Central event dispatching system
Lets callers observe a search cycle without coupling to the pipeline
"""
from typing import Callable, Dict, List
import logging
import threading


logger = logging.getLogger(__name__)


class EventBus:
    """Thread-safe event bus for component communication"""

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}
        self._lock = threading.RLock()

    def subscribe(self, event_type: str, callback: Callable):
        """Subscribe to an event type"""
        with self._lock:
            callbacks = self._subscribers.setdefault(event_type, [])
            if callback not in callbacks:
                callbacks.append(callback)

    def emit(self, event_type: str, data=None):
        """Emit an event to all subscribers; a failing handler never breaks the emitter"""
        with self._lock:
            callbacks = list(self._subscribers.get(event_type, []))
        for callback in callbacks:
            try:
                callback(data)
            except Exception:
                logger.exception("Error in event handler for %s", event_type)


# Event types
class Events:
    SEARCH_STARTED = "search_started"
    SEARCH_PROGRESS = "search_progress"
    SEARCH_COMPLETED = "search_completed"
    MAGNET_RESOLVED = "magnet_resolved"
