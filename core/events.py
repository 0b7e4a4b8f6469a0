"""
Lightweight event bus for decoupled inter-module communication.

The decision engine publishes alert and tracking events here; displays,
loggers and analytics subscribe without the pipeline knowing about them.

Usage:
    bus = EventBus()
    bus.subscribe(Events.ALERT_RAISED, my_handler)
    bus.emit(Events.ALERT_RAISED, hand="right", probability=0.93)
"""

import time
import logging
from collections import defaultdict
from typing import Callable

logger = logging.getLogger(__name__)


class EventBus:
    """Synchronous publish/subscribe event bus with priority ordering.

    One bus per pipeline: several hand pipelines may run side by side,
    each with its own listeners and history.
    """

    def __init__(self, max_history: int = 100):
        self._listeners = defaultdict(list)  # event_name -> [(priority, callback)]
        self._event_history = []
        self._max_history = max_history
        self._enabled = True

    def subscribe(self, event_name: str, callback: Callable, priority: int = 0):
        """Register a listener for an event.

        Args:
            event_name: Event to listen for
            callback: Function to call. Receives **kwargs from emit().
            priority: Higher priority callbacks run first (default 0)
        """
        self._listeners[event_name].append((priority, callback))
        # Stable sort keeps registration order among equal priorities
        self._listeners[event_name].sort(key=lambda x: -x[0])
        logger.debug("Subscribed to '%s': %s (priority=%d)",
                     event_name, getattr(callback, "__name__", repr(callback)), priority)

    def unsubscribe(self, event_name: str, callback: Callable):
        """Remove a listener for an event."""
        self._listeners[event_name] = [
            (p, cb) for p, cb in self._listeners[event_name] if cb is not callback
        ]

    def emit(self, event_name: str, **kwargs):
        """Emit an event to all registered listeners.

        Listener errors are logged and do not interrupt the emitting tick.
        """
        if not self._enabled:
            return

        listeners = list(self._listeners.get(event_name, []))

        self._event_history.append({
            "event": event_name,
            "time": time.time(),
            "data_keys": list(kwargs.keys()),
        })
        if len(self._event_history) > self._max_history:
            self._event_history = self._event_history[-self._max_history:]

        for priority, callback in listeners:
            try:
                callback(**kwargs)
            except Exception as e:
                logger.error("Event handler error [%s -> %s]: %s",
                             event_name, getattr(callback, "__name__", repr(callback)), e)

    def clear(self, event_name: str = None):
        """Remove all listeners, optionally for a specific event."""
        if event_name:
            self._listeners.pop(event_name, None)
        else:
            self._listeners.clear()

    def set_enabled(self, enabled: bool):
        self._enabled = enabled

    @property
    def registered_events(self) -> list:
        """List all events with registered listeners."""
        return [name for name, cbs in self._listeners.items() if cbs]

    @property
    def listener_count(self) -> int:
        """Total number of registered listeners."""
        return sum(len(cbs) for cbs in self._listeners.values())

    def get_history(self, last_n: int = 10) -> list:
        """Get recent event history."""
        return self._event_history[-last_n:]

    def count(self, event_name: str) -> int:
        """Number of times an event appears in the retained history."""
        return sum(1 for entry in self._event_history if entry["event"] == event_name)

    def reset(self):
        """Drop listeners and history (for testing)."""
        self._listeners.clear()
        self._event_history.clear()
        self._enabled = True


# =============================================================================
# Standard Event Names (constants to avoid typos)
# =============================================================================

class Events:
    """Standard event names used throughout the system."""

    # Source lifecycle
    SOURCE_READY = "source_ready"
    TRACKING_ACQUIRED = "tracking_acquired"
    TRACKING_LOST = "tracking_lost"

    # Decision events
    WINDOW_CLASSIFIED = "window_classified"
    ALERT_RAISED = "alert_raised"
    ALERT_CLEARED = "alert_cleared"

    # Failures
    CLASSIFIER_FAILED = "classifier_failed"

    # Lifecycle
    SYSTEM_STARTED = "system_started"
    SYSTEM_SHUTDOWN = "system_shutdown"
