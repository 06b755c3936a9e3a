"""
In-process Event Bus for the ImageCarver node.

Carries the control plane only: outcomes of capture and delivery cycles
and shutdown requests. Envelopes never travel over the bus; they go
through the hand-off queue.

Handlers run synchronously on the publisher's thread. Capture outcomes
are published from a worker of the orchestrator's pool, delivery
outcomes from the thread running the delivery cycle.
"""
import threading
from collections import defaultdict
from typing import Callable, Any, Dict, List, Type
from utils.logger import Logger


Handler = Callable[[Any], None]


class EventBus:
    """
    Publish/subscribe keyed by event class.

    Usage:
        bus = EventBus()
        unsubscribe = bus.subscribe(CaptureFailed, on_capture_failed)
        bus.publish(CaptureFailed(reason="empty frame"))
        unsubscribe()
    """

    def __init__(self):
        self._subscribers: Dict[Type, List[Handler]] = defaultdict(list)
        self._lock = threading.Lock()
        self.logger = Logger("EventBus")

    def subscribe(self, event_type: Type, handler: Handler) -> Callable[[], None]:
        """
        Register a handler for one event class.

        Returns:
            A callable that removes this subscription.
        """
        with self._lock:
            self._subscribers[event_type].append(handler)
        self.logger.debug(f"{_name(handler)} subscribed to {event_type.__name__}")
        return lambda: self.unsubscribe(event_type, handler)

    def unsubscribe(self, event_type: Type, handler: Handler) -> None:
        """Remove a handler; unknown handlers are ignored."""
        with self._lock:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, event: Any) -> int:
        """
        Deliver an event to every handler registered for its exact class.

        A handler that raises is logged and skipped; the rest still run.

        Returns:
            Number of handlers that completed without raising.
        """
        event_type = type(event)
        with self._lock:
            handlers = list(self._subscribers.get(event_type, []))

        completed = 0
        for handler in handlers:
            try:
                handler(event)
                completed += 1
            except Exception as e:
                self.logger.error(f"{_name(handler)} failed on {event_type.__name__}: {e}")
        return completed

    def clear(self) -> None:
        """Drop every subscription."""
        with self._lock:
            self._subscribers.clear()

    def subscriber_count(self, event_type: Type) -> int:
        with self._lock:
            return len(self._subscribers.get(event_type, []))


def _name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", repr(handler))
