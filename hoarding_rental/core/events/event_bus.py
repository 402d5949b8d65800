"""
Event bus implementation for the hoarding rental service.

Delivery is synchronous and in-process. Services publish only after their
transaction commits, so a failing handler can never undo a transition.
"""
import threading
from typing import Any, Callable, Dict, List

from hoarding_rental.core.logging import get_logger
from .base_event import BaseEvent

logger = get_logger(__name__)

EventHandler = Callable[[BaseEvent], None]


class EventHandlerRegistry:
    """Registry for event handlers."""

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._lock = threading.Lock()

    def register(self, event_type: str, handler: EventHandler) -> None:
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

    def unregister(self, event_type: str, handler: EventHandler) -> None:
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def get_handlers(self, event_type: str) -> List[EventHandler]:
        # Copy so handlers may unsubscribe while being dispatched
        with self._lock:
            return list(self._handlers.get(event_type, []))

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return {event_type: len(h) for event_type, h in self._handlers.items()}


class EventBus:
    """
    Event bus for handling application events.
    """

    def __init__(self):
        self._registry = EventHandlerRegistry()
        self._published = 0
        self._failed = 0

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        Subscribe a handler to an event type.

        Args:
            event_type: The type of event to subscribe to
            handler: Callable receiving the event
        """
        self._registry.register(event_type, handler)
        logger.info(f"Registered handler for event type: {event_type}")

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        self._registry.unregister(event_type, handler)
        logger.info(f"Unregistered handler for event type: {event_type}")

    def publish(self, event: BaseEvent) -> None:
        """
        Deliver an event to every handler registered for its type.

        Handler errors are logged and do not propagate to the publisher.
        """
        handlers = self._registry.get_handlers(event.event_type)
        self._published += 1

        if not handlers:
            logger.debug(f"No handlers found for event type: {event.event_type}")
            return

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                self._failed += 1
                logger.error(
                    f"Error handling event {event.event_type}: {str(e)}",
                    extra={"event_id": event.event_id},
                    exc_info=True,
                )

        event.processed = True

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the event bus."""
        return {
            "published": self._published,
            "handler_failures": self._failed,
            "registered_handlers": self._registry.counts(),
        }


# Global event bus instance
event_bus = EventBus()

