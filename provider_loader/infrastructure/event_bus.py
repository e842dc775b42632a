"""Event bus for discovery events.

Registries publish domain events here; observers (logging, auditing, tests)
subscribe without the registry knowing about them.
"""

import logging
import threading
from typing import Callable, List, Tuple, Type

from ..domain.events import DomainEvent

logger = logging.getLogger(__name__)

EventCallback = Callable[[DomainEvent], None]


class EventBus:
    """
    Thread-safe publish/subscribe bus for domain events.

    A handler subscribed to an event type receives that type and its
    subclasses, so subscribing to DomainEvent receives everything.
    Handlers are called synchronously in order of subscription.
    """

    def __init__(self):
        self._subscriptions: List[Tuple[Type[DomainEvent], EventCallback]] = []
        self._error_handlers: List[Callable[[Exception, DomainEvent], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, event_type: Type[DomainEvent], handler: EventCallback) -> None:
        """
        Subscribe to an event type and its subclasses.

        Args:
            event_type: The type of event to subscribe to
            handler: Callable that takes the event as parameter
        """
        with self._lock:
            self._subscriptions.append((event_type, handler))

        logger.debug(f"Subscribed handler to {event_type.__name__}")

    def subscribe_to_all(self, handler: EventCallback) -> None:
        """Subscribe to every event."""
        self.subscribe(DomainEvent, handler)

    def unsubscribe(self, event_type: Type[DomainEvent], handler: EventCallback) -> bool:
        """
        Remove a subscription.

        Returns:
            True if the subscription was removed, False if not found
        """
        with self._lock:
            try:
                self._subscriptions.remove((event_type, handler))
            except ValueError:
                return False
            return True

    def publish(self, event: DomainEvent) -> None:
        """
        Publish an event to all matching handlers.

        A failing handler is logged and reported to error handlers; it never
        stops delivery to the remaining handlers nor reaches the publisher.

        Args:
            event: The domain event to publish
        """
        with self._lock:
            handlers = [h for event_type, h in self._subscriptions if isinstance(event, event_type)]
            error_handlers = list(self._error_handlers)

        # Call handlers outside the lock
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Error in event handler for {event.__class__.__name__}: {e}",
                    exc_info=True,
                )
                for error_handler in error_handlers:
                    try:
                        error_handler(e, event)
                    except Exception as eh:
                        logger.error(f"Error in event bus error handler: {eh}", exc_info=True)

    def on_error(self, handler: Callable[[Exception, DomainEvent], None]) -> None:
        """Register a handler for errors raised by event handlers."""
        with self._lock:
            self._error_handlers.append(handler)

    def clear(self) -> None:
        """Clear all subscriptions (mainly for testing)."""
        with self._lock:
            self._subscriptions.clear()
            self._error_handlers.clear()


# Global event bus instance
_global_event_bus: EventBus | None = None
_global_bus_lock = threading.Lock()


def get_event_bus() -> EventBus:
    """Get the global event bus instance (singleton pattern)."""
    global _global_event_bus

    if _global_event_bus is None:
        with _global_bus_lock:
            if _global_event_bus is None:
                _global_event_bus = EventBus()

    return _global_event_bus


def reset_event_bus() -> None:
    """Reset the global event bus (mainly for testing)."""
    global _global_event_bus

    with _global_bus_lock:
        _global_event_bus = None
