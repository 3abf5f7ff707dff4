"""
Event system for account lifecycle events.

Provides a simple pub/sub mechanism for validation, settlement and
execution events.
"""
from contextlib import contextmanager
from typing import Dict, List, Callable, Any, Tuple
import logging
import threading

logger = logging.getLogger(__name__)

OPERATION_VALIDATED = "operation_validated"
OPERATION_REJECTED = "operation_rejected"
PREFUND_SETTLED = "prefund_settled"
PREFUND_SETTLEMENT_FAILED = "prefund_settlement_failed"
CALL_EXECUTED = "call_executed"
VALUE_RECEIVED = "value_received"


class EventBus:
    """
    Simple event bus for account events.

    Events are delivered synchronously in the same thread. A failing
    listener is logged and never affects the operation that emitted the
    event. Inside a `deferred()` block, events are held back until the
    block completes and are dropped if it raises.
    """

    def __init__(self):
        self.listeners: Dict[str, List[Callable]] = {}
        self._held = threading.local()

    def subscribe(self, event_type: str, callback: Callable) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: Event name (e.g., 'operation_validated')
            callback: Function to call when event is emitted
        """
        if event_type not in self.listeners:
            self.listeners[event_type] = []

        self.listeners[event_type].append(callback)
        logger.debug(f"Subscribed to event: {event_type}")

    def unsubscribe(self, event_type: str, callback: Callable) -> None:
        """Remove a previously subscribed callback. Unknown callbacks are ignored."""
        if event_type in self.listeners and callback in self.listeners[event_type]:
            self.listeners[event_type].remove(callback)
            logger.debug(f"Unsubscribed from event: {event_type}")

    def emit(self, event_type: str, **data: Any) -> None:
        """
        Emit an event to all subscribers.

        Args:
            event_type: Event name
            **data: Event data as keyword arguments
        """
        pending = getattr(self._held, "pending", None)
        if pending is not None:
            pending.append((event_type, data))
            return
        self._deliver(event_type, data)

    def _deliver(self, event_type: str, data: Dict[str, Any]) -> None:
        listeners = self.listeners.get(event_type, [])

        if not listeners:
            logger.debug(f"No listeners for event: {event_type}")
            return

        logger.debug(f"Emitting event: {event_type} to {len(listeners)} listener(s)")

        for callback in list(listeners):
            try:
                callback(**data)
            except Exception as e:
                logger.error(f"Error in event callback for {event_type}: {e}", exc_info=True)

    @contextmanager
    def deferred(self):
        """
        Holds events emitted on this thread until the block exits.

        On normal exit they are delivered in order, or handed to the
        enclosing block when nested. If the block raises they are discarded.
        """
        outer = getattr(self._held, "pending", None)
        pending: List[Tuple[str, Dict[str, Any]]] = []
        self._held.pending = pending
        try:
            yield
        except BaseException:
            if pending:
                logger.debug(f"Discarded {len(pending)} event(s) from rolled back work")
            raise
        finally:
            self._held.pending = outer

        if outer is not None:
            outer.extend(pending)
            return
        for event_type, data in pending:
            self._deliver(event_type, data)

    def clear(self, event_type: str = None) -> None:
        """Clear listeners for one event type, or all listeners if no type specified."""
        if event_type:
            self.listeners.pop(event_type, None)
            logger.debug(f"Cleared listeners for event: {event_type}")
        else:
            self.listeners.clear()
            logger.debug("Cleared all event listeners")


# Global event bus instance
event_bus = EventBus()
