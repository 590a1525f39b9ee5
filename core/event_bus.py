"""
Event bus for billing domain events.

Synchronous in-process pub/sub. Handlers run in the publisher's thread right
after the invoice write has committed, so a failing handler is logged and
never undoes or fails the write.
"""

import logging
from typing import Callable, Dict, List, Type

from core.events import BillingEvent

logger = logging.getLogger(__name__)


class EventBus:
    """
    In-process event bus.

    Subscribe by event class, publish by event instance. Subscribing to a
    base class (e.g. InvoiceEvent) receives every subclass event too.
    Handlers for the same event class run in subscription order.
    """

    def __init__(self):
        self._subscribers: Dict[Type[BillingEvent], List[Callable]] = {}

    def subscribe(self, event_type: Type[BillingEvent], callback: Callable) -> None:
        """
        Subscribe to events of a type and its subclasses.

        Args:
            event_type: Event class, e.g. InvoicePaid
            callback: Called with the event instance
        """
        self._subscribers.setdefault(event_type, []).append(callback)

    def publish(self, event: BillingEvent) -> None:
        """
        Deliver an event to every matching subscriber.

        Args:
            event: BillingEvent instance to publish
        """
        callbacks = [
            callback
            for event_type, subscribed in self._subscribers.items()
            if isinstance(event, event_type)
            for callback in subscribed
        ]

        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Handler %s failed for %s (event_id=%s)",
                    getattr(callback, "__name__", repr(callback)),
                    event.__class__.__name__,
                    event.event_id,
                )
