"""
Event emitter for visibility updates.
"""

import inspect
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Set

from shared.logging import get_logger

ROLE_UPDATE = "roleUpdate"

EventHandler = Callable[[Dict[str, Any]], Any]


@dataclass
class EventSubscription:
    """Subscription data."""
    subscription_id: str
    event_name: str
    handler: EventHandler
    created_at: datetime = field(default_factory=datetime.now)
    delivered_count: int = 0


class EventEmitter:
    """Named events with subscribe/unsubscribe.

    Handlers may be plain callables or coroutine functions. A failing
    handler is logged and does not stop delivery to the others.
    """

    def __init__(self):
        self.logger = get_logger("visibility.events.emitter")
        self.subscriptions: Dict[str, EventSubscription] = {}
        self.event_subscriptions: Dict[str, Set[str]] = {}  # event_name -> subscription_ids

    def subscribe(self, event_name: str, handler: EventHandler) -> str:
        """Register a handler and return its subscription id."""
        subscription_id = str(uuid.uuid4())
        self.subscriptions[subscription_id] = EventSubscription(
            subscription_id=subscription_id,
            event_name=event_name,
            handler=handler
        )
        self.event_subscriptions.setdefault(event_name, set()).add(subscription_id)

        self.logger.info("Subscription created", subscription_id=subscription_id, event_name=event_name)
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        subscription = self.subscriptions.pop(subscription_id, None)
        if subscription is None:
            return False

        ids = self.event_subscriptions.get(subscription.event_name)
        if ids is not None:
            ids.discard(subscription_id)
            if not ids:
                del self.event_subscriptions[subscription.event_name]

        self.logger.info("Subscription removed", subscription_id=subscription_id, event_name=subscription.event_name)
        return True

    def subscriber_count(self, event_name: str) -> int:
        return len(self.event_subscriptions.get(event_name, ()))

    def _handlers_for(self, event_name: str) -> List[EventSubscription]:
        # Subscription order is delivery order
        return [s for s in self.subscriptions.values() if s.event_name == event_name]

    async def emit(self, event_name: str, payload: Dict[str, Any]) -> int:
        """Deliver an event to every subscriber; returns the number of successful deliveries."""
        delivered = 0
        for subscription in self._handlers_for(event_name):
            try:
                result = subscription.handler(dict(payload))
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.logger.error(
                    "Event handler failed",
                    event_name=event_name,
                    subscription_id=subscription.subscription_id,
                    error=str(e)
                )
                continue
            subscription.delivered_count += 1
            delivered += 1

        return delivered

    def clear(self):
        self.subscriptions.clear()
        self.event_subscriptions.clear()
