"""
Event Bus Service - Ordered, synchronous observer registry

Key behaviors (tested in test_services/test_event_bus.py):
- Delivery is synchronous, in registration order
- subscribe() returns an unsubscribe handle that removes exactly that
  registration and is safe to call more than once
- No lock held during callback execution (callbacks may subscribe or
  unsubscribe while being notified)
- A failing callback is logged and does not stop delivery to the rest
"""

import itertools
import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class EventBus:
    """
    Observer registry shared by PriceFeed (ticks) and GameSession (game events).

    Each subscription gets its own id, so registering the same callable twice
    yields two independent deliveries and two independent handles.
    """

    def __init__(self, name: str = "events"):
        self.name = name

        # Ordered (subscription_id, callback) pairs
        self._subscribers: list[tuple[int, Callable[[Any], None]]] = []
        self._ids = itertools.count(1)

        # Lock only for subscription management, not during callback execution
        self._sub_lock = threading.RLock()

        self._stats = {
            "events_published": 0,
            "events_delivered": 0,
            "errors": 0,
        }

        logger.debug(f"EventBus '{name}' initialized")

    def subscribe(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        """
        Register a callback.

        Args:
            callback: Called with the published payload

        Returns:
            Unsubscribe handle (idempotent)
        """
        if not callable(callback):
            raise TypeError(f"EventBus '{self.name}' callback must be callable, got {callback!r}")

        with self._sub_lock:
            subscription_id = next(self._ids)
            self._subscribers.append((subscription_id, callback))
            logger.debug(f"Subscribed #{subscription_id} to '{self.name}'")

        def unsubscribe() -> None:
            self.unsubscribe(subscription_id)

        return unsubscribe

    def unsubscribe(self, subscription_id: int) -> bool:
        """
        Remove one registration by id.

        Returns:
            True if a registration was removed, False if it was already gone
        """
        with self._sub_lock:
            before = len(self._subscribers)
            self._subscribers = [
                (sid, cb) for sid, cb in self._subscribers if sid != subscription_id
            ]
            removed = len(self._subscribers) != before

        if removed:
            logger.debug(f"Unsubscribed #{subscription_id} from '{self.name}'")
        return removed

    def publish(self, payload: Any = None) -> int:
        """
        Deliver a payload to every current subscriber.

        Subscribers added during delivery are not called for this payload.

        Returns:
            Number of callbacks that completed without raising
        """
        with self._sub_lock:
            callbacks_to_call = [cb for _, cb in self._subscribers]
        self._stats["events_published"] += 1

        delivered = 0
        for callback in callbacks_to_call:
            try:
                callback(payload)
                delivered += 1
            except Exception as e:
                self._stats["errors"] += 1
                logger.error(f"Error in '{self.name}' callback {callback!r}: {e}", exc_info=True)

        self._stats["events_delivered"] += delivered
        return delivered

    def get_stats(self) -> dict[str, Any]:
        """Get subscriber count and delivery counters."""
        with self._sub_lock:
            stats = {"subscriber_count": len(self._subscribers)}
            stats.update(self._stats)
            return stats

    def has_subscribers(self) -> bool:
        with self._sub_lock:
            return bool(self._subscribers)

    def clear_all(self):
        """Clear all subscribers (for testing/cleanup)."""
        with self._sub_lock:
            self._subscribers.clear()
            logger.debug(f"All '{self.name}' subscribers cleared")

    def __len__(self) -> int:
        with self._sub_lock:
            return len(self._subscribers)
