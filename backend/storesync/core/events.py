"""
Invalidation Bus - tells consumers which cached views to refetch

Sync jobs publish a topic ("orders", "products", "proposed_prices") for a
tenant after they change remote data; read-side consumers subscribe and
refetch only what they hold instead of reloading all local state.
"""
import logging
from collections import defaultdict
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

ORDERS = "orders"
PRODUCTS = "products"
PROPOSED_PRICES = "proposed_prices"

Subscriber = Callable[[str, str], None]


class InvalidationBus:
    """Topic-based publish/subscribe for cache invalidation signals."""

    def __init__(self):
        self.subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self.stats = {
            'events_published': 0,
            'delivery_errors': 0,
        }

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for a topic.

        Args:
            topic: Topic name
            callback: Called as callback(topic, tenant_id)

        Returns:
            Function that removes the subscription
        """
        self.subscribers[topic].append(callback)

        def unsubscribe():
            if callback in self.subscribers[topic]:
                self.subscribers[topic].remove(callback)

        return unsubscribe

    def publish(self, topic: str, tenant_id: str) -> int:
        """
        Deliver an invalidation to every subscriber of the topic.

        A failing subscriber is logged and does not stop delivery to the rest.

        Returns:
            Number of subscribers that received the event
        """
        self.stats['events_published'] += 1
        delivered = 0

        for callback in list(self.subscribers.get(topic, [])):
            try:
                callback(topic, tenant_id)
                delivered += 1
            except Exception as e:
                self.stats['delivery_errors'] += 1
                logger.error(f"Invalidation subscriber failed for {topic}/{tenant_id}: {e}")

        logger.debug(f"Published invalidation {topic} for tenant {tenant_id} to {delivered} subscribers")
        return delivered


invalidation_bus = InvalidationBus()
