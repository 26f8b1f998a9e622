"""
Synchronous in-process publish/subscribe transport.

Delivery is immediate and happens on the publishing call stack, which gives
the single logical thread of control the processing nodes rely on. Publishers
may register a status callback that receives a SubscriberCountEvent whenever
the number of subscribers on their topic changes.
"""

from typing import Any, Callable, Dict, List, Optional

from utils.logger_config import get_logger

from ..lifecycle import SubscriberCountEvent

logger = get_logger(__name__)

StatusCallback = Callable[[SubscriberCountEvent], None]


class Publisher:
    """Handle returned by LocalTransport.advertise()."""

    def __init__(self, transport: "LocalTransport", topic: str,
                 status_callback: Optional[StatusCallback]):
        self._transport = transport
        self.topic = topic
        self.status_callback = status_callback
        self.published_count = 0

    @property
    def num_subscribers(self) -> int:
        return self._transport.num_subscribers(self.topic)

    def publish(self, message: Any) -> None:
        self.published_count += 1
        self._transport._deliver(self.topic, message)

    def shutdown(self) -> None:
        self._transport._unadvertise(self)


class Subscription:
    """Handle returned by LocalTransport.subscribe()."""

    def __init__(self, transport: "LocalTransport", topic: str, callback: Callable[[Any], None]):
        self._transport = transport
        self.topic = topic
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._transport._remove_subscription(self)


class LocalTransport:
    """Topic registry delivering messages synchronously to subscribers."""

    def __init__(self):
        self._publishers: Dict[str, List[Publisher]] = {}
        self._subscriptions: Dict[str, List[Subscription]] = {}

    def advertise(self, topic: str, status_callback: Optional[StatusCallback] = None) -> Publisher:
        """
        Advertise a topic.

        If the topic already has subscribers, the status callback immediately
        receives one event from 0 to the current count.
        """
        publisher = Publisher(self, topic, status_callback)
        self._publishers.setdefault(topic, []).append(publisher)
        logger.debug(f"Advertised '{topic}'")

        current = self.num_subscribers(topic)
        if status_callback is not None and current > 0:
            status_callback(SubscriberCountEvent(topic, 0, current))
        return publisher

    def subscribe(self, topic: str, callback: Callable[[Any], None]) -> Subscription:
        subscription = Subscription(self, topic, callback)
        subscriptions = self._subscriptions.setdefault(topic, [])
        old_count = len(subscriptions)
        subscriptions.append(subscription)
        logger.debug(f"Subscribed to '{topic}' ({old_count + 1} subscribers)")
        self._notify(topic, old_count, old_count + 1)
        return subscription

    def num_subscribers(self, topic: str) -> int:
        return len(self._subscriptions.get(topic, ()))

    def is_advertised(self, topic: str) -> bool:
        return bool(self._publishers.get(topic))

    def advertised_topics(self) -> List[str]:
        return sorted(topic for topic, publishers in self._publishers.items() if publishers)

    def _deliver(self, topic: str, message: Any) -> None:
        for subscription in list(self._subscriptions.get(topic, ())):
            if subscription.active:
                subscription.callback(message)

    def _remove_subscription(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.topic, [])
        old_count = len(subscriptions)
        subscriptions.remove(subscription)
        logger.debug(f"Unsubscribed from '{subscription.topic}' ({old_count - 1} subscribers)")
        self._notify(subscription.topic, old_count, old_count - 1)

    def _unadvertise(self, publisher: Publisher) -> None:
        publishers = self._publishers.get(publisher.topic, [])
        if publisher in publishers:
            publishers.remove(publisher)

    def _notify(self, topic: str, old_count: int, new_count: int) -> None:
        event = SubscriberCountEvent(topic, old_count, new_count)
        for publisher in list(self._publishers.get(topic, ())):
            if publisher.status_callback is not None:
                publisher.status_callback(event)
