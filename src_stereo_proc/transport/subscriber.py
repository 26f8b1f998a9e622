"""
On-demand input subscriptions.

An InputSubscriber owns the subscription of one upstream topic and can be
switched on and off by a lifecycle manager. An InputGroup switches several
inputs together, since synchronized inputs are only useful as a set.
"""

from typing import Any, Callable, Iterable, Optional, Tuple

from utils.logger_config import get_logger

from ..exceptions import LifecycleInvariantError
from .local_transport import LocalTransport, Subscription

logger = get_logger(__name__)


class InputSubscriber:
    """Subscription to one upstream topic that can be toggled on demand."""

    def __init__(self, transport: LocalTransport, topic: str, callback: Callable[[Any], None]):
        self.transport = transport
        self.topic = topic
        self.callback = callback
        self._subscription: Optional[Subscription] = None

    @property
    def active(self) -> bool:
        return self._subscription is not None

    def subscribe(self) -> None:
        if self._subscription is not None:
            raise LifecycleInvariantError(f"Input '{self.topic}' is already subscribed")
        self._subscription = self.transport.subscribe(self.topic, self.callback)

    def unsubscribe(self) -> None:
        if self._subscription is None:
            raise LifecycleInvariantError(f"Input '{self.topic}' is not subscribed")
        self._subscription.unsubscribe()
        self._subscription = None


class InputGroup:
    """Inputs that are subscribed and unsubscribed together."""

    def __init__(self, inputs: Iterable[InputSubscriber]):
        self.inputs: Tuple[InputSubscriber, ...] = tuple(inputs)

    @property
    def topics(self) -> Tuple[str, ...]:
        return tuple(i.topic for i in self.inputs)

    @property
    def active(self) -> bool:
        return any(i.active for i in self.inputs)

    def subscribe_all(self) -> None:
        logger.info(f"Subscribing to {', '.join(self.topics)}")
        for i in self.inputs:
            i.subscribe()

    def unsubscribe_all(self) -> None:
        logger.info(f"Unsubscribing from {', '.join(self.topics)}")
        for i in self.inputs:
            i.unsubscribe()
