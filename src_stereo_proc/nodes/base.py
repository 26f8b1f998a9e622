"""
Base class for stereo processing nodes.

A node joins several input topics with an exact-time synchronizer, processes
each synchronized tuple and publishes results. Inputs are subscribed only
while at least one tracked output has a consumer.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from utils.logger_config import get_logger

from ..exceptions import StereoProcError
from ..lifecycle import SubscriberCountEvent, SubscriptionLifecycleManager
from ..sync import TimeSynchronizer
from ..transport import AdvertisementChecker, InputGroup, InputSubscriber, LocalTransport, Publisher


class BaseNode(ABC):
    """
    Common wiring of synchronized inputs, on-demand activation and outputs.

    Subclasses provide the input and output topic names and implement
    _process_tuple(), which receives the synchronized messages in input order.
    """

    def __init__(
        self,
        name: str,
        transport: LocalTransport,
        queue_size: int,
        advertisement_warning_period: float = 60.0
    ):
        """
        Args:
            name: Node name used in log messages
            transport: Transport the node subscribes and publishes on
            queue_size: Synchronizer queue size
            advertisement_warning_period: Seconds between warnings about an
                input topic nobody advertises
        """
        self.name = name
        self.transport = transport
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

        input_topics = self.input_topics()
        self.synchronizer = TimeSynchronizer(len(input_topics), queue_size, name=name)
        self.synchronizer.register_callback(self._on_synchronized)

        self.inputs = InputGroup(
            InputSubscriber(transport, topic, self.synchronizer.input_callback(index))
            for index, topic in enumerate(input_topics)
        )
        self.advertisement_checker = AdvertisementChecker(
            transport, name, input_topics, advertisement_warning_period
        )

        self.lifecycle = SubscriptionLifecycleManager(
            name, self.tracked_outputs(), self._subscribe_inputs, self._unsubscribe_inputs
        )

        self.processed_count = 0
        self.skipped_count = 0

        # Advertised last: a topic with consumers already triggers activation.
        self.publishers: Dict[str, Publisher] = {}
        for topic in self.output_topics():
            self.publishers[topic] = transport.advertise(topic, self._on_subscriber_count)

        self.logger.info(f"{self.__class__.__name__} '{name}' ready: "
                         f"inputs={list(input_topics)}, outputs={list(self.publishers)}")

    @abstractmethod
    def input_topics(self) -> List[str]:
        """Topics joined by the synchronizer, in callback argument order."""

    @abstractmethod
    def output_topics(self) -> List[str]:
        """Topics this node publishes."""

    def tracked_outputs(self) -> Iterable[str]:
        """Outputs whose consumers keep the inputs subscribed."""
        return self.output_topics()

    @abstractmethod
    def _process_tuple(self, *messages: Any) -> bool:
        """Process one synchronized tuple and publish the results; False if it was skipped."""

    @property
    def is_active(self) -> bool:
        return self.lifecycle.is_active

    def check_inputs(self) -> List[str]:
        """Warn (throttled) about unadvertised inputs; returns the missing topics."""
        return self.advertisement_checker.check()

    def publisher(self, topic: str) -> Optional[Publisher]:
        return self.publishers.get(topic)

    def shutdown(self) -> None:
        for publisher in self.publishers.values():
            publisher.shutdown()
        if self.inputs.active:
            self._unsubscribe_inputs()

    def _on_subscriber_count(self, event: SubscriberCountEvent) -> None:
        if event.topic in self.lifecycle.topics:
            self.lifecycle.handle_event(event)

    def _subscribe_inputs(self) -> None:
        self.inputs.subscribe_all()

    def _unsubscribe_inputs(self) -> None:
        self.inputs.unsubscribe_all()
        self.synchronizer.reset()

    def _on_synchronized(self, *messages: Any) -> None:
        try:
            processed = self._process_tuple(*messages)
        except StereoProcError as e:
            self.logger.warning(f"[{self.name}] Skipping tuple: {e}")
            processed = False

        if processed:
            self.processed_count += 1
        else:
            self.skipped_count += 1
