"""
Subscriber-count driven activation of upstream inputs.

Outputs are only worth computing while somebody listens to them. The
SubscriptionLifecycleManager consumes subscriber-count change events for the
outputs it tracks and drives a two-state machine:

    INACTIVE --(aggregate count 0 -> >0)--> ACTIVE      (activate upstream)
    ACTIVE   --(aggregate count   -> 0)--> INACTIVE    (deactivate upstream)

Tracking one topic gives the single-output policy; tracking every output of a
node gives the aggregated policy where any consumer keeps all inputs alive.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Tuple

from utils.logger_config import get_logger

from ..exceptions import LifecycleInvariantError

logger = get_logger(__name__)


class LifecycleState(Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"


@dataclass(frozen=True)
class SubscriberCountEvent:
    """Subscriber count of `topic` changed from old_count to new_count."""

    topic: str
    old_count: int
    new_count: int


class SubscriptionLifecycleManager:
    """
    Reference-counts consumers of a set of outputs and (de)activates upstream.

    All invariant violations raise LifecycleInvariantError; they indicate a
    wiring bug, never a sensor condition.
    """

    def __init__(
        self,
        name: str,
        topics: Iterable[str],
        activate: Callable[[], None],
        deactivate: Callable[[], None]
    ):
        """
        Args:
            name: Name used in log messages
            topics: Output topics whose subscriber counts are aggregated
            activate: Called once on the INACTIVE -> ACTIVE transition
            deactivate: Called once on the ACTIVE -> INACTIVE transition
        """
        self.name = name
        self._counts: Dict[str, int] = {topic: 0 for topic in topics}
        if not self._counts:
            raise ValueError("SubscriptionLifecycleManager needs at least one topic")

        self._activate_upstream = activate
        self._deactivate_upstream = deactivate
        self.state = LifecycleState.INACTIVE

        self.activation_count = 0
        self.deactivation_count = 0

    @property
    def topics(self) -> Tuple[str, ...]:
        return tuple(self._counts)

    @property
    def is_active(self) -> bool:
        return self.state is LifecycleState.ACTIVE

    @property
    def total_count(self) -> int:
        return sum(self._counts.values())

    def subscriber_count(self, topic: str) -> int:
        return self._counts[topic]

    def handle_event(self, event: SubscriberCountEvent) -> LifecycleState:
        """
        Apply one subscriber-count change and perform the resulting transition.

        Args:
            event: Count change for one tracked topic

        Returns:
            LifecycleState: State after the transition

        Raises:
            LifecycleInvariantError: On untracked topics, negative counts or an
                old_count that disagrees with the tracked count
        """
        if event.topic not in self._counts:
            raise LifecycleInvariantError(f"[{self.name}] Event for untracked topic '{event.topic}'")

        if event.old_count < 0 or event.new_count < 0:
            raise LifecycleInvariantError(
                f"[{self.name}] Negative subscriber count on '{event.topic}': "
                f"{event.old_count} -> {event.new_count}"
            )

        tracked = self._counts[event.topic]
        if event.old_count != tracked:
            raise LifecycleInvariantError(
                f"[{self.name}] Count mismatch on '{event.topic}': "
                f"event says {event.old_count}, tracked {tracked}"
            )

        self._counts[event.topic] = event.new_count
        total = self.total_count

        if self.state is LifecycleState.INACTIVE and total > 0:
            self._activate()
        elif self.state is LifecycleState.ACTIVE and total == 0:
            self._deactivate()

        return self.state

    def _activate(self) -> None:
        if self.state is LifecycleState.ACTIVE:
            raise LifecycleInvariantError(f"[{self.name}] Activation requested while already active")

        logger.debug(f"[{self.name}] Subscribing to upstream inputs")
        self._activate_upstream()
        self.state = LifecycleState.ACTIVE
        self.activation_count += 1

    def _deactivate(self) -> None:
        if self.state is LifecycleState.INACTIVE:
            raise LifecycleInvariantError(f"[{self.name}] Deactivation requested while inactive")
        if self.total_count != 0:
            raise LifecycleInvariantError(
                f"[{self.name}] Deactivation requested with {self.total_count} consumers left"
            )

        logger.debug(f"[{self.name}] Unsubscribing from upstream inputs")
        self._deactivate_upstream()
        self.state = LifecycleState.INACTIVE
        self.deactivation_count += 1
