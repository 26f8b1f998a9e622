"""
Periodic warning for required inputs nobody advertises.

A node that waits on synchronized inputs produces nothing if one of them is
never published, and the synchronizer itself cannot tell. The checker lets the
host surface that condition without flooding the log.
"""

import time
from typing import Callable, Iterable, List

from utils.logger_config import get_logger, ThrottledLogger

from .local_transport import LocalTransport

logger = get_logger(__name__)


class AdvertisementChecker:
    """Warns, at most once per period per topic, about unadvertised inputs."""

    def __init__(
        self,
        transport: LocalTransport,
        node_name: str,
        topics: Iterable[str],
        period: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.transport = transport
        self.node_name = node_name
        self.topics = list(topics)
        self.period = period
        self._throttle = ThrottledLogger(logger, clock)

    def check(self) -> List[str]:
        """
        Check every input topic once.

        Returns:
            List[str]: Topics that are currently not advertised
        """
        missing = [topic for topic in self.topics if not self.transport.is_advertised(topic)]
        for topic in missing:
            self._throttle.warning(
                topic, self.period,
                f"[{self.node_name}] The input topic '{topic}' is not yet advertised"
            )
        return missing
