"""
Exact-time synchronization of N independently arriving message streams.

A TimeSynchronizer collects messages per timestamp and emits one
SynchronizedTuple as soon as every input has delivered a message carrying the
same stamp. Matching is exact: stamps must be identical integers.
"""

from functools import partial
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from utils.logger_config import get_logger

logger = get_logger(__name__)


def header_stamp(message: Any) -> int:
    """Default stamp getter: message.header.stamp."""
    return message.header.stamp


class SynchronizedTuple:
    """
    Fixed-arity group of messages sharing one timestamp.

    Built for a single callback invocation and iterable, so callbacks can
    receive the frames as positional arguments.
    """

    __slots__ = ('stamp', 'frames')

    def __init__(self, stamp: int, frames: Tuple[Any, ...]):
        self.stamp = stamp
        self.frames = frames

    def __iter__(self) -> Iterator[Any]:
        return iter(self.frames)

    def __len__(self) -> int:
        return len(self.frames)

    def __getitem__(self, index: int) -> Any:
        return self.frames[index]

    def __repr__(self) -> str:
        return f"SynchronizedTuple(stamp={self.stamp}, arity={len(self.frames)})"


class TimeSynchronizer:
    """
    Joins N message streams on exactly matching timestamps.

    Behavior:
    - A message whose stamp is not newer than the last emitted tuple is dropped.
    - A second message with the same stamp on the same input replaces the first.
    - When a tuple completes it is emitted, and every pending tuple with an
      older stamp is discarded.
    - At most `queue_size` incomplete tuples are kept; on overflow the oldest
      is dropped silently (freshness over completeness).

    Streams that never match simply stall output; no timeout is applied.
    """

    def __init__(
        self,
        num_inputs: int,
        queue_size: int,
        stamp_getter: Callable[[Any], int] = header_stamp,
        name: str = "sync"
    ):
        """
        Args:
            num_inputs: Number of streams to join (arity of emitted tuples)
            queue_size: Maximum number of incomplete tuples held
            stamp_getter: Extracts the timestamp from a message
            name: Name used in log messages
        """
        if num_inputs < 2:
            raise ValueError(f"num_inputs must be at least 2, got {num_inputs}")
        if queue_size < 1:
            raise ValueError(f"queue_size must be positive, got {queue_size}")

        self.num_inputs = num_inputs
        self.queue_size = queue_size
        self.name = name
        self._stamp_getter = stamp_getter

        self._pending: Dict[int, List[Optional[Any]]] = {}
        self._last_signal_stamp: Optional[int] = None
        self._callbacks: Dict[int, Callable[..., None]] = {}
        self._next_handle = 0

        self.dropped_count = 0
        self.emitted_count = 0

    def register_callback(self, callback: Callable[..., None]) -> int:
        """
        Register a callback receiving the synchronized messages positionally.

        Returns:
            int: Handle for disconnect()
        """
        handle = self._next_handle
        self._next_handle += 1
        self._callbacks[handle] = callback
        return handle

    def disconnect(self, handle: int) -> None:
        self._callbacks.pop(handle, None)

    def input_callback(self, index: int) -> Callable[[Any], None]:
        """Callable feeding messages into input `index`, for use as a subscriber callback."""
        self._check_index(index)
        return partial(self.add, index)

    def add(self, index: int, message: Any) -> None:
        """
        Add a message to input `index` and emit a tuple if it completes one.

        Args:
            index: Input slot in [0, num_inputs)
            message: Message carrying a timestamp
        """
        self._check_index(index)
        stamp = self._stamp_getter(message)

        if self._last_signal_stamp is not None and stamp <= self._last_signal_stamp:
            logger.debug(f"[{self.name}] Dropping input {index} message at {stamp}: "
                         f"not newer than last emitted tuple {self._last_signal_stamp}")
            self.dropped_count += 1
            return

        slots = self._pending.get(stamp)
        if slots is None:
            slots = [None] * self.num_inputs
            self._pending[stamp] = slots
        slots[index] = message

        if all(slot is not None for slot in slots):
            self._signal(stamp, slots)
        else:
            self._enforce_queue_size()

    def reset(self) -> None:
        """Forget pending tuples and the last emitted stamp."""
        self._pending.clear()
        self._last_signal_stamp = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def last_signal_stamp(self) -> Optional[int]:
        return self._last_signal_stamp

    def _signal(self, stamp: int, slots: List[Any]) -> None:
        self._pending = {s: v for s, v in self._pending.items() if s > stamp}
        self._last_signal_stamp = stamp
        self.emitted_count += 1

        synced = SynchronizedTuple(stamp, tuple(slots))
        for callback in list(self._callbacks.values()):
            callback(*synced)

    def _enforce_queue_size(self) -> None:
        while len(self._pending) > self.queue_size:
            oldest = min(self._pending)
            del self._pending[oldest]
            self.dropped_count += 1
            logger.debug(f"[{self.name}] Queue full, dropped incomplete tuple at {oldest}")

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.num_inputs:
            raise IndexError(f"Input index {index} out of range for {self.num_inputs} inputs")
