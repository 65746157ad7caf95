"""
PriceRingBuffer - Circular buffer for the synthetic price series

Keeps the visible window of the chart bounded: once full, every append
discards the oldest point.
"""

import logging
import threading
from collections import deque

from models import PricePoint

logger = logging.getLogger(__name__)


class PriceRingBuffer:
    """
    Fixed-size buffer of PricePoints, oldest first

    Features:
    - Automatic eviction of oldest points when full
    - Inclusive timestamp range queries
    - Thread-safe operations for renderers reading from another thread
    """

    def __init__(self, max_size: int = 180):
        """
        Initialize ring buffer

        Args:
            max_size: Maximum number of points to store
        """
        if max_size <= 0:
            raise ValueError(f"Buffer size must be positive, got {max_size}")

        self.max_size = max_size
        self._buffer: deque[PricePoint] = deque(maxlen=max_size)
        self._lock = threading.RLock()

        logger.debug(f"PriceRingBuffer initialized: max_size={max_size}")

    def append(self, point: PricePoint) -> PricePoint | None:
        """
        Append point to buffer

        Returns:
            The evicted point, if the buffer was full
        """
        with self._lock:
            evicted = self._buffer[0] if len(self._buffer) == self.max_size else None
            self._buffer.append(point)
            return evicted

    def get_latest(self, n: int | None = None) -> list[PricePoint]:
        """
        Get latest N points (or all if n=None), newest last
        """
        with self._lock:
            if n is None:
                return list(self._buffer)

            if n <= 0:
                return []

            return list(self._buffer)[-n:]

    def get_all(self) -> list[PricePoint]:
        with self._lock:
            return list(self._buffer)

    def get_at(self, index: int) -> PricePoint | None:
        """Point at a non-negative index, or None if out of range"""
        with self._lock:
            if 0 <= index < len(self._buffer):
                return self._buffer[index]
            return None

    def get_range(self, start_ts: int, end_ts: int) -> list[PricePoint]:
        """
        Get points with start_ts <= timestamp <= end_ts, ascending
        """
        with self._lock:
            return [p for p in self._buffer if start_ts <= p.timestamp <= end_ts]

    def get_points_around(self, timestamp: int, count: int) -> list[PricePoint]:
        """
        Get up to `count` points centred on the first point at or after `timestamp`

        Returns:
            Empty list if every point is older than `timestamp`
        """
        with self._lock:
            points = list(self._buffer)

        index = next((i for i, p in enumerate(points) if p.timestamp >= timestamp), None)
        if index is None or count <= 0:
            return []

        start = max(0, index - count // 2)
        return points[start:start + count]

    def clear(self):
        with self._lock:
            self._buffer.clear()
            logger.debug("PriceRingBuffer cleared")

    def is_full(self) -> bool:
        with self._lock:
            return len(self._buffer) >= self.max_size

    def get_oldest(self) -> PricePoint | None:
        with self._lock:
            return self._buffer[0] if self._buffer else None

    def get_newest(self) -> PricePoint | None:
        with self._lock:
            return self._buffer[-1] if self._buffer else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)

    def __bool__(self) -> bool:
        return len(self) > 0

    def __repr__(self) -> str:
        with self._lock:
            return (
                f"PriceRingBuffer(size={len(self._buffer)}/{self.max_size}, "
                f"oldest={self._buffer[0].timestamp if self._buffer else None}, "
                f"newest={self._buffer[-1].timestamp if self._buffer else None})"
            )
