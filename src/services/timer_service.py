"""
Timer Service - the single logical timeline of a game session

All timed work (price ticks, round expiry, cooldown, countdown) is scheduled
through one TimerService, so callbacks interleave on one thread and never
run in parallel.

Backends:
    AsyncioTimerService: real time on an asyncio event loop
    ManualTimerService: virtual clock, timers fire only when advanced

Usage:
    timers = ManualTimerService(start_ms=0)
    handle = timers.call_later(1000, on_expiry)
    timers.advance(1000)   # on_expiry runs here
    handle.cancel()        # no-op once fired
"""

import asyncio
import heapq
import itertools
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

logger = logging.getLogger(__name__)

IntervalSource = int | Callable[[], int]


class TimerHandle:
    """Cancelable handle for a scheduled callback"""

    def __init__(self, cancel_fn: Callable[[], None] | None = None):
        self._cancel_fn = cancel_fn
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Cancel the callback (idempotent)"""
        if self._cancelled:
            return
        self._cancelled = True
        if self._cancel_fn is not None:
            self._cancel_fn()


class RepeatingTimer(TimerHandle):
    """
    Callback re-armed after every run

    The interval may be a callable; it is read each cycle, so a changed
    interval applies from the next cycle on.
    """

    def __init__(self, timers: "TimerService", interval: IntervalSource, callback: Callable[[], None]):
        super().__init__()
        self._timers = timers
        self._interval = interval
        self._callback = callback
        self._inner: TimerHandle | None = None

    def _next_interval(self) -> int:
        interval = self._interval() if callable(self._interval) else self._interval
        if interval <= 0:
            raise ValueError(f"Repeating interval must be positive, got {interval}")
        return interval

    def start(self) -> "RepeatingTimer":
        self._inner = self._timers.call_later(self._next_interval(), self._fire)
        return self

    def _fire(self) -> None:
        if self._cancelled:
            return
        # Re-arm first so the callback may cancel this handle
        self._inner = self._timers.call_later(self._next_interval(), self._fire)
        self._callback()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._inner is not None:
            self._inner.cancel()


class TimerService(ABC):
    """Clock plus one-shot and repeating timers"""

    @abstractmethod
    def now_ms(self) -> int:
        """Current timeline time in epoch milliseconds"""

    @abstractmethod
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        """Run callback once after delay_ms"""

    def call_every(self, interval: IntervalSource, callback: Callable[[], None]) -> TimerHandle:
        """Run callback every interval ms until the handle is cancelled"""
        return RepeatingTimer(self, interval, callback).start()


class AsyncioTimerService(TimerService):
    """
    Timers on an asyncio event loop

    Timestamps are wall-clock epoch milliseconds; delays use the loop's
    monotonic clock. The loop is looked up lazily, so the service can be
    created before asyncio.run() starts.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        asyncio_handle = self.loop.call_later(max(0, delay_ms) / 1000.0, self._run, callback)
        return TimerHandle(asyncio_handle.cancel)

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            logger.error(f"Timer callback {callback!r} failed: {e}", exc_info=True)


class ManualTimerService(TimerService):
    """
    Virtual clock for deterministic simulation

    Timers due at the same time fire in scheduling order. Exceptions raised by
    callbacks propagate out of advance().
    """

    def __init__(self, start_ms: int = 0):
        self._now = start_ms
        self._queue: list[tuple[int, int, TimerHandle, Callable[[], None]]] = []
        self._seq = itertools.count()
        self._advancing = False

    def now_ms(self) -> int:
        return self._now

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle()
        due = self._now + max(0, int(delay_ms))
        heapq.heappush(self._queue, (due, next(self._seq), handle, callback))
        return handle

    def pending_count(self) -> int:
        """Number of scheduled, not yet cancelled timers"""
        return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)

    def next_due(self) -> int | None:
        """Due time of the earliest live timer, if any"""
        self._drop_cancelled()
        return self._queue[0][0] if self._queue else None

    def advance(self, delta_ms: int) -> int:
        """
        Move the clock forward, firing every timer that falls due

        Returns:
            Number of callbacks run
        """
        if delta_ms < 0:
            raise ValueError(f"Cannot move the clock backwards ({delta_ms} ms)")
        return self.advance_to(self._now + delta_ms)

    def advance_to(self, target_ms: int) -> int:
        if target_ms < self._now:
            raise ValueError(f"Cannot move the clock backwards to {target_ms} (now {self._now})")
        if self._advancing:
            raise RuntimeError("advance() called from inside a timer callback")

        fired = 0
        self._advancing = True
        try:
            while self._queue and self._queue[0][0] <= target_ms:
                due, _, handle, callback = heapq.heappop(self._queue)
                if handle.cancelled:
                    continue
                self._now = due
                callback()
                fired += 1
            self._now = target_ms
        finally:
            self._advancing = False
        return fired

    def _drop_cancelled(self) -> None:
        while self._queue and self._queue[0][2].cancelled:
            heapq.heappop(self._queue)
