"""
Price Feed - synthetic price series

Bounded random walk with optional drift:

    next = max(prev + prev * volatility * U(-1, 1) + prev * drift, floor)

The feed owns the ring buffer of PricePoints and notifies tick observers
synchronously, in subscription order, on every tick.

The price exposed to bettors (current_price) is the point at a look-back
offset into the buffer (75% of the visible window by default), not the
freshest tick. The remaining quarter of the window is the forward buffer a
chart uses to draw unresolved ticks after a prediction marker.
"""

import logging
import time
from collections.abc import Callable

import numpy as np

from models import Direction, GameSettings, PredictionMarker, PricePoint
from services.event_bus import EventBus
from services.timer_service import TimerHandle, TimerService

from .errors import AlreadyRunning
from .price_buffer import PriceRingBuffer

logger = logging.getLogger(__name__)

# Spread of the seeded history around the initial price (±1%)
PREFILL_SPREAD = 0.01


class PriceFeed:
    """
    Generates and stores the synthetic price series

    Usage:
        feed = PriceFeed(initial_price=150.0, volatility=0.01, seed=7)
        unsubscribe = feed.subscribe(lambda point: print(point.price))
        feed.start(timers)       # ticks every tick_interval_ms
        feed.current_price()     # look-back price used for bets
        feed.stop()
    """

    def __init__(
        self,
        initial_price: float = 150.0,
        volatility: float = 0.01,
        drift: float = 0.0,
        tick_interval_ms: int = 1000,
        max_points: int = 180,
        lookback_offset_ratio: float = 0.75,
        price_floor: float = 0.01,
        rng: np.random.Generator | None = None,
        seed: int | None = None,
    ):
        if initial_price <= 0:
            raise ValueError(f"Initial price must be positive, got {initial_price}")
        if price_floor <= 0:
            raise ValueError(f"Price floor must be positive, got {price_floor}")

        self._initial_price = float(initial_price)
        self._price_floor = float(price_floor)
        self._last_price = self._initial_price
        self._rng = rng if rng is not None else np.random.default_rng(seed)
        self._buffer = PriceRingBuffer(max_points)

        self._volatility = 0.0
        self._drift = 0.0
        self._tick_interval_ms = 1
        self._lookback_offset_ratio = 1.0
        self.set_volatility(volatility)
        self.set_drift(drift)
        self.set_tick_interval(tick_interval_ms)
        self.set_lookback_offset_ratio(lookback_offset_ratio)

        self._observers = EventBus("price_ticks")
        self._timers: TimerService | None = None
        self._tick_timer: TimerHandle | None = None
        self._running = False
        self._tick_count = 0
        self._resync_pending = False
        self._marker: PredictionMarker | None = None

        logger.info(
            f"PriceFeed initialized: price={self._initial_price}, volatility={self._volatility}, "
            f"drift={self._drift}, step={self._tick_interval_ms}ms"
        )

    @classmethod
    def from_settings(cls, settings: GameSettings, rng: np.random.Generator | None = None) -> "PriceFeed":
        return cls(
            initial_price=settings.initial_price,
            volatility=settings.volatility,
            drift=settings.drift,
            tick_interval_ms=settings.price_tick_interval_ms,
            max_points=settings.max_price_points,
            lookback_offset_ratio=settings.lookback_offset_ratio,
            price_floor=settings.price_floor,
            rng=rng,
            seed=settings.seed,
        )

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    @property
    def buffer(self) -> PriceRingBuffer:
        return self._buffer

    @property
    def initial_price(self) -> float:
        return self._initial_price

    @property
    def volatility(self) -> float:
        return self._volatility

    @property
    def drift(self) -> float:
        return self._drift

    @property
    def tick_interval_ms(self) -> int:
        return self._tick_interval_ms

    @property
    def lookback_offset_ratio(self) -> float:
        return self._lookback_offset_ratio

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def tick_count(self) -> int:
        """Ticks generated by the walk (seeded history excluded)"""
        return self._tick_count

    @property
    def prediction_marker(self) -> PredictionMarker | None:
        """Most recently marked prediction point"""
        return self._marker

    # ========================================================================
    # RUNTIME CONFIGURATION (applies from the next tick)
    # ========================================================================

    def set_volatility(self, volatility: float):
        if not volatility >= 0:
            raise ValueError(f"Volatility must be non-negative, got {volatility}")
        self._volatility = float(volatility)

    def set_drift(self, drift: float):
        if not -1.0 < drift < 1.0:
            raise ValueError(f"Drift must be in (-1, 1), got {drift}")
        self._drift = float(drift)

    def set_tick_interval(self, interval_ms: int):
        """Change both the tick cadence and the timestamp step"""
        if interval_ms <= 0:
            raise ValueError(f"Tick interval must be positive, got {interval_ms}")
        self._tick_interval_ms = int(interval_ms)

    def set_lookback_offset_ratio(self, ratio: float):
        if not 0.0 < ratio <= 1.0:
            raise ValueError(f"Look-back offset ratio must be in (0, 1], got {ratio}")
        self._lookback_offset_ratio = float(ratio)

    # ========================================================================
    # GENERATION
    # ========================================================================

    def seed_history(self, now_ms: int | None = None) -> int:
        """
        Fill the buffer with a full window of points around the initial price

        Points are spaced one step apart and end at `now_ms`, so the chart
        and the look-back price are meaningful from the first frame.

        Returns:
            Number of points added
        """
        now = self._now() if now_ms is None else now_ms
        count = self._buffer.max_size
        for i in range(count - 1, -1, -1):
            factor = 1.0 + float(self._rng.uniform(-PREFILL_SPREAD, PREFILL_SPREAD))
            price = max(self._price_floor, self._initial_price * factor)
            self._buffer.append(PricePoint(timestamp=now - i * self._tick_interval_ms, price=price))
            self._last_price = price

        logger.debug(f"Seeded {count} price points ending at {now}")
        return count

    def tick(self) -> PricePoint:
        """
        Advance the walk by one step and notify observers

        Returns:
            The new PricePoint
        """
        newest = self._buffer.get_newest()
        if newest is not None:
            timestamp = newest.timestamp + self._tick_interval_ms
            if self._resync_pending:
                # First tick after start(): skip over the time the feed was stopped
                timestamp = max(timestamp, self._now())
        else:
            timestamp = self._now()
        self._resync_pending = False

        draw = float(self._rng.uniform(-1.0, 1.0))
        prev = self._last_price
        candidate = prev + prev * self._volatility * draw + prev * self._drift
        price = max(self._price_floor, candidate)

        point = PricePoint(timestamp=timestamp, price=price)
        self._buffer.append(point)
        self._last_price = price
        self._tick_count += 1

        self._observers.publish(point)
        return point

    # ========================================================================
    # QUERIES
    # ========================================================================

    def current_price(self) -> float:
        """
        Price at the look-back offset of the buffer

        Falls back to the freshest point when the offset index is invalid,
        and to the initial price before any point exists.
        """
        index = int(len(self._buffer) * self._lookback_offset_ratio) - 1
        point = self._buffer.get_at(index) if index >= 0 else None
        if point is not None:
            return point.price

        newest = self._buffer.get_newest()
        return newest.price if newest is not None else self._last_price

    def current_point(self) -> PricePoint | None:
        """PricePoint behind current_price(), if the buffer has one"""
        index = int(len(self._buffer) * self._lookback_offset_ratio) - 1
        point = self._buffer.get_at(index) if index >= 0 else None
        return point if point is not None else self._buffer.get_newest()

    def latest_point(self) -> PricePoint | None:
        return self._buffer.get_newest()

    def latest(self, n: int | None = None) -> list[PricePoint]:
        return self._buffer.get_latest(n)

    def historical_range(self, from_ts: int, to_ts: int) -> list[PricePoint]:
        """Points with from_ts <= timestamp <= to_ts, ascending"""
        return self._buffer.get_range(from_ts, to_ts)

    def historical_window(self, minutes: float) -> list[PricePoint]:
        """Points from the last `minutes` of timeline time"""
        now = self._now()
        return self._buffer.get_range(now - int(minutes * 60_000), now)

    def points_around(self, timestamp: int, count: int) -> list[PricePoint]:
        return self._buffer.get_points_around(timestamp, count)

    def mark_prediction_point(self, direction: Direction) -> float:
        """
        Mark the look-back point as the place a prediction was made

        Returns:
            The marked price (the price the prediction was made at)
        """
        point = self.current_point()
        if point is None:
            return self._last_price

        self._marker = PredictionMarker(
            timestamp=point.timestamp, price=point.price, direction=Direction(direction)
        )
        logger.debug(f"Prediction point marked: {self._marker}")
        return point.price

    # ========================================================================
    # OBSERVERS
    # ========================================================================

    def subscribe(self, observer: Callable[[PricePoint], None]) -> Callable[[], None]:
        """
        Register a tick observer

        Returns:
            Unsubscribe handle (idempotent)
        """
        return self._observers.subscribe(observer)

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def attach(self, timers: TimerService):
        """Use `timers` as the clock for timestamps without starting ticks"""
        self._timers = timers

    def start(self, timers: TimerService | None = None):
        """
        Tick every tick_interval_ms on `timers`

        The interval is re-read every cycle, so set_tick_interval() applies
        from the next tick on.
        """
        if self._running:
            raise AlreadyRunning("PriceFeed already running")

        if timers is not None:
            self._timers = timers
        if self._timers is None:
            raise ValueError("PriceFeed.start() needs a TimerService")

        self._running = True
        self._resync_pending = True
        self._tick_timer = self._timers.call_every(lambda: self._tick_interval_ms, self._on_tick_timer)
        logger.info(f"PriceFeed started ({self._tick_interval_ms}ms ticks)")

    def stop(self):
        """Cancel the tick timer (no-op when not running)"""
        if not self._running:
            return

        self._running = False
        if self._tick_timer is not None:
            self._tick_timer.cancel()
            self._tick_timer = None
        logger.info(f"PriceFeed stopped after {self._tick_count} ticks")

    def _on_tick_timer(self):
        # Liveness guard: a timer may already be queued when stop() runs
        if not self._running:
            return
        self.tick()

    def _now(self) -> int:
        if self._timers is not None:
            return self._timers.now_ms()
        return int(time.time() * 1000)

    def __repr__(self) -> str:
        return (
            f"PriceFeed(price={self.current_price():.4f}, points={len(self._buffer)}, "
            f"running={self._running})"
        )
