"""
Tests for PriceFeed - synthetic random walk, look-back price and tick timer
"""

from unittest.mock import Mock

import pytest

from core import AlreadyRunning, PriceFeed
from models import Direction
from services.timer_service import ManualTimerService


class AdversarialRng:
    """Always draws the most negative move"""

    def uniform(self, low, high):
        return low


class FixedRng:
    """Always draws the same value"""

    def __init__(self, value):
        self.value = value

    def uniform(self, low, high):
        return self.value


def make_feed(timers=None, **kwargs):
    feed = PriceFeed(**kwargs)
    if timers is not None:
        feed.attach(timers)
    return feed


class TestPriceFeedInit:
    """Tests for PriceFeed construction"""

    def test_defaults(self):
        feed = PriceFeed()

        assert feed.initial_price == 150.0
        assert feed.volatility == 0.01
        assert feed.drift == 0.0
        assert feed.tick_interval_ms == 1000
        assert feed.lookback_offset_ratio == 0.75
        assert feed.buffer.max_size == 180
        assert not feed.is_running

    def test_empty_feed_reports_initial_price(self):
        feed = PriceFeed(initial_price=42.0)

        assert feed.current_price() == 42.0
        assert feed.current_point() is None
        assert feed.latest_point() is None

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"initial_price": 0},
            {"price_floor": 0},
            {"volatility": -0.1},
            {"drift": 1.0},
            {"drift": -1.0},
            {"tick_interval_ms": 0},
            {"lookback_offset_ratio": 0},
            {"lookback_offset_ratio": 1.5},
            {"max_points": 0},
        ],
    )
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            PriceFeed(**kwargs)

    def test_from_settings(self, settings):
        feed = PriceFeed.from_settings(settings.merged(initial_price=99.0, max_price_points=60))

        assert feed.initial_price == 99.0
        assert feed.buffer.max_size == 60


class TestPriceFeedTick:
    """Tests for tick generation"""

    def test_first_tick_uses_clock_time(self, timers):
        feed = make_feed(timers)

        point = feed.tick()

        assert point.timestamp == timers.now_ms()
        assert feed.tick_count == 1
        assert feed.latest_point() == point

    def test_timestamps_advance_one_step(self, timers):
        feed = make_feed(timers, tick_interval_ms=250)

        first = feed.tick()
        second = feed.tick()
        third = feed.tick()

        assert second.timestamp - first.timestamp == 250
        assert third.timestamp - second.timestamp == 250

    def test_flat_walk_without_volatility_or_drift(self, timers):
        feed = make_feed(timers, volatility=0.0, drift=0.0)

        prices = [feed.tick().price for _ in range(10)]

        assert prices == [150.0] * 10

    def test_drift_moves_price(self, timers):
        feed = make_feed(timers, volatility=0.0, drift=0.01)

        point = feed.tick()

        assert point.price == pytest.approx(151.5)

    def test_volatility_bounds_the_move(self, timers):
        feed = make_feed(timers, volatility=0.01, rng=FixedRng(1.0))

        point = feed.tick()

        assert point.price == pytest.approx(151.5)

    def test_price_floor_holds_under_adversarial_draws(self, timers):
        feed = make_feed(timers, volatility=5.0, price_floor=0.01, rng=AdversarialRng())

        prices = [feed.tick().price for _ in range(100)]

        assert all(price > 0 for price in prices)
        assert min(prices) == 0.01

    def test_seeded_walks_are_reproducible(self, timers):
        first = make_feed(timers, seed=7)
        second = make_feed(timers, seed=7)
        other = make_feed(timers, seed=8)

        series_a = [first.tick().price for _ in range(20)]
        series_b = [second.tick().price for _ in range(20)]
        series_c = [other.tick().price for _ in range(20)]

        assert series_a == series_b
        assert series_a != series_c

    def test_buffer_is_bounded(self, timers):
        feed = make_feed(timers, max_points=5)

        for _ in range(12):
            feed.tick()

        assert len(feed.buffer) == 5
        assert feed.tick_count == 12


class TestPriceFeedLookback:
    """Tests for current_price()"""

    def test_current_price_uses_lookback_offset(self, timers):
        feed = make_feed(timers, volatility=0.0, drift=0.01)
        for _ in range(8):
            feed.tick()

        # int(8 * 0.75) - 1 == 5
        assert feed.current_price() == feed.buffer.get_at(5).price
        assert feed.current_price() < feed.latest_point().price
        assert feed.current_point() == feed.buffer.get_at(5)

    def test_single_point_falls_back_to_newest(self, timers):
        feed = make_feed(timers, drift=0.01, volatility=0.0)

        point = feed.tick()

        assert feed.current_price() == point.price

    def test_full_ratio_reads_newest(self, timers):
        feed = make_feed(timers, drift=0.01, volatility=0.0, lookback_offset_ratio=1.0)
        for _ in range(4):
            feed.tick()

        assert feed.current_price() == feed.latest_point().price

    def test_ratio_change_applies_immediately(self, timers):
        feed = make_feed(timers, drift=0.01, volatility=0.0)
        for _ in range(8):
            feed.tick()

        feed.set_lookback_offset_ratio(0.5)

        assert feed.current_price() == feed.buffer.get_at(3).price


class TestPriceFeedHistory:
    """Tests for seeded history and range queries"""

    def test_seed_history_fills_window(self, timers):
        feed = make_feed(timers, max_points=30)

        added = feed.seed_history()

        assert added == 30
        assert feed.buffer.is_full()
        points = feed.latest()
        assert points[-1].timestamp == timers.now_ms()
        assert all(b.timestamp - a.timestamp == 1000 for a, b in zip(points, points[1:]))
        assert all(148.5 <= p.price <= 151.5 for p in points)

    def test_tick_after_seed_continues_timeline(self, timers):
        feed = make_feed(timers, max_points=30)
        feed.seed_history()

        point = feed.tick()

        assert point.timestamp == timers.now_ms() + 1000

    def test_historical_range_inclusive(self, timers):
        feed = make_feed(timers)
        points = [feed.tick() for _ in range(5)]

        result = feed.historical_range(points[1].timestamp, points[3].timestamp)

        assert result == points[1:4]

    def test_historical_window(self, timers):
        feed = make_feed(timers, max_points=30)
        feed.seed_history()

        window = feed.historical_window(0.25)

        # 15 seconds back inclusive of both ends
        assert len(window) == 16

    def test_points_around(self, timers):
        feed = make_feed(timers)
        points = [feed.tick() for _ in range(5)]

        assert feed.points_around(points[2].timestamp, 3) == points[1:4]


class TestPriceFeedPredictionMarker:
    """Tests for mark_prediction_point()"""

    def test_marks_lookback_point(self, timers):
        feed = make_feed(timers, drift=0.01, volatility=0.0)
        for _ in range(8):
            feed.tick()

        price = feed.mark_prediction_point(Direction.UP)

        marker = feed.prediction_marker
        assert price == feed.current_price()
        assert marker.price == price
        assert marker.timestamp == feed.buffer.get_at(5).timestamp
        assert marker.direction == Direction.UP

    def test_empty_buffer_returns_initial_price(self):
        feed = PriceFeed(initial_price=150.0)

        assert feed.mark_prediction_point("down") == 150.0
        assert feed.prediction_marker is None


class TestPriceFeedObservers:
    """Tests for tick observers"""

    def test_observer_receives_each_tick(self, timers):
        feed = make_feed(timers)
        observer = Mock()
        feed.subscribe(observer)

        point = feed.tick()

        observer.assert_called_once_with(point)

    def test_unsubscribe_stops_delivery(self, timers):
        feed = make_feed(timers)
        observer = Mock()
        unsubscribe = feed.subscribe(observer)

        unsubscribe()
        unsubscribe()
        feed.tick()

        observer.assert_not_called()

    def test_failing_observer_does_not_stop_the_feed(self, timers):
        feed = make_feed(timers)
        feed.subscribe(Mock(side_effect=RuntimeError("boom")))
        healthy = Mock()
        feed.subscribe(healthy)

        feed.tick()
        feed.tick()

        assert healthy.call_count == 2
        assert feed.tick_count == 2


class TestPriceFeedLifecycle:
    """Tests for start/stop on a TimerService"""

    def test_start_ticks_every_interval(self, timers):
        feed = PriceFeed()

        feed.start(timers)
        timers.advance(5_000)

        assert feed.is_running
        assert feed.tick_count == 5

    def test_start_twice_raises(self, timers):
        feed = PriceFeed()
        feed.start(timers)

        with pytest.raises(AlreadyRunning):
            feed.start(timers)

    def test_start_without_timers_raises(self):
        with pytest.raises(ValueError, match="TimerService"):
            PriceFeed().start()

    def test_stop_cancels_ticks(self, timers):
        feed = PriceFeed()
        feed.start(timers)
        timers.advance(3_000)

        feed.stop()
        timers.advance(10_000)

        assert not feed.is_running
        assert feed.tick_count == 3
        assert timers.pending_count() == 0

    def test_stop_when_not_running_is_noop(self):
        feed = PriceFeed()

        feed.stop()

        assert not feed.is_running

    def test_tick_interval_change_applies_next_cycle(self, timers):
        feed = PriceFeed()
        feed.start(timers)
        timers.advance(2_000)

        feed.set_tick_interval(500)
        timers.advance(2_000)

        # 3000 was already armed; then 3500 and 4000
        assert feed.tick_count == 5

    def test_restart_after_stop(self, timers):
        feed = PriceFeed()
        feed.start(timers)
        timers.advance(1_000)
        feed.stop()

        feed.start()
        timers.advance(1_000)

        assert feed.tick_count == 2

    def test_restart_resumes_timestamps_at_clock_time(self, timers):
        feed = PriceFeed()
        feed.start(timers)
        timers.advance(2_000)
        feed.stop()

        timers.advance(600_000)
        feed.start()
        timers.advance(1_000)

        newest = feed.latest_point()
        assert newest.timestamp == timers.now_ms()
        assert feed.historical_window(0.5) == [newest]

    def test_first_start_continues_seeded_history(self, timers):
        feed = PriceFeed()
        feed.seed_history(timers.now_ms())

        feed.start(timers)
        timers.advance(2_000)

        points = feed.latest(3)
        assert [p.timestamp for p in points] == [
            timers.now_ms() - 2_000,
            timers.now_ms() - 1_000,
            timers.now_ms(),
        ]
