"""
Shared test fixtures for pytest
"""

import pytest

from core import GameSession, PriceFeed, RoundLedger, RoundScheduler, SettlementEngine
from models import Direction, GameSettings, Prediction, Round
from services.timer_service import ManualTimerService

# 2023-11-14T22:13:20Z, a realistic epoch-ms start for the virtual clock
START_MS = 1_700_000_000_000


class ScriptedFeed:
    """
    Stand-in for PriceFeed whose bettor-facing price is set by the test

    Implements the subset of the PriceFeed surface that the scheduler and
    GameSession use.
    """

    def __init__(self, price: float = 150.0):
        self.price = price
        self.buffer = []
        self.marked = []
        self.running = False
        self.volatility = None
        self.tick_interval_ms = None

    def current_price(self) -> float:
        return self.price

    def mark_prediction_point(self, direction) -> float:
        self.marked.append(Direction(direction))
        return self.price

    def attach(self, timers):
        pass

    def seed_history(self, now_ms=None):
        return 0

    def start(self, timers=None):
        self.running = True

    def stop(self):
        self.running = False

    def set_volatility(self, volatility):
        self.volatility = volatility

    def set_drift(self, drift):
        pass

    def set_tick_interval(self, interval_ms):
        self.tick_interval_ms = interval_ms

    def set_lookback_offset_ratio(self, ratio):
        pass


@pytest.fixture
def timers():
    """Virtual clock starting at START_MS"""
    return ManualTimerService(start_ms=START_MS)


@pytest.fixture
def settings():
    """Default settings without history prefill, seeded for reproducibility"""
    return GameSettings(prefill_history=False, seed=42)


@pytest.fixture
def price_feed(settings):
    """Real PriceFeed (not started)"""
    return PriceFeed.from_settings(settings)


@pytest.fixture
def scripted_feed():
    """Feed whose price is driven by the test"""
    return ScriptedFeed(150.0)


@pytest.fixture
def ledger():
    return RoundLedger()


@pytest.fixture
def engine():
    return SettlementEngine()


@pytest.fixture
def scheduler(scripted_feed, ledger, engine, timers):
    """RoundScheduler on the virtual clock with a scripted price"""
    return RoundScheduler(scripted_feed, ledger, engine, timers)


@pytest.fixture
def session(settings, timers, scripted_feed):
    """GameSession on the virtual clock with a scripted price"""
    return GameSession(settings, timers=timers, price_feed=scripted_feed)


@pytest.fixture
def recorded_events(session):
    """List collecting every game event of `session`"""
    events = []
    session.subscribe(events.append)
    return events


@pytest.fixture
def sample_round():
    """Open round at 150.00 with one UP and one DOWN prediction"""
    round_ = Round(round_id=1, opened_at=START_MS, closes_at=START_MS + 60_000, reference_price=150.0)
    round_.predictions.append(
        Prediction(direction=Direction.UP, amount=500.0, subject_id="player1", created_at=START_MS + 1_000, round_id=1)
    )
    round_.predictions.append(
        Prediction(direction=Direction.DOWN, amount=200.0, subject_id="player2", created_at=START_MS + 2_000, round_id=1)
    )
    return round_
