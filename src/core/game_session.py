"""
Game Session - façade over feed, scheduler, ledger and settlement

Owns the session balance and win streak (SessionState) and republishes
everything that happens as one ordered stream of game events.

Event order at settlement, per outcome of this session's subject:
    balance_changed -> result
followed by one round_end carrying every outcome of the round.
"""

import logging
import math
from collections.abc import Callable
from typing import Any

import numpy as np

from models import (
    Direction,
    GameSettings,
    Outcome,
    Prediction,
    Round,
    SessionState,
    SessionStatus,
)
from models.events import (
    AnyGameEvent,
    BalanceChangedEvent,
    CountdownEvent,
    PredictionMadeEvent,
    ResultEvent,
    RoundEndEvent,
    RoundStartEvent,
)
from services.event_bus import EventBus
from services.timer_service import AsyncioTimerService, TimerService

from .errors import InvalidAmount, NotRunning, RoundNotOpen
from .price_feed import PriceFeed
from .round_ledger import RoundLedger
from .round_scheduler import RoundScheduler
from .settlement import SettlementEngine
from .validators import validate_prediction_amount, validate_round_accepting

logger = logging.getLogger(__name__)


class GameSession:
    """
    One player's game: rounds loop while the session runs

    Usage:
        session = GameSession(GameSettings(seed=7), timers=ManualTimerService())
        session.subscribe(lambda event: print(event.type, event))
        session.start()
        session.predict(Direction.UP, 500)
        timers.advance(60_000)    # round settles, result events emitted
        session.stop()
    """

    def __init__(
        self,
        settings: GameSettings | None = None,
        timers: TimerService | None = None,
        price_feed: PriceFeed | None = None,
        rng: np.random.Generator | None = None,
    ):
        self._settings = settings if settings is not None else GameSettings()
        self._timers = timers if timers is not None else AsyncioTimerService()

        self._state = SessionState(
            balance=self._settings.initial_balance, history_limit=self._settings.history_limit
        )
        self._events = EventBus("game_events")
        self._status = SessionStatus.WAITING
        self._live = False

        self._feed = price_feed if price_feed is not None else PriceFeed.from_settings(self._settings, rng=rng)
        self._ledger = RoundLedger(history_limit=self._settings.history_limit)
        self._engine = SettlementEngine()
        self._scheduler = RoundScheduler.from_settings(
            self._settings, self._feed, self._ledger, self._engine, self._timers
        )
        self._scheduler.on_round_open = self._on_round_open
        self._scheduler.on_countdown = self._on_countdown
        self._scheduler.on_round_settled = self._on_round_settled

        logger.info(
            f"GameSession initialized for {self._settings.subject_id}: "
            f"balance={self._state.balance}"
        )

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def start(self):
        """Start the feed and the round loop (no-op when already running)"""
        if self._status == SessionStatus.RUNNING:
            logger.debug("GameSession.start() ignored: already running")
            return

        self._feed.attach(self._timers)
        if self._settings.prefill_history and len(self._feed.buffer) == 0:
            self._feed.seed_history(self._timers.now_ms())

        self._live = True
        self._status = SessionStatus.RUNNING
        self._feed.start(self._timers)
        self._scheduler.start()
        logger.info("GameSession started")

    def stop(self):
        """
        Cancel every timer (no-op when not running)

        The in-flight round is abandoned: its predictions are never settled
        and no further event is emitted.
        """
        if self._status != SessionStatus.RUNNING:
            logger.debug("GameSession.stop() ignored: not running")
            return

        self._live = False
        self._status = SessionStatus.STOPPED
        if self._scheduler.is_running:
            self._scheduler.stop()
        self._feed.stop()
        logger.info(
            f"GameSession stopped: balance={self._state.balance}, "
            f"rounds settled={self._scheduler.rounds_settled}"
        )

    @property
    def is_running(self) -> bool:
        return self._status == SessionStatus.RUNNING

    # ========================================================================
    # PREDICTIONS
    # ========================================================================

    def predict(self, direction: Direction | str, amount: float, subject_id: str | None = None) -> Prediction:
        """
        Place a prediction on the open round

        Args:
            direction: UP or DOWN
            amount: Stake; checked against the current balance, not debited
            subject_id: Defaults to the session's subject

        Returns:
            The recorded Prediction

        Raises:
            NotRunning: Session not running
            InvalidAmount: Amount not positive, not finite, or above the balance
            RoundNotOpen: No round accepts predictions right now
        """
        if not self.is_running:
            raise NotRunning("Game session is not running")

        direction = Direction(direction)

        is_valid, error = validate_prediction_amount(amount, self._state.balance)
        if not is_valid:
            raise InvalidAmount(error)

        now = self._timers.now_ms()
        is_valid, error = validate_round_accepting(self._ledger.current_round, now)
        if not is_valid:
            raise RoundNotOpen(error)

        prediction = self._ledger.record(
            Prediction(
                direction=direction,
                amount=float(amount),
                subject_id=subject_id or self._settings.subject_id,
                created_at=now,
            )
        )
        price = self._feed.mark_prediction_point(direction)

        logger.info(
            f"Prediction {prediction.direction.value} {prediction.amount} by {prediction.subject_id} "
            f"in round {prediction.round_id} at {price:.4f}"
        )
        self._emit(
            PredictionMadeEvent(
                emitted_at=now,
                direction=prediction.direction,
                amount=prediction.amount,
                price=price,
                subject_id=prediction.subject_id,
            )
        )
        return prediction

    # ========================================================================
    # QUERIES
    # ========================================================================

    @property
    def price_feed(self) -> PriceFeed:
        return self._feed

    @property
    def timers(self) -> TimerService:
        return self._timers

    def get_balance(self) -> float:
        return self._state.balance

    def get_win_streak(self) -> int:
        return self._state.win_streak

    def get_history(self) -> list[Outcome]:
        """This session's settled outcomes, oldest first"""
        return list(self._state.history)

    def get_status(self) -> SessionStatus:
        return self._status

    def get_current_round(self) -> Round | None:
        return self._ledger.current_round

    def get_remaining_seconds(self) -> int:
        return math.ceil(self._scheduler.remaining_ms() / 1000)

    def get_config(self) -> GameSettings:
        return self._settings.model_copy()

    def get_state(self) -> dict[str, Any]:
        """Snapshot of everything a renderer needs"""
        current = self._ledger.current_round
        return {
            "status": self._status.value,
            "scheduler_state": self._scheduler.state.value,
            "subject_id": self._settings.subject_id,
            "balance": self._state.balance,
            "win_streak": self._state.win_streak,
            "current_price": self._feed.current_price(),
            "current_round": current.to_dict() if current is not None else None,
            "remaining_seconds": self.get_remaining_seconds(),
            "accepting_predictions": self._scheduler.accepting_predictions(),
            "outcomes": len(self._state.history),
        }

    # ========================================================================
    # CONFIGURATION
    # ========================================================================

    def update_config(self, **changes: Any) -> GameSettings:
        """
        Change options at runtime

        Changes apply from the next tick or scheduling cycle. Options that
        only matter at construction (initial balance, price, buffer size)
        are stored for reference and have no effect on this session.

        Raises:
            pydantic.ValidationError: Unknown option or out-of-range value
        """
        settings = self._settings.merged(**changes)

        self._scheduler.set_round_duration(settings.round_duration_ms)
        self._scheduler.set_round_interval(settings.round_interval_ms)
        self._scheduler.set_countdown_interval(settings.countdown_interval_ms)
        self._feed.set_volatility(settings.volatility)
        self._feed.set_drift(settings.drift)
        self._feed.set_tick_interval(settings.price_tick_interval_ms)
        self._feed.set_lookback_offset_ratio(settings.lookback_offset_ratio)

        self._settings = settings
        logger.info(f"GameSession config updated: {sorted(changes)}")
        return settings.model_copy()

    # ========================================================================
    # EVENTS
    # ========================================================================

    def subscribe(self, listener: Callable[[AnyGameEvent], None]) -> Callable[[], None]:
        """
        Listen to the game event stream

        Delivery is synchronous and in emission order. Past events are not
        replayed.

        Returns:
            Unsubscribe handle (idempotent)
        """
        return self._events.subscribe(listener)

    def _emit(self, event: AnyGameEvent):
        if not self._live:
            return
        self._events.publish(event)

    def _on_round_open(self, round_: Round):
        self._emit(
            RoundStartEvent(
                emitted_at=self._timers.now_ms(),
                round_id=round_.round_id,
                timestamp=round_.opened_at,
                price=round_.reference_price,
                closes_at=round_.closes_at,
            )
        )

    def _on_countdown(self, remaining_seconds: int, round_: Round):
        self._emit(CountdownEvent(emitted_at=self._timers.now_ms(), remaining_seconds=remaining_seconds))

    def _on_round_settled(self, round_: Round, outcomes: list[Outcome]):
        now = self._timers.now_ms()
        subject_id = self._settings.subject_id

        for outcome in outcomes:
            if not self._live:
                break
            if outcome.prediction.subject_id != subject_id:
                continue

            change = self._state.apply_outcome(outcome)
            self._emit(BalanceChangedEvent(emitted_at=now, new_balance=self._state.balance, change=change))
            self._emit(ResultEvent(emitted_at=now, outcome=outcome, win_streak=self._state.win_streak))

        settlement_price = self._feed.current_price()
        self._emit(
            RoundEndEvent(
                emitted_at=now,
                round_id=round_.round_id,
                timestamp=now,
                settlement_price=settlement_price,
                outcomes=outcomes,
            )
        )
