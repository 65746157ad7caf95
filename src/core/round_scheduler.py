"""
Round Scheduler - timed state machine driving the betting rounds

State Machine:
    IDLE → OPEN → SETTLING → COOLDOWN → OPEN → ...
      ↑                                    │
      └──────────── stop() ────────────────┘ (from any state)

States:
- IDLE: Not started (or stopped)
- OPEN: Round accepts predictions until round_duration_ms has elapsed
- SETTLING: Ledger closed, outcomes computed and reported (synchronous)
- COOLDOWN: round_interval_ms pause before the next round opens

Transitions are driven by wall-clock timers, never by price-tick counts.
Every timer callback is bound to the run generation (bumped by start/stop)
and the round it was scheduled for, and re-checks the current state before
acting, so a timer that was already queued when stop() ran does nothing.
"""

import logging
import math
from collections.abc import Callable

from models import GameSettings, Outcome, Round, SchedulerState
from services.timer_service import TimerHandle, TimerService

from .errors import AlreadyRunning, NotRunning
from .price_feed import PriceFeed
from .round_ledger import RoundLedger
from .settlement import SettlementEngine
from .validators import validate_round_accepting

logger = logging.getLogger(__name__)


class RoundScheduler:
    """
    Opens rounds, expires them, settles them and loops

    Usage:
        scheduler = RoundScheduler(feed, ledger, engine, timers)
        scheduler.on_round_open = lambda round_: ...
        scheduler.on_countdown = lambda seconds, round_: ...
        scheduler.on_round_settled = lambda round_, outcomes: ...
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        price_feed: PriceFeed,
        ledger: RoundLedger,
        engine: SettlementEngine,
        timers: TimerService,
        round_duration_ms: int = 60_000,
        round_interval_ms: int = 5_000,
        countdown_interval_ms: int = 1_000,
    ):
        self._feed = price_feed
        self._ledger = ledger
        self._engine = engine
        self._timers = timers

        self._round_duration_ms = 1
        self._round_interval_ms = 0
        self._countdown_interval_ms = 1
        self.set_round_duration(round_duration_ms)
        self.set_round_interval(round_interval_ms)
        self.set_countdown_interval(countdown_interval_ms)

        self._state = SchedulerState.IDLE
        self._generation = 0
        self._settling = False
        self._rounds_settled = 0

        self._expiry_timer: TimerHandle | None = None
        self._cooldown_timer: TimerHandle | None = None
        self._countdown_timer: TimerHandle | None = None

        # Callbacks
        self.on_state_change: Callable[[SchedulerState, SchedulerState], None] | None = None
        self.on_round_open: Callable[[Round], None] | None = None
        self.on_countdown: Callable[[int, Round], None] | None = None
        self.on_round_settled: Callable[[Round, list[Outcome]], None] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: GameSettings,
        price_feed: PriceFeed,
        ledger: RoundLedger,
        engine: SettlementEngine,
        timers: TimerService,
    ) -> "RoundScheduler":
        return cls(
            price_feed,
            ledger,
            engine,
            timers,
            round_duration_ms=settings.round_duration_ms,
            round_interval_ms=settings.round_interval_ms,
            countdown_interval_ms=settings.countdown_interval_ms,
        )

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    @property
    def state(self) -> SchedulerState:
        """Current state of the state machine."""
        return self._state

    @property
    def is_running(self) -> bool:
        return SchedulerState.is_running(self._state)

    @property
    def round_duration_ms(self) -> int:
        return self._round_duration_ms

    @property
    def round_interval_ms(self) -> int:
        return self._round_interval_ms

    @property
    def countdown_interval_ms(self) -> int:
        return self._countdown_interval_ms

    @property
    def rounds_settled(self) -> int:
        return self._rounds_settled

    @property
    def current_round(self) -> Round | None:
        return self._ledger.current_round

    # ========================================================================
    # CONFIGURATION (applies from the next scheduling cycle)
    # ========================================================================

    def set_round_duration(self, duration_ms: int):
        if duration_ms <= 0:
            raise ValueError(f"Round duration must be positive, got {duration_ms}")
        self._round_duration_ms = int(duration_ms)

    def set_round_interval(self, interval_ms: int):
        if interval_ms < 0:
            raise ValueError(f"Round interval cannot be negative, got {interval_ms}")
        self._round_interval_ms = int(interval_ms)

    def set_countdown_interval(self, interval_ms: int):
        if interval_ms <= 0:
            raise ValueError(f"Countdown interval must be positive, got {interval_ms}")
        self._countdown_interval_ms = int(interval_ms)

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def start(self) -> Round:
        """
        IDLE -> OPEN: open the first round now

        Raises:
            AlreadyRunning: If the scheduler is not IDLE
        """
        if self._state != SchedulerState.IDLE:
            raise AlreadyRunning(f"Scheduler already running ({self._state.value})")

        self._generation += 1
        logger.info(
            f"Round scheduler started: {self._round_duration_ms}ms rounds, "
            f"{self._round_interval_ms}ms cooldown"
        )
        return self._open_round(self._generation)

    def stop(self) -> Round | None:
        """
        Any -> IDLE: cancel every timer and abandon the in-flight round

        Returns:
            The abandoned round, if one was open

        Raises:
            NotRunning: If the scheduler is already IDLE
        """
        if self._state == SchedulerState.IDLE:
            raise NotRunning("Scheduler is not running")

        self._generation += 1
        self._cancel_timers()
        abandoned = self._ledger.abandon()
        self._transition_to(SchedulerState.IDLE)
        logger.info(f"Round scheduler stopped after {self._rounds_settled} settled rounds")
        return abandoned

    # ========================================================================
    # QUERIES
    # ========================================================================

    def accepting_predictions(self, now_ms: int | None = None) -> bool:
        """True while OPEN and before the current round's close time"""
        if self._state != SchedulerState.OPEN:
            return False
        now = self._timers.now_ms() if now_ms is None else now_ms
        is_valid, _ = validate_round_accepting(self._ledger.current_round, now)
        return is_valid

    def remaining_ms(self, now_ms: int | None = None) -> int:
        """Time left in the open round (0 outside OPEN)"""
        current = self._ledger.current_round
        if self._state != SchedulerState.OPEN or current is None:
            return 0
        now = self._timers.now_ms() if now_ms is None else now_ms
        return current.remaining_ms(now)

    # ========================================================================
    # TRANSITIONS
    # ========================================================================

    def _transition_to(self, new_state: SchedulerState) -> None:
        """Transition to a new state, calling callback if set."""
        old_state = self._state
        if old_state != new_state:
            self._state = new_state
            logger.debug(f"Scheduler state: {old_state.value} -> {new_state.value}")
            if self.on_state_change:
                self.on_state_change(old_state, new_state)

    def _is_live(self, generation: int, expected: SchedulerState, round_id: int | None = None) -> bool:
        """Guard for timer callbacks scheduled against an earlier state"""
        if generation != self._generation or self._state != expected:
            return False
        return round_id is None or self._ledger.current_round_id == round_id

    def _open_round(self, generation: int) -> Round:
        round_ = self._ledger.open_round(
            start_time=self._timers.now_ms(),
            duration_ms=self._round_duration_ms,
            reference_price=self._feed.current_price(),
        )
        self._transition_to(SchedulerState.OPEN)

        round_id = round_.round_id
        # Expiry is armed before the countdown so it wins a tie at close time
        self._expiry_timer = self._timers.call_later(
            self._round_duration_ms, lambda: self._on_round_elapsed(generation, round_id)
        )
        self._countdown_timer = self._timers.call_every(
            lambda: self._countdown_interval_ms,
            lambda: self._on_countdown_tick(generation, round_id),
        )

        logger.info(
            f"Round {round_id} open: reference {round_.reference_price:.4f}, "
            f"closes at {round_.closes_at}"
        )
        if self.on_round_open:
            self.on_round_open(round_)
        return round_

    def _on_round_elapsed(self, generation: int, round_id: int):
        """OPEN -> SETTLING -> COOLDOWN"""
        if not self._is_live(generation, SchedulerState.OPEN, round_id):
            logger.debug(f"Discarding stale expiry timer for round {round_id}")
            return

        self._transition_to(SchedulerState.SETTLING)
        self._settle_current_round()

        # An outcome handler may have stopped the scheduler
        if generation != self._generation:
            return

        self._transition_to(SchedulerState.COOLDOWN)
        self._cooldown_timer = self._timers.call_later(
            self._round_interval_ms, lambda: self._on_cooldown_elapsed(generation)
        )

    def _settle_current_round(self):
        if self._settling:
            raise RuntimeError("Settlement re-entered from inside an outcome handler")

        self._settling = True
        try:
            if self._countdown_timer is not None:
                self._countdown_timer.cancel()
                self._countdown_timer = None

            closed = self._ledger.close()
            settlement_price = self._feed.current_price()
            outcomes = self._engine.settle(closed, settlement_price, settled_at=self._timers.now_ms())
            self._ledger.archive(outcomes)
            self._rounds_settled += 1

            logger.info(
                f"Round {closed.round_id} settled: {closed.reference_price:.4f} -> "
                f"{settlement_price:.4f}, {len(outcomes)} predictions"
            )
            if self.on_round_settled:
                self.on_round_settled(closed, outcomes)
        finally:
            self._settling = False

    def _on_cooldown_elapsed(self, generation: int):
        """COOLDOWN -> OPEN"""
        if not self._is_live(generation, SchedulerState.COOLDOWN):
            logger.debug("Discarding stale cooldown timer")
            return
        self._open_round(generation)

    def _on_countdown_tick(self, generation: int, round_id: int):
        if not self._is_live(generation, SchedulerState.OPEN, round_id):
            return

        current = self._ledger.current_round
        remaining_ms = current.remaining_ms(self._timers.now_ms())
        if remaining_ms <= 0:
            return

        if self.on_countdown:
            self.on_countdown(math.ceil(remaining_ms / 1000), current)

    def _cancel_timers(self):
        for handle in (self._expiry_timer, self._cooldown_timer, self._countdown_timer):
            if handle is not None:
                handle.cancel()
        self._expiry_timer = None
        self._cooldown_timer = None
        self._countdown_timer = None
