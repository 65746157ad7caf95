"""
Main Entry Point for the Up/Down Rounds Simulator
Headless runner: plays a number of rounds with an automatic bettor and logs
every game event. Runs on a virtual clock by default, or in real time.
"""

__version__ = "1.0.0"

import argparse
import asyncio
import sys

import numpy as np

from config import ConfigError, config
from core import GameError, GameSession
from models import Direction
from models.events import AnyGameEvent, GameEventType
from services.logger import attach_timeline, cleanup_logging, setup_logging
from services.timer_service import AsyncioTimerService, ManualTimerService, TimerService

STRATEGIES = ("up", "down", "random", "trend")

# Points compared by the trend strategy
TREND_WINDOW = 10


class Application:
    """
    Main application controller
    Builds the session from config, wires the bettor and the event log,
    and drives the clock until enough rounds have settled
    """

    def __init__(
        self,
        rounds: int = 5,
        realtime: bool = False,
        stake: float = 100.0,
        strategy: str = "random",
        bet_delay_ms: int = 1000,
        config_file: str | None = None,
        log_level: str | None = None,
        overrides: dict | None = None,
    ):
        self._initialized_components = []
        self.session: GameSession | None = None
        self.rounds = rounds
        self.realtime = realtime
        self.stake = stake
        self.strategy = strategy
        self.bet_delay_ms = bet_delay_ms
        self.rounds_completed = 0
        self.predictions_rejected = 0
        self._done: asyncio.Event | None = None

        try:
            # Initialize logging first
            self.logger = setup_logging({"log_level": log_level, "console_level": log_level} if log_level else None)
            self._initialized_components.append("logging")
            self.logger.info("=" * 60)
            self.logger.info("Up/Down Rounds Simulator - Starting")
            self.logger.info(f"MODE: {'REAL TIME' if realtime else 'VIRTUAL CLOCK'}")
            self.logger.info("=" * 60)

            config.set_logger(self.logger)
            if config_file:
                config.load_from_file(config_file)
            config.ensure_directories()
            config.validate()
            self.logger.info("Configuration validated successfully")

            self.settings = config.game_settings(**(overrides or {}))
            self._rng = np.random.default_rng(self.settings.seed)
        except Exception:
            self._emergency_cleanup()
            raise

    def _emergency_cleanup(self):
        """Clean up partially initialized components"""
        for component in reversed(self._initialized_components):
            if component == "logging":
                cleanup_logging()

    # ========================================================================
    # SESSION WIRING
    # ========================================================================

    def _build_session(self, timers: TimerService) -> GameSession:
        attach_timeline(timers.now_ms)
        session = GameSession(self.settings, timers=timers, rng=self._rng)
        session.subscribe(self._handle_event)
        return session

    def _handle_event(self, event: AnyGameEvent):
        """Log the game event stream and schedule the bettor"""
        if event.type == GameEventType.ROUND_START:
            self.logger.info(
                f"Round {event.round_id} started at {event.price:.4f}, closes at {event.closes_at}"
            )
            self.session.timers.call_later(self.bet_delay_ms, self._place_bet)
        elif event.type == GameEventType.PREDICTION_MADE:
            self.logger.info(f"Predicted {event.direction.value} with {event.amount} at {event.price:.4f}")
        elif event.type == GameEventType.COUNTDOWN:
            self.logger.debug(f"{event.remaining_seconds}s remaining")
        elif event.type == GameEventType.RESULT:
            self.logger.info(f"Result: {event.outcome} (streak {event.win_streak})")
        elif event.type == GameEventType.BALANCE_CHANGED:
            self.logger.info(f"Balance: {event.new_balance:.2f} ({event.change:+.2f})")
        elif event.type == GameEventType.ROUND_END:
            self.rounds_completed += 1
            self.logger.info(
                f"Round {event.round_id} ended at {event.settlement_price:.4f} "
                f"({len(event.outcomes)} predictions, {self.rounds_completed}/{self.rounds})"
            )
            if self.rounds_completed >= self.rounds and self._done is not None:
                self._done.set()

    def _place_bet(self):
        if self.session is None or not self.session.is_running:
            return

        direction = self._choose_direction()
        try:
            self.session.predict(direction, self.stake)
        except GameError as e:
            self.predictions_rejected += 1
            self.logger.warning(f"Prediction rejected: {e}")

    def _choose_direction(self) -> Direction:
        if self.strategy == "up":
            return Direction.UP
        if self.strategy == "down":
            return Direction.DOWN
        if self.strategy == "trend":
            points = self.session.price_feed.latest(TREND_WINDOW)
            if len(points) >= 2:
                return Direction.from_prices(points[0].price, points[-1].price)
            return Direction.UP
        return Direction.UP if self._rng.random() < 0.5 else Direction.DOWN

    # ========================================================================
    # RUN LOOPS
    # ========================================================================

    def run(self) -> dict:
        """Play until `rounds` rounds have settled, then return the summary"""
        if self.realtime:
            asyncio.run(self._run_realtime())
        else:
            self._run_virtual()
        return self.summary()

    def _run_virtual(self):
        timers = ManualTimerService(start_ms=0)
        self.session = self._build_session(timers)
        self.session.start()
        try:
            while self.rounds_completed < self.rounds:
                next_due = timers.next_due()
                if next_due is None:
                    self.logger.error("Timeline ran dry before all rounds settled")
                    break
                timers.advance_to(next_due)
        finally:
            self.session.stop()

    async def _run_realtime(self):
        self._done = asyncio.Event()
        self.session = self._build_session(AsyncioTimerService())
        self.session.start()
        try:
            await self._done.wait()
        finally:
            self.session.stop()

    def summary(self) -> dict:
        history = self.session.get_history() if self.session else []
        wins = sum(1 for outcome in history if outcome.is_win)
        return {
            "rounds": self.rounds_completed,
            "predictions": len(history),
            "wins": wins,
            "losses": len(history) - wins,
            "rejected": self.predictions_rejected,
            "initial_balance": self.settings.initial_balance,
            "final_balance": self.session.get_balance() if self.session else self.settings.initial_balance,
            "win_streak": self.session.get_win_streak() if self.session else 0,
        }

    def shutdown(self):
        """Clean shutdown of application"""
        self.logger.info("Shutting down application...")
        try:
            if self.session is not None:
                self.session.stop()
                self.logger.info(f"Final session summary: {self.summary()}")
        finally:
            self.logger.info("Application shutdown complete")
            cleanup_logging()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Up/Down Rounds Simulator - headless runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          # 5 rounds on a virtual clock
  %(prog)s --rounds 20 --seed 7     # reproducible run
  %(prog)s --realtime --rounds 1    # one real 60s round
        """,
    )
    parser.add_argument("--rounds", type=int, default=5, help="Rounds to play (default: 5)")
    parser.add_argument("--realtime", action="store_true", help="Run on the wall clock")
    parser.add_argument("--config", help="JSON config file")
    parser.add_argument("--stake", type=float, default=100.0, help="Stake per round (default: 100)")
    parser.add_argument("--direction", choices=STRATEGIES, default="random", help="Betting strategy")
    parser.add_argument("--bet-delay", type=int, default=1000, help="Ms after round start to bet")
    parser.add_argument("--round-duration", type=int, help="Round length in ms")
    parser.add_argument("--interval", type=int, help="Cooldown between rounds in ms")
    parser.add_argument("--seed", type=int, help="Random seed")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Console log level")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    if args.rounds <= 0:
        print("--rounds must be positive", file=sys.stderr)
        return 2

    overrides = {
        key: value
        for key, value in (
            ("seed", args.seed),
            ("round_duration_ms", args.round_duration),
            ("round_interval_ms", args.interval),
        )
        if value is not None
    }

    app = None
    try:
        app = Application(
            rounds=args.rounds,
            realtime=args.realtime,
            stake=args.stake,
            strategy=args.direction,
            bet_delay_ms=args.bet_delay,
            config_file=args.config,
            log_level=args.log_level,
            overrides=overrides,
        )
        app.run()
        return 0
    except (ConfigError, ValueError) as e:
        print(f"FATAL ERROR: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    finally:
        if app is not None:
            app.shutdown()


if __name__ == "__main__":
    sys.exit(main())
