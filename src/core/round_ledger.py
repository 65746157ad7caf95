"""
Round Ledger - the open round and the settled history

The ledger's Open/Closed flag is the single source of truth for whether a
prediction may still be recorded: record() checks it synchronously before
mutating anything, so a bet racing the scheduler is rejected, never dropped
and never silently accepted.
"""

import logging
from collections import deque
from collections.abc import Iterable

from models import Outcome, Prediction, Round, RoundState

from .errors import RoundClosedError, RoundLedgerError, RoundNotOpen

logger = logging.getLogger(__name__)


class RoundLedger:
    """
    Tracks the current round and the outcomes of settled rounds

    Usage:
        ledger = RoundLedger()
        ledger.open_round(start_time=now, duration_ms=60_000, reference_price=150.0)
        ledger.record(prediction)
        closed = ledger.close()
        ledger.archive(engine.settle(closed, settlement_price))
    """

    def __init__(self, history_limit: int = 1000):
        if history_limit <= 0:
            raise ValueError(f"History limit must be positive, got {history_limit}")

        self._current: Round | None = None
        self._history: deque[Outcome] = deque(maxlen=history_limit)
        self._rounds_opened = 0
        self._abandoned_predictions = 0

    @property
    def current_round(self) -> Round | None:
        """Snapshot of the current round (None before the first open)"""
        return self._current.snapshot() if self._current is not None else None

    @property
    def current_round_id(self) -> int | None:
        return self._current.round_id if self._current is not None else None

    @property
    def rounds_opened(self) -> int:
        return self._rounds_opened

    @property
    def abandoned_predictions(self) -> int:
        """Predictions left unsettled by abandoned rounds"""
        return self._abandoned_predictions

    def has_open_round(self) -> bool:
        return self._current is not None and self._current.is_open

    def open_round(self, start_time: int, duration_ms: int, reference_price: float) -> Round:
        """
        Create a new OPEN round

        Raises:
            RoundLedgerError: If the current round is still open
        """
        if self.has_open_round():
            raise RoundLedgerError(
                f"Round {self._current.round_id} is still open; close it before opening another"
            )
        if duration_ms <= 0:
            raise ValueError(f"Round duration must be positive, got {duration_ms}")
        if reference_price <= 0:
            raise ValueError(f"Reference price must be positive, got {reference_price}")

        self._rounds_opened += 1
        self._current = Round(
            round_id=self._rounds_opened,
            opened_at=start_time,
            closes_at=start_time + duration_ms,
            reference_price=reference_price,
        )
        logger.debug(
            f"Round {self._current.round_id} opened at {start_time} "
            f"(ref {reference_price:.4f}, closes {self._current.closes_at})"
        )
        return self._current.snapshot()

    def record(self, prediction: Prediction) -> Prediction:
        """
        Append a prediction to the current round

        Returns:
            The stored prediction (stamped with the round id)

        Raises:
            RoundNotOpen: If no round has been opened
            RoundClosedError: If the current round already closed
        """
        if self._current is None:
            raise RoundNotOpen("No round has been opened yet")
        if self._current.state != RoundState.OPEN:
            raise RoundClosedError(f"Round {self._current.round_id} is closed")

        if prediction.round_id != self._current.round_id:
            prediction = Prediction(
                direction=prediction.direction,
                amount=prediction.amount,
                subject_id=prediction.subject_id,
                created_at=prediction.created_at,
                round_id=self._current.round_id,
            )
        self._current.predictions.append(prediction)
        return prediction

    def close(self) -> Round:
        """
        Mark the current round CLOSED

        Returns:
            Read-only snapshot of the closed round

        Raises:
            RoundLedgerError: If there is no open round to close
        """
        if self._current is None:
            raise RoundLedgerError("No round to close")
        if self._current.state == RoundState.CLOSED:
            raise RoundLedgerError(f"Round {self._current.round_id} already closed")

        self._current.state = RoundState.CLOSED
        logger.debug(
            f"Round {self._current.round_id} closed with {len(self._current.predictions)} predictions"
        )
        return self._current.snapshot()

    def abandon(self) -> Round | None:
        """
        Close the in-flight round without settling it

        Its predictions stay unsettled for good.

        Returns:
            Snapshot of the abandoned round, or None if nothing was open
        """
        if not self.has_open_round():
            return None

        self._current.state = RoundState.CLOSED
        unsettled = len(self._current.predictions)
        self._abandoned_predictions += unsettled
        if unsettled:
            logger.warning(
                f"Round {self._current.round_id} abandoned with {unsettled} unsettled predictions"
            )
        else:
            logger.info(f"Round {self._current.round_id} abandoned")
        return self._current.snapshot()

    def archive(self, outcomes: Iterable[Outcome]) -> int:
        """
        Append settled outcomes to the history, in settlement order

        Returns:
            Number of outcomes archived
        """
        count = 0
        for outcome in outcomes:
            self._history.append(outcome)
            count += 1
        return count

    def get_history(self) -> list[Outcome]:
        return list(self._history)
