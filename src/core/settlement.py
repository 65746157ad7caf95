"""
Settlement Engine

Settles every prediction of a closed round against the settlement price:

1. actual direction: UP if settlement > reference, else DOWN (a flat round
   counts as DOWN)
2. result: WIN if the prediction matches the actual direction
3. change_pct = |settlement - reference| / reference * 100
4. payout = ±round_half_up(amount * change_pct / 100), positive on WIN

Payout scales with the size of the move and the stake; there is no fixed
win multiplier. settle() is a pure function of its inputs.
"""

import logging

from models import Direction, Outcome, OutcomeResult, Round
from utils.decimal_utils import round_half_up

logger = logging.getLogger(__name__)


class SettlementEngine:
    """Turns a closed round into one Outcome per prediction"""

    def __init__(self, amount_precision: int = 0):
        """
        Args:
            amount_precision: Decimal places payouts are rounded to
        """
        self.amount_precision = amount_precision

    @staticmethod
    def change_percentage(reference_price: float, settlement_price: float) -> float:
        """Absolute move in percent"""
        return abs(settlement_price - reference_price) / reference_price * 100

    def compute_payout(self, amount: float, change_pct: float, result: OutcomeResult) -> float:
        magnitude = round_half_up(amount * change_pct / 100, self.amount_precision)
        if result == OutcomeResult.WIN or magnitude == 0:
            return magnitude
        return -magnitude

    def settle(self, round_: Round, settlement_price: float, settled_at: int | None = None) -> list[Outcome]:
        """
        Settle every prediction of `round_`, in submission order

        Args:
            round_: Round to settle (normally the snapshot returned by close())
            settlement_price: Price observed at close
            settled_at: Settlement time; defaults to the round's close time

        Returns:
            One Outcome per prediction
        """
        reference = round_.reference_price
        actual = Direction.from_prices(reference, settlement_price)
        change_pct = self.change_percentage(reference, settlement_price)
        timestamp = round_.closes_at if settled_at is None else settled_at

        outcomes = []
        for prediction in round_.predictions:
            result = OutcomeResult.WIN if prediction.is_correct(actual) else OutcomeResult.LOSE
            outcomes.append(
                Outcome(
                    prediction=prediction,
                    reference_price=reference,
                    settlement_price=settlement_price,
                    result=result,
                    payout=self.compute_payout(prediction.amount, change_pct, result),
                    settled_at=timestamp,
                    round_id=round_.round_id,
                    actual_direction=actual,
                    change_pct=change_pct,
                )
            )

        logger.debug(
            f"Round {round_.round_id} settled: {reference:.4f} -> {settlement_price:.4f} "
            f"({actual.value}), {len(outcomes)} outcomes"
        )
        return outcomes
