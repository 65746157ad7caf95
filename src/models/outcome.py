"""
Outcome data model
"""

from dataclasses import dataclass
from typing import Any

from utils.decimal_utils import format_amount, format_percent, format_price

from .enums import Direction, OutcomeResult
from .prediction import Prediction


@dataclass(frozen=True)
class Outcome:
    """
    Settled result of one prediction

    Derived from (round, settlement price) and never re-derived. Payout is
    the signed balance adjustment: positive on a win, negative (or zero) on
    a loss.

    Attributes:
        prediction: The settled prediction
        reference_price: Round reference price
        settlement_price: Price observed at round close
        result: WIN or LOSE
        payout: Signed balance adjustment
        settled_at: Settlement time in epoch milliseconds
        round_id: Round the prediction belonged to
        actual_direction: Realised direction (flat counts as DOWN)
        change_pct: Absolute price move in percent
    """

    prediction: Prediction
    reference_price: float
    settlement_price: float
    result: OutcomeResult
    payout: float
    settled_at: int
    round_id: int
    actual_direction: Direction
    change_pct: float

    @property
    def is_win(self) -> bool:
        return self.result == OutcomeResult.WIN

    def price_change_percentage(self) -> float:
        """Signed price move in percent"""
        return (self.settlement_price - self.reference_price) / self.reference_price * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "prediction": self.prediction.to_dict(),
            "reference_price": self.reference_price,
            "settlement_price": self.settlement_price,
            "result": self.result.value,
            "payout": self.payout,
            "settled_at": self.settled_at,
            "round_id": self.round_id,
            "actual_direction": self.actual_direction.value,
            "change_pct": self.change_pct,
        }

    def __str__(self) -> str:
        return (
            f"Prediction: {self.prediction.direction.value}, "
            f"Result: {self.result.value}, "
            f"{format_price(self.reference_price)} -> {format_price(self.settlement_price)} "
            f"({format_percent(self.price_change_percentage())}), "
            f"Payout: {format_amount(self.payout)}"
        )
