"""
Prediction data model
"""

from dataclasses import dataclass
from typing import Any

from .enums import Direction


@dataclass(frozen=True)
class Prediction:
    """
    A player's bet on the direction of the price at round close

    Immutable once created. Belongs to the round it was submitted to and
    never moves between rounds.

    Attributes:
        direction: UP or DOWN
        amount: Stake (positive)
        subject_id: Player the prediction belongs to
        created_at: Submission time in epoch milliseconds
        round_id: Round the prediction was recorded into
    """

    direction: Direction
    amount: float
    subject_id: str
    created_at: int
    round_id: int | None = None

    def is_correct(self, actual_direction: Direction) -> bool:
        """Check whether the prediction matches the realised direction"""
        return self.direction == actual_direction

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction.value,
            "amount": self.amount,
            "subject_id": self.subject_id,
            "created_at": self.created_at,
            "round_id": self.round_id,
        }
