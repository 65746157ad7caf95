"""
Round data model
"""

from dataclasses import dataclass, field, replace
from typing import Any

from .enums import RoundState
from .prediction import Prediction


@dataclass
class Round:
    """
    One betting cycle with a fixed duration and a single reference price

    Transitions OPEN -> CLOSED exactly once. Only the RoundLedger mutates a
    round; everything handed out to callers is a snapshot.

    Attributes:
        round_id: Sequence number of the round within the ledger
        opened_at: Open time in epoch milliseconds
        closes_at: opened_at + round duration
        reference_price: Price recorded at open
        predictions: Accepted predictions in submission order
        state: OPEN or CLOSED
    """

    round_id: int
    opened_at: int
    closes_at: int
    reference_price: float
    predictions: list[Prediction] = field(default_factory=list)
    state: RoundState = RoundState.OPEN

    @property
    def is_open(self) -> bool:
        return self.state == RoundState.OPEN

    @property
    def duration_ms(self) -> int:
        return self.closes_at - self.opened_at

    def remaining_ms(self, now_ms: int) -> int:
        """Milliseconds left until close (never negative)"""
        return max(0, self.closes_at - now_ms)

    def snapshot(self) -> "Round":
        """Copy whose prediction list is detached from this round"""
        return replace(self, predictions=list(self.predictions))

    def to_dict(self) -> dict[str, Any]:
        return {
            "round_id": self.round_id,
            "opened_at": self.opened_at,
            "closes_at": self.closes_at,
            "reference_price": self.reference_price,
            "predictions": [p.to_dict() for p in self.predictions],
            "state": self.state.value,
        }
