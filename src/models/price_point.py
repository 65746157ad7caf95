"""
Price Point data model
"""

from dataclasses import dataclass
from typing import Any

from .enums import Direction


@dataclass(frozen=True)
class PricePoint:
    """
    A single sample of the synthetic price series

    Attributes:
        timestamp: Sample time in epoch milliseconds
        price: Price at that time (always > 0)
    """

    timestamp: int
    price: float

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "price": self.price}


@dataclass(frozen=True)
class PredictionMarker:
    """
    Point on the series highlighted when a prediction was made

    Attributes:
        timestamp: Timestamp of the marked price point
        price: Price at the marked point
        direction: Direction the player chose
    """

    timestamp: int
    price: float
    direction: Direction

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "price": self.price,
            "direction": self.direction.value,
        }
