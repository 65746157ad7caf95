"""
Enumerations for round states, directions and results
"""

from enum import Enum


class Direction(str, Enum):
    """Predicted or realised price direction"""

    UP = "up"
    DOWN = "down"

    @classmethod
    def from_prices(cls, reference_price: float, settlement_price: float) -> "Direction":
        """Actual direction of a move. A flat move counts as DOWN."""
        if settlement_price > reference_price:
            return cls.UP
        return cls.DOWN


class RoundState(str, Enum):
    """Round lifecycle status"""

    OPEN = "open"
    CLOSED = "closed"


class OutcomeResult(str, Enum):
    """Settled prediction result"""

    WIN = "win"
    LOSE = "lose"


class SchedulerState(str, Enum):
    """Round scheduler phases

    IDLE is only the pre-start (or stopped) state; a running scheduler
    loops OPEN -> SETTLING -> COOLDOWN -> OPEN.
    """

    IDLE = "idle"
    OPEN = "open"
    SETTLING = "settling"
    COOLDOWN = "cooldown"

    @classmethod
    def is_running(cls, state: "SchedulerState") -> bool:
        return state != cls.IDLE


class SessionStatus(str, Enum):
    """Game session lifecycle"""

    WAITING = "waiting"
    RUNNING = "running"
    STOPPED = "stopped"
