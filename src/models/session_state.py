"""
Session State data model
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any

from .outcome import Outcome


@dataclass
class SessionState:
    """
    Balance and streak bookkeeping for one game session

    Owned by GameSession and written only on the settlement path.

    Attributes:
        balance: Current balance
        win_streak: Consecutive wins since the last loss
        history_limit: Most recent outcomes kept in history
        history: Settled outcomes of this session's subject, oldest first
    """

    balance: float
    win_streak: int = 0
    history_limit: int = 1000
    history: deque[Outcome] = field(init=False)

    def __post_init__(self):
        if self.history_limit <= 0:
            raise ValueError(f"History limit must be positive, got {self.history_limit}")
        self.history = deque(maxlen=self.history_limit)

    def apply_outcome(self, outcome: Outcome) -> float:
        """
        Apply one settled outcome

        Returns:
            The balance change that was applied
        """
        self.balance += outcome.payout
        if outcome.is_win:
            self.win_streak += 1
        else:
            self.win_streak = 0
        self.history.append(outcome)
        return outcome.payout

    def to_dict(self) -> dict[str, Any]:
        return {
            "balance": self.balance,
            "win_streak": self.win_streak,
            "history": [o.to_dict() for o in self.history],
        }
