"""
Game Event Schemas

Payloads of the unified event stream emitted by GameSession. Every event
carries its ``type`` and the timeline time it was emitted at, so a listener
can dispatch on ``event.type`` alone.

| Event           | When                                   |
|-----------------|----------------------------------------|
| round_start     | scheduler enters OPEN                  |
| prediction_made | after a successful predict()           |
| countdown       | once per countdown interval while OPEN |
| result          | per own prediction, at settlement      |
| balance_changed | whenever the balance mutates           |
| round_end       | after a round has been settled         |
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, Field, InstanceOf

from models.enums import Direction
from models.outcome import Outcome


class GameEventType(str, Enum):
    """Game event type enumeration."""

    ROUND_START = "round_start"
    ROUND_END = "round_end"
    PREDICTION_MADE = "prediction_made"
    COUNTDOWN = "countdown"
    RESULT = "result"
    BALANCE_CHANGED = "balance_changed"


class GameEvent(BaseModel):
    """Base for all game events."""

    type: GameEventType
    emitted_at: int = Field(..., description="Timeline time in epoch ms")

    class Config:
        """Pydantic model configuration."""

        frozen = True


class RoundStartEvent(GameEvent):
    """A new round opened and accepts predictions."""

    type: Literal[GameEventType.ROUND_START] = GameEventType.ROUND_START
    round_id: int
    timestamp: int = Field(..., description="Round open time (ms)")
    price: float = Field(..., description="Reference price")
    closes_at: int = Field(..., description="Round close time (ms)")


class PredictionMadeEvent(GameEvent):
    """A prediction was accepted into the current round."""

    type: Literal[GameEventType.PREDICTION_MADE] = GameEventType.PREDICTION_MADE
    direction: Direction
    amount: float
    price: float = Field(..., description="Price at the marked prediction point")
    subject_id: str


class CountdownEvent(GameEvent):
    """Seconds remaining in the open round."""

    type: Literal[GameEventType.COUNTDOWN] = GameEventType.COUNTDOWN
    remaining_seconds: int = Field(..., ge=0)


class ResultEvent(GameEvent):
    """One of the session's predictions was settled."""

    type: Literal[GameEventType.RESULT] = GameEventType.RESULT
    outcome: InstanceOf[Outcome]
    win_streak: int = Field(..., ge=0)


class BalanceChangedEvent(GameEvent):
    """The session balance changed."""

    type: Literal[GameEventType.BALANCE_CHANGED] = GameEventType.BALANCE_CHANGED
    new_balance: float
    change: float


class RoundEndEvent(GameEvent):
    """A round closed and all its predictions were settled."""

    type: Literal[GameEventType.ROUND_END] = GameEventType.ROUND_END
    round_id: int
    timestamp: int = Field(..., description="Settlement time (ms)")
    settlement_price: float
    outcomes: list[InstanceOf[Outcome]] = Field(default_factory=list)


AnyGameEvent = Union[
    RoundStartEvent,
    PredictionMadeEvent,
    CountdownEvent,
    ResultEvent,
    BalanceChangedEvent,
    RoundEndEvent,
]
