"""
Event Models Module - Pydantic schemas for the game event stream
"""

from .game_events import (
    AnyGameEvent,
    BalanceChangedEvent,
    CountdownEvent,
    GameEvent,
    GameEventType,
    PredictionMadeEvent,
    ResultEvent,
    RoundEndEvent,
    RoundStartEvent,
)

__all__ = [
    "AnyGameEvent",
    "BalanceChangedEvent",
    "CountdownEvent",
    "GameEvent",
    "GameEventType",
    "PredictionMadeEvent",
    "ResultEvent",
    "RoundEndEvent",
    "RoundStartEvent",
]
