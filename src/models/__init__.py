"""
Data models for the up/down rounds engine
"""

from .enums import Direction, OutcomeResult, RoundState, SchedulerState, SessionStatus
from .game_settings import GameSettings
from .outcome import Outcome
from .prediction import Prediction
from .price_point import PredictionMarker, PricePoint
from .round import Round
from .session_state import SessionState

__all__ = [
    "Direction",
    "OutcomeResult",
    "RoundState",
    "SchedulerState",
    "SessionStatus",
    "GameSettings",
    "Outcome",
    "Prediction",
    "PredictionMarker",
    "PricePoint",
    "Round",
    "SessionState",
]
