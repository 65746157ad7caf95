"""Core module - Price feed, rounds, settlement and the game session"""

from . import validators
from .errors import (
    AlreadyRunning,
    GameError,
    InvalidAmount,
    NotRunning,
    RoundClosedError,
    RoundLedgerError,
    RoundNotOpen,
)
from .game_session import GameSession
from .price_buffer import PriceRingBuffer
from .price_feed import PriceFeed
from .round_ledger import RoundLedger
from .round_scheduler import RoundScheduler
from .settlement import SettlementEngine
from .validators import validate_prediction_amount, validate_round_accepting

__all__ = [
    "AlreadyRunning",
    "GameError",
    "GameSession",
    "InvalidAmount",
    "NotRunning",
    "PriceFeed",
    "PriceRingBuffer",
    "RoundClosedError",
    "RoundLedger",
    "RoundLedgerError",
    "RoundNotOpen",
    "RoundScheduler",
    "SettlementEngine",
    "validate_prediction_amount",
    "validate_round_accepting",
    "validators",
]
