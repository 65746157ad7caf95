"""
Game errors

All of these are local, synchronous and recoverable: they are raised to the
caller of predict()/start()/stop() and never end the session.
"""


class GameError(Exception):
    """Base class for game errors"""

    pass


class RoundNotOpen(GameError):
    """Prediction submitted while no round accepts bets"""

    pass


class RoundClosedError(RoundNotOpen):
    """Ledger write lost the race against the scheduler closing the round"""

    pass


class InvalidAmount(GameError, ValueError):
    """Stake is not positive, not finite, or exceeds the balance"""

    pass


class AlreadyRunning(GameError):
    """Lifecycle misuse: start() on a running component"""

    pass


class NotRunning(RoundNotOpen):
    """Lifecycle misuse: the component is not running"""

    pass


class RoundLedgerError(GameError, RuntimeError):
    """Ledger used out of order (open while open, close twice)"""

    pass
