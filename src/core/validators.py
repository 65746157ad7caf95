"""
Input validation functions

Validators return (is_valid, error_message) tuples; callers decide which
exception to raise.
"""

import math

from models import Round
from utils.decimal_utils import format_amount, is_valid_amount


def validate_prediction_amount(amount: float, balance: float) -> tuple[bool, str | None]:
    """
    Validate a stake is positive, finite and affordable

    Args:
        amount: Stake
        balance: Current balance

    Returns:
        Tuple of (is_valid, error_message)
        - (True, None) if valid
        - (False, "error message") if invalid
    """
    # Reject bools, non-numbers (numeric strings included), NaN and Infinity
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or not math.isfinite(amount):
        return False, f"Invalid amount: {amount!r} (must be a finite number)"

    if amount <= 0:
        return False, f"Amount {amount} must be positive"

    if not is_valid_amount(balance, allow_zero=True):
        return False, f"Invalid balance state: {balance}"

    if amount > balance:
        return False, f"Insufficient balance: have {format_amount(balance, 2)}, need {format_amount(amount, 2)}"

    return True, None


def validate_round_accepting(current_round: Round | None, now_ms: int) -> tuple[bool, str | None]:
    """
    Validate the current round still accepts predictions

    Args:
        current_round: Ledger's current round (None before the first open)
        now_ms: Timeline time of the prediction

    Returns:
        Tuple of (is_valid, error_message)
    """
    if current_round is None:
        return False, "No round has been opened yet"

    if not current_round.is_open:
        return False, f"Round {current_round.round_id} is closed"

    if now_ms >= current_round.closes_at:
        return False, f"Round {current_round.round_id} closed at {current_round.closes_at}"

    return True, None
