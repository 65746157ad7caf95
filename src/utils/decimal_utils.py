"""
Decimal Utilities Module - Consistent rounding and formatting of amounts
Prices and stakes travel as floats; rounding goes through Decimal so that
halves always round away from zero (round() on floats is banker's rounding).
"""

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Union

logger = logging.getLogger(__name__)

# Type alias for numeric types
Numeric = Union[Decimal, float, str, int]

__all__ = [
    "ZERO",
    "format_amount",
    "format_percent",
    "format_price",
    "is_valid_amount",
    "round_half_up",
]

ZERO = Decimal("0")

_QUANTIZER_CACHE = {
    0: Decimal("1"),
    2: Decimal("0.01"),
    4: Decimal("0.0001"),
}


def _get_quantizer(precision: int) -> Decimal:
    """Return cached quantizer for given precision."""
    if precision < 0:
        raise ValueError(f"Precision must be non-negative, got {precision}")
    if precision not in _QUANTIZER_CACHE:
        _QUANTIZER_CACHE[precision] = Decimal(10) ** -precision
    return _QUANTIZER_CACHE[precision]


# ========================================================================
# CONVERSION UTILITIES
# ========================================================================


def to_decimal(value: Numeric, default: Decimal | None = None) -> Decimal:
    """
    Safely convert value to Decimal

    Floats go through str() so that 0.1 becomes Decimal("0.1") rather than
    its binary expansion.

    Args:
        value: Value to convert
        default: Default value if conversion fails

    Returns:
        Decimal value

    Raises:
        ValueError if conversion fails and no default provided
    """
    if isinstance(value, Decimal):
        return value

    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        if default is not None:
            logger.warning(f"Failed to convert {value} to Decimal: {e}, using default {default}")
            return default
        raise ValueError(f"Cannot convert {value} to Decimal: {e}")


# ========================================================================
# ROUNDING UTILITIES
# ========================================================================


def round_half_up(value: Numeric, precision: int = 0) -> float:
    """
    Round half away from zero and return a float

    Args:
        value: Value to round
        precision: Decimal places (default 0, whole units)

    Returns:
        Rounded float (never -0.0)
    """
    rounded = to_decimal(value).quantize(_get_quantizer(precision), rounding=ROUND_HALF_UP)
    if rounded == ZERO:
        return 0.0
    return float(rounded)


# ========================================================================
# VALIDATION UTILITIES
# ========================================================================


def is_valid_amount(value: Any, allow_zero: bool = False) -> bool:
    """
    Check if value is a finite, positive amount

    Args:
        value: Value to check
        allow_zero: Whether zero is valid

    Returns:
        True if valid amount
    """
    if isinstance(value, bool):
        return False

    try:
        decimal_value = to_decimal(value)
    except ValueError:
        return False

    if decimal_value.is_nan() or decimal_value.is_infinite():
        return False

    if allow_zero:
        return decimal_value >= 0
    return decimal_value > 0


# ========================================================================
# FORMATTING UTILITIES
# ========================================================================


def format_amount(value: Numeric, precision: int = 0) -> str:
    """
    Format a stake or balance for display

    Returns:
        Formatted string (e.g., "10,000")
    """
    decimal_value = to_decimal(value).quantize(_get_quantizer(precision), rounding=ROUND_HALF_UP)
    return f"{decimal_value:,.{precision}f}"


def format_price(value: Numeric, precision: int = 2) -> str:
    """
    Format price for display

    Returns:
        Formatted string (e.g., "$150.25")
    """
    decimal_value = to_decimal(value).quantize(_get_quantizer(precision), rounding=ROUND_HALF_UP)
    return f"${decimal_value:,.{precision}f}"


def format_percent(value: Numeric, precision: int = 2) -> str:
    """
    Format percentage for display

    Returns:
        Formatted string (e.g., "+10.50%")
    """
    rounded = to_decimal(value).quantize(_get_quantizer(precision), rounding=ROUND_HALF_UP)
    sign = "+" if rounded > 0 else ""
    return f"{sign}{rounded:.{precision}f}%"
