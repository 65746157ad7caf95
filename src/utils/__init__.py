"""
Utility modules for the up/down rounds engine
"""

from .decimal_utils import (
    ZERO,
    format_amount,
    format_percent,
    format_price,
    is_valid_amount,
    round_half_up,
)

__all__ = [
    'ZERO',
    'format_amount',
    'format_percent',
    'format_price',
    'is_valid_amount',
    'round_half_up',
]
