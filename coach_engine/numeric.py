"""
Numeric helpers shared by the scoring modules.

Scores in this package are rounded half-up (2.5 -> 3, -2.5 -> -2) so that
thresholds such as "score >= 70" behave identically across all evaluators.
"""

import math
from typing import Optional


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties toward positive infinity."""
    return int(math.floor(value + 0.5))


def round_to(value: float, decimals: int) -> float:
    """Round half-up to a fixed number of decimals."""
    factor = 10 ** decimals
    return math.floor(value * factor + 0.5) / factor


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def safe_ratio(numerator: float, denominator: float) -> Optional[float]:
    """Return numerator / denominator, or None when the denominator is zero."""
    if denominator == 0:
        return None
    return numerator / denominator


def fmt_number(value: float) -> str:
    """Format a number without a trailing '.0' for whole values."""
    return f"{value:g}"
