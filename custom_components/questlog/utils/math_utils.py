# File: utils/math_utils.py
"""Math and calculation utilities for QuestLog.

Pure Python math functions with ZERO Home Assistant dependencies.

Functions:
    - round_half_up: Round to the nearest integer, halves away from zero
    - clamp: Bound a value to a range
    - clamp_int: Coerce to int, then bound
    - coerce_float: Tolerant float conversion with fallback
"""

from __future__ import annotations

import logging
import math

# Module-level logger (no HA dependency)
_LOGGER = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 rounding up.

    Python's built-in ``round`` uses banker's rounding (``round(2.5) == 2``);
    award math always rounds halves up so ``2.5`` becomes ``3``.

    Examples:
        round_half_up(2.5) → 3
        round_half_up(14.4) → 14
        round_half_up(-2.5) → -2
    """
    return math.floor(value + 0.5)


def clamp(value: float, min_val: float, max_val: float) -> float:
    """Clamp a value between minimum and maximum bounds.

    Args:
        value: Value to clamp
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        Value clamped to [min_val, max_val] range

    Examples:
        clamp(150, 0, 100) → 100
        clamp(-10, 0, 100) → 0
        clamp(50, 0, 100) → 50
    """
    return max(min_val, min(value, max_val))


def coerce_float(value: object, default: float) -> float:
    """Convert value to a finite float, falling back to default."""
    try:
        result = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def clamp_int(value: object, min_val: int, max_val: int, default: int) -> int:
    """Coerce value to an int (truncating floats) and clamp it.

    Non-numeric input yields ``default`` before clamping.

    Examples:
        clamp_int("7", 0, 5, 3) → 5
        clamp_int(None, 0, 5, 3) → 3
    """
    number = coerce_float(value, float(default))
    return int(clamp(int(number), min_val, max_val))
