# File: utils/__init__.py
"""Pure Python utilities for QuestLog.

This module contains pure Python functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Submodules:
    - dt_utils: Day keys, weekday math, week boundaries
    - math_utils: Clamping and half-up rounding
    - seed_utils: String hashing and the seeded PRNG used by content generators

Usage:
    from . import dt_utils
    from .math_utils import clamp
"""

from . import dt_utils, math_utils, seed_utils

__all__ = ["dt_utils", "math_utils", "seed_utils"]
