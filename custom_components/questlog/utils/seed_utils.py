# File: utils/seed_utils.py
"""Deterministic seeding helpers for QuestLog content generation.

Pure Python, no Home Assistant dependencies. Daily challenges and weekly boss
goals must be reproducible for a given day or week key, so generators never
touch the ``random`` module; they derive a 32-bit seed from a string and drive
a small PRNG from it.

Functions:
    - hash_string: FNV-1a 32-bit hash of a string
    - Mulberry32: 32-bit PRNG yielding floats in [0, 1)
    - seeded_shuffle: Fisher-Yates shuffle driven by Mulberry32
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TypeVar

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")

UINT32_MASK = 0xFFFFFFFF

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193


def hash_string(text: str) -> int:
    """Hash a string to an unsigned 32-bit integer (FNV-1a over UTF-16 units).

    Code units are taken as JavaScript strings store them, so seeds match
    those of the browser edition for the same key.

    Examples:
        hash_string("") → 2166136261
    """
    value = FNV_OFFSET_BASIS
    encoded = text.encode("utf-16-le")
    for index in range(0, len(encoded), 2):
        value ^= encoded[index] | (encoded[index + 1] << 8)
        value = (value * FNV_PRIME) & UINT32_MASK
    return value


@dataclass
class Mulberry32:
    """Mulberry32 generator: tiny, fast, and fully determined by its seed."""

    state: int

    def __post_init__(self) -> None:
        self.state &= UINT32_MASK

    def next_u32(self) -> int:
        self.state = (self.state + 0x6D2B79F5) & UINT32_MASK
        t = self.state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & UINT32_MASK
        return (t ^ (t >> 14)) & UINT32_MASK

    def random(self) -> float:
        """Return the next float in [0, 1)."""
        return self.next_u32() / 4294967296

    def randint(self, low: int, high: int) -> int:
        # inclusive low..high
        return low + int(self.random() * (high - low + 1))


def _imul(a: int, b: int) -> int:
    """32-bit wrapping multiply."""
    return (a * b) & UINT32_MASK


def seeded_shuffle(items: list[_T], seed: int) -> list[_T]:
    """Return a shuffled copy of items; the input list is left untouched.

    Args:
        items: Sequence to shuffle
        seed: 32-bit seed, typically from hash_string()

    Returns:
        New list in a permutation fully determined by (items, seed)
    """
    result = list(items)
    rng = Mulberry32(seed)
    for i in range(len(result) - 1, 0, -1):
        j = int(rng.random() * (i + 1))
        result[i], result[j] = result[j], result[i]
    return result
