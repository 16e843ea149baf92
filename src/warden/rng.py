"""
rng.py — Seeded pseudo-random stream

Mulberry32 over a 32-bit state. No external entropy: the same seed driven
with the same call sequence yields the same outputs, so a session's world
catalog can always be replayed from its seed.
"""

from __future__ import annotations
from typing import List, Sequence, TypeVar

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF
_INCREMENT = 0x6D2B79F5
_TWO_POW_32 = 4294967296.0


def _imul(a: int, b: int) -> int:
    """Low 32 bits of a * b."""
    return (a * b) & _MASK32


class SeededStream:
    """
    Deterministic generator.

    Seeds wider than 32 bits (e.g. millisecond wall-clock values) are
    truncated to their low 32 bits.
    """

    def __init__(self, seed: int):
        if not isinstance(seed, int) or isinstance(seed, bool):
            raise TypeError(f"seed must be int, got {type(seed).__name__}")
        self._state = seed & _MASK32

    @property
    def state(self) -> int:
        return self._state

    def next(self) -> float:
        """Float in [0, 1)."""
        self._state = (self._state + _INCREMENT) & _MASK32
        s = self._state
        t = _imul(s ^ (s >> 15), 1 | s)
        t = ((t + _imul(t ^ (t >> 7), 61 | t)) & _MASK32) ^ t
        return ((t ^ (t >> 14)) & _MASK32) / _TWO_POW_32

    def int(self, lo: int, hi: int) -> int:
        """Integer in [lo, hi] inclusive."""
        if hi < lo:
            raise ValueError(f"empty range [{lo}, {hi}]")
        return int(self.next() * (hi - lo + 1)) + lo

    def pick(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("cannot pick from an empty sequence")
        return items[self.int(0, len(items) - 1)]

    def shuffle(self, items: Sequence[T]) -> List[T]:
        """Fisher-Yates. Returns a new list, the input is left untouched."""
        result = list(items)
        for i in range(len(result) - 1, 0, -1):
            j = self.int(0, i)
            result[i], result[j] = result[j], result[i]
        return result

    def __repr__(self) -> str:
        return f"SeededStream(state=0x{self._state:08x})"
