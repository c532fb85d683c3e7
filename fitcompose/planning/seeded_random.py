"""Deterministic pseudo-random generator.

Algorithm: 64-bit linear congruential generator,
    state = (state * 48271 + 1) mod 2**64
Each call to ``next`` advances the state once and returns it. All derived
operations are defined in terms of ``next`` so any implementation of the
same arithmetic produces identical sequences for the same seed.
"""

from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")

_MULTIPLIER = 48271
_INCREMENT = 1
_MASK = (1 << 64) - 1


class SeededRandomGenerator:
    def __init__(self, seed: int):
        self._state = seed & _MASK

    @property
    def state(self) -> int:
        return self._state

    def next(self) -> int:
        self._state = (self._state * _MULTIPLIER + _INCREMENT) & _MASK
        return self._state

    def next_int(self, lower: int, upper: int) -> int:
        """Return an integer in the inclusive range [lower, upper]."""
        if upper < lower:
            raise ValueError(f"Invalid range: [{lower}, {upper}]")
        span = upper - lower + 1
        return lower + self.next() % span

    def next_double(self) -> float:
        """Return a float in [0, 1) with six decimal digits of resolution."""
        return (self.next() % 1_000_000) / 1_000_000.0

    def shuffle(self, items: Sequence[T]) -> list[T]:
        """Fisher-Yates shuffle; returns a new list, input untouched."""
        result = list(items)
        for i in range(len(result) - 1, 0, -1):
            j = self.next_int(0, i)
            result[i], result[j] = result[j], result[i]
        return result

    def select_elements(self, items: Sequence[T], count: int) -> list[T]:
        """Sample up to ``count`` distinct elements without replacement.

        When ``count`` covers the whole input the input order is kept.
        """
        if count <= 0 or not items:
            return []
        if count >= len(items):
            return list(items)
        pool = list(items)
        selected: list[T] = []
        while pool and len(selected) < count:
            index = self.next_int(0, len(pool) - 1)
            selected.append(pool.pop(index))
        return selected
