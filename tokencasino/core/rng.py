"""
Randomness sources for game outcomes.

Every game draws exclusively through a `RandomSource`, so a round can be
replayed exactly by injecting a seeded or fixed-sequence source.
"""

import random
import secrets
from typing import Iterable, List, Protocol, Sequence, TypeVar

T = TypeVar("T")


class RandomSource(Protocol):
    def next(self) -> float:
        """Return a float uniformly distributed in [0.0, 1.0)."""
        ...


class TrueRNG:
    """
    A wrapper around Python's `secrets` module, used as the process-wide
    default source. Fairness is statistical, not provable.
    """

    PRECISION = 10**12

    def next(self) -> float:
        # secrets.randbelow(n) returns [0, n). We use a large integer range to approximate a float.
        return secrets.randbelow(self.PRECISION) / self.PRECISION


class SeededRandomSource:
    """Deterministic source backed by `random.Random`."""

    def __init__(self, seed=None):
        self._random = random.Random(seed)

    def next(self) -> float:
        return self._random.random()


class SequenceRandomSource:
    """Replays a fixed list of draws; raises once the list is exhausted."""

    def __init__(self, values: Iterable[float]):
        self._values = list(values)
        self._index = 0
        for value in self._values:
            if not 0.0 <= value < 1.0:
                raise ValueError(f"Draw {value} is outside [0, 1)")

    @property
    def remaining(self) -> int:
        return len(self._values) - self._index

    def next(self) -> float:
        if self._index >= len(self._values):
            raise IndexError("SequenceRandomSource exhausted")
        value = self._values[self._index]
        self._index += 1
        return value


def random_int(source: RandomSource, min_val: int, max_val: int) -> int:
    """Returns a random integer in the range [min_val, max_val] (inclusive)."""
    if min_val > max_val:
        raise ValueError("min_val must be less than or equal to max_val")
    span = max_val - min_val + 1
    return min_val + min(int(source.next() * span), span - 1)


def uniform(source: RandomSource, low: float, high: float) -> float:
    return low + source.next() * (high - low)


def shuffle(source: RandomSource, items: Sequence[T]) -> List[T]:
    """Returns a new list shuffled with Fisher-Yates."""
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = random_int(source, 0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


rng = TrueRNG()
