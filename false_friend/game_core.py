from __future__ import annotations

import random
from collections.abc import Sequence
from enum import Enum
from typing import TypeVar

T = TypeVar("T")


class Phase(str, Enum):
    IDLE = "idle"
    COUNTDOWN = "countdown"
    RULE_CARD = "rule_card"
    PLAYING = "playing"
    DEAD = "dead"


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def choice(self, seq: Sequence[T]) -> T:
        return self._rng.choice(seq)

    def uniform(self, a: float, b: float) -> float:
        return self._rng.uniform(a, b)

    def random(self) -> float:
        return self._rng.random()

    def sample(self, population: Sequence[T], k: int) -> list[T]:
        return self._rng.sample(population, k)


def derive_seed(seed: int, *parts: int) -> int:
    """Mix a run seed with stream identifiers into an independent 32-bit seed.

    Each (seed, parts) combination yields its own stream, so e.g. round 3's
    friend vector does not depend on how many draws round 2 consumed.
    """

    value = int(seed) & 0xFFFFFFFF
    for part in parts:
        value = (value * 1664525 + 1013904223 + int(part) * 941 + 77) & 0xFFFFFFFF
    return value

