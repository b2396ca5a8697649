from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import StrEnum

from .game_core import SeededRng

# Pools at or below this size use adjacent values for near misses.
NEAR_POOL_THRESHOLD = 4


class AttributeKind(StrEnum):
    COLOR = "color"
    SHAPE = "shape"
    DOT_COUNT = "dot_count"
    NOTCH_ANGLE = "notch_angle"


@dataclass(frozen=True, slots=True)
class AttributeVector:
    """One concrete value per attribute kind; field names match AttributeKind values."""

    color: int
    shape: str
    dot_count: int
    notch_angle: int

    def get(self, kind: AttributeKind) -> object:
        return getattr(self, kind.value)

    def replace(self, kind: AttributeKind, value: object) -> "AttributeVector":
        return dataclasses.replace(self, **{kind.value: value})


class Attribute:
    """A visual attribute with an ordered value table.

    Pools are prefixes of the value table: a pool of size ``n`` is the first
    ``n`` values. Subclasses only decide which values count as adjacent.
    """

    def __init__(self, kind: AttributeKind, label: str, values: tuple[object, ...]) -> None:
        if len(values) < 2:
            raise ValueError("attribute needs at least 2 values")
        self.kind = kind
        self.label = label
        self._values = values

    @property
    def max_pool(self) -> int:
        return len(self._values)

    @property
    def default_value(self) -> object:
        return self._values[0]

    def pool(self, size: int) -> tuple[object, ...]:
        if not (2 <= size <= self.max_pool):
            raise ValueError(f"{self.kind.value} pool size must be in [2, {self.max_pool}], got {size}")
        return self._values[:size]

    def matches(self, value: object, friend: object) -> bool:
        return value == friend

    def neighbours(self, value: object, pool_size: int) -> tuple[object, ...]:
        raise NotImplementedError

    def non_matching_value(
        self,
        friend: object,
        *,
        pool_size: int,
        rng: SeededRng,
        near_probability: float,
    ) -> object:
        """Return a pool value that never matches ``friend``."""

        pool = self.pool(pool_size)
        if friend not in pool:
            raise ValueError(f"{friend!r} is not in the {self.kind.value} pool")
        others = tuple(v for v in pool if not self.matches(v, friend))

        if pool_size <= NEAR_POOL_THRESHOLD and rng.random() < near_probability:
            near = tuple(v for v in self.neighbours(friend, pool_size) if not self.matches(v, friend))
            if near:
                return rng.choice(near)
        return rng.choice(others)

    def value_for(
        self,
        *,
        should_match: bool,
        friend: object,
        pool_size: int,
        rng: SeededRng,
        near_probability: float,
    ) -> object:
        if should_match:
            return friend
        return self.non_matching_value(
            friend,
            pool_size=pool_size,
            rng=rng,
            near_probability=near_probability,
        )

    def _index(self, value: object, pool_size: int) -> int:
        pool = self.pool(pool_size)
        try:
            return pool.index(value)
        except ValueError:
            raise ValueError(f"{value!r} is not in the {self.kind.value} pool") from None


class LinearAttribute(Attribute):
    """Values ordered on a line; the ends have a single neighbour."""

    def neighbours(self, value: object, pool_size: int) -> tuple[object, ...]:
        pool = self.pool(pool_size)
        idx = self._index(value, pool_size)
        return tuple(pool[i] for i in (idx - 1, idx + 1) if 0 <= i < pool_size)


class CyclicAttribute(Attribute):
    """Values ordered on a circle (hues, angles); adjacency wraps around."""

    def neighbours(self, value: object, pool_size: int) -> tuple[object, ...]:
        pool = self.pool(pool_size)
        idx = self._index(value, pool_size)
        out: list[object] = []
        for i in ((idx - 1) % pool_size, (idx + 1) % pool_size):
            if i != idx and pool[i] not in out:
                out.append(pool[i])
        return tuple(out)


ATTRIBUTES: dict[AttributeKind, Attribute] = {
    AttributeKind.COLOR: CyclicAttribute(
        AttributeKind.COLOR,
        "colour",
        (0, 45, 90, 135, 180, 225, 270, 315),
    ),
    AttributeKind.SHAPE: LinearAttribute(
        AttributeKind.SHAPE,
        "shape",
        ("circle", "square", "triangle", "diamond", "pentagon", "hexagon"),
    ),
    AttributeKind.DOT_COUNT: LinearAttribute(
        AttributeKind.DOT_COUNT,
        "dot count",
        (1, 2, 3, 4, 5, 6),
    ),
    AttributeKind.NOTCH_ANGLE: CyclicAttribute(
        AttributeKind.NOTCH_ANGLE,
        "notch angle",
        (0, 45, 90, 135, 180, 225, 270, 315),
    ),
}


def attribute_for(kind: AttributeKind) -> Attribute:
    return ATTRIBUTES[kind]


def default_vector() -> AttributeVector:
    return AttributeVector(
        color=int(ATTRIBUTES[AttributeKind.COLOR].default_value),  # type: ignore[arg-type]
        shape=str(ATTRIBUTES[AttributeKind.SHAPE].default_value),
        dot_count=int(ATTRIBUTES[AttributeKind.DOT_COUNT].default_value),  # type: ignore[arg-type]
        notch_angle=int(ATTRIBUTES[AttributeKind.NOTCH_ANGLE].default_value),  # type: ignore[arg-type]
    )
