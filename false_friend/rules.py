from __future__ import annotations

from dataclasses import dataclass

from .attributes import ATTRIBUTES, AttributeKind, AttributeVector, default_vector

# Order in which attributes join the rule as rounds progress.
ATTRIBUTE_ORDER: tuple[AttributeKind, ...] = (
    AttributeKind.COLOR,
    AttributeKind.SHAPE,
    AttributeKind.DOT_COUNT,
    AttributeKind.NOTCH_ANGLE,
)
INTRODUCED_AT_ROUND: dict[AttributeKind, int] = {
    AttributeKind.COLOR: 1,
    AttributeKind.SHAPE: 3,
    AttributeKind.DOT_COUNT: 6,
    AttributeKind.NOTCH_ANGLE: 10,
}

INITIAL_POOL_SIZE = 3
POOL_GROWTH_EVERY_ROUNDS = 3

SPAWN_INTERVAL_BASE_MS = 700
SPAWN_INTERVAL_STEP_MS = 30
SPAWN_INTERVAL_FLOOR_MS = 280

NEAR_MISS_BASE = 0.15
NEAR_MISS_STEP = 0.06
NEAR_MISS_CAP = 0.85

NEAR_VALUE_BASE = 0.30
NEAR_VALUE_STEP = 0.05
NEAR_VALUE_CAP = 0.90


@dataclass(frozen=True, slots=True)
class RuleDefinition:
    round_number: int
    active: tuple[AttributeKind, ...]
    pool_sizes: tuple[tuple[AttributeKind, int], ...]
    fixed: AttributeVector  # values carried by inactive attributes
    title: str
    description: str

    def pool_size(self, kind: AttributeKind) -> int:
        for k, size in self.pool_sizes:
            if k is kind:
                return size
        raise KeyError(f"{kind.value} is not active in round {self.round_number}")

    def is_active(self, kind: AttributeKind) -> bool:
        return kind in self.active

    def matches(self, vector: AttributeVector, friend: AttributeVector) -> bool:
        """True when ``vector`` satisfies the rule defined by ``friend``."""

        return all(ATTRIBUTES[k].matches(vector.get(k), friend.get(k)) for k in self.active)


def _require_round(round_number: int) -> int:
    r = int(round_number)
    if r < 1:
        raise ValueError(f"round_number must be >= 1, got {round_number}")
    return r


def _pool_size(kind: AttributeKind, round_number: int) -> int:
    grown = INITIAL_POOL_SIZE + (round_number - INTRODUCED_AT_ROUND[kind]) // POOL_GROWTH_EVERY_ROUNDS
    return max(2, min(ATTRIBUTES[kind].max_pool, grown))


def _join_labels(labels: list[str]) -> str:
    if len(labels) == 1:
        return labels[0]
    return f"{', '.join(labels[:-1])} and {labels[-1]}"


def rule_for_round(round_number: int) -> RuleDefinition:
    r = _require_round(round_number)
    active = tuple(k for k in ATTRIBUTE_ORDER if INTRODUCED_AT_ROUND[k] <= r)
    pool_sizes = tuple((k, _pool_size(k, r)) for k in active)

    labels = [ATTRIBUTES[k].label for k in active]
    title = "Match " + " + ".join(labels)
    description = f"Click only objects with the same {_join_labels(labels)} as the example."

    return RuleDefinition(
        round_number=r,
        active=active,
        pool_sizes=pool_sizes,
        fixed=default_vector(),
        title=title,
        description=description,
    )


def spawn_interval_ms_for_round(
    round_number: int,
    *,
    base_ms: int = SPAWN_INTERVAL_BASE_MS,
    step_ms: int = SPAWN_INTERVAL_STEP_MS,
    floor_ms: int = SPAWN_INTERVAL_FLOOR_MS,
) -> int:
    r = _require_round(round_number)
    return max(int(floor_ms), int(base_ms) - int(step_ms) * (r - 1))


def min_hits_for_round(round_number: int, *, friends_per_round: int = 4) -> int:
    """Friend clicks needed to clear a round; never requires every friend."""

    r = _require_round(round_number)
    cap = max(1, int(friends_per_round) - 1)
    return min(cap, 1 + (r - 1) // 4)


def near_miss_probability(round_number: int) -> float:
    """Chance a false friend differs from the friend on exactly one attribute."""

    r = _require_round(round_number)
    return min(NEAR_MISS_CAP, NEAR_MISS_BASE + NEAR_MISS_STEP * (r - 1))


def near_value_probability(round_number: int) -> float:
    """Chance a non-matching value is adjacent to the friend's value (small pools)."""

    r = _require_round(round_number)
    return min(NEAR_VALUE_CAP, NEAR_VALUE_BASE + NEAR_VALUE_STEP * (r - 1))
