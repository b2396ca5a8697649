from __future__ import annotations

import math
from dataclasses import dataclass

from .attributes import ATTRIBUTES, AttributeVector
from .game_core import SeededRng, derive_seed
from .rules import RuleDefinition, near_miss_probability, near_value_probability

DEFAULT_OBJECTS_PER_ROUND = 20
DEFAULT_FRIENDS_PER_ROUND = 4

# Independent RNG streams per round, so layout never perturbs matching logic.
_FRIEND_STREAM = 1
_SLOT_STREAM = 2
_DECOY_STREAM = 3
_LAYOUT_STREAM = 4

# Playfield placement, normalized to the arena rect.
_X_RANGE = (0.12, 0.88)
_Y_RANGE = (0.20, 0.86)
_SIZE_RANGE = (52.0, 78.0)
_MIN_SPACING = 0.12
_SPACING_WINDOW = 4
_PLACEMENT_ATTEMPTS = 12


@dataclass(frozen=True, slots=True)
class TokenSpec:
    token_id: str
    index: int
    is_friend: bool
    attributes: AttributeVector
    x: float
    y: float
    size: float


@dataclass(frozen=True, slots=True)
class RoundContent:
    round_number: int
    rule: RuleDefinition
    friend_vector: AttributeVector
    tokens: tuple[TokenSpec, ...]
    friend_indices: tuple[int, ...]


class ContentGenerator:
    """Deterministic builder of round token queues.

    Everything is derived from (seed, round number): the same pair always
    produces the same friend vector, friend slots, false friends and layout.
    """

    def __init__(
        self,
        *,
        seed: int,
        objects_per_round: int = DEFAULT_OBJECTS_PER_ROUND,
        friends_per_round: int = DEFAULT_FRIENDS_PER_ROUND,
    ) -> None:
        if objects_per_round < 2:
            raise ValueError("objects_per_round must be >= 2")
        if not (1 <= friends_per_round < objects_per_round):
            raise ValueError("friends_per_round must be in [1, objects_per_round)")
        self._seed = int(seed)
        self._objects = int(objects_per_round)
        self._friends = int(friends_per_round)

    @property
    def seed(self) -> int:
        return self._seed

    def friend_vector(self, round_number: int, rule: RuleDefinition) -> AttributeVector:
        rng = SeededRng(derive_seed(self._seed, round_number, _FRIEND_STREAM))
        vector = rule.fixed
        for kind in rule.active:
            pool = ATTRIBUTES[kind].pool(rule.pool_size(kind))
            vector = vector.replace(kind, rng.choice(pool))
        return vector

    def build_round(self, round_number: int, rule: RuleDefinition) -> RoundContent:
        if rule.round_number != round_number:
            raise ValueError(f"rule is for round {rule.round_number}, not {round_number}")

        friend = self.friend_vector(round_number, rule)

        slot_rng = SeededRng(derive_seed(self._seed, round_number, _SLOT_STREAM))
        friend_indices = tuple(sorted(slot_rng.sample(range(self._objects), self._friends)))
        friend_set = set(friend_indices)

        decoy_rng = SeededRng(derive_seed(self._seed, round_number, _DECOY_STREAM))
        layout = self._layout(round_number)

        tokens: list[TokenSpec] = []
        for index in range(self._objects):
            is_friend = index in friend_set
            if is_friend:
                vector = friend
            else:
                vector = self._false_friend(rule=rule, friend=friend, round_number=round_number, rng=decoy_rng)
            x, y, size = layout[index]
            tokens.append(
                TokenSpec(
                    token_id=f"{round_number}-{index}",
                    index=index,
                    is_friend=is_friend,
                    attributes=vector,
                    x=x,
                    y=y,
                    size=size,
                )
            )

        return RoundContent(
            round_number=round_number,
            rule=rule,
            friend_vector=friend,
            tokens=tuple(tokens),
            friend_indices=friend_indices,
        )

    def _false_friend(
        self,
        *,
        rule: RuleDefinition,
        friend: AttributeVector,
        round_number: int,
        rng: SeededRng,
    ) -> AttributeVector:
        near_p = near_value_probability(round_number)

        # Near miss: match everything but one active attribute. With a single
        # active attribute this is the same as a full mismatch.
        if rng.random() < near_miss_probability(round_number):
            mismatched = (rng.choice(rule.active),)
        else:
            mismatched = rule.active

        vector = rule.fixed
        for kind in rule.active:
            value = ATTRIBUTES[kind].value_for(
                should_match=kind not in mismatched,
                friend=friend.get(kind),
                pool_size=rule.pool_size(kind),
                rng=rng,
                near_probability=near_p,
            )
            vector = vector.replace(kind, value)

        if rule.matches(vector, friend):
            kind = rule.active[rng.randint(0, len(rule.active) - 1)]
            forced = ATTRIBUTES[kind].non_matching_value(
                friend.get(kind),
                pool_size=rule.pool_size(kind),
                rng=rng,
                near_probability=0.0,
            )
            vector = vector.replace(kind, forced)
        return vector

    def _layout(self, round_number: int) -> list[tuple[float, float, float]]:
        rng = SeededRng(derive_seed(self._seed, round_number, _LAYOUT_STREAM))
        placed: list[tuple[float, float, float]] = []
        for _ in range(self._objects):
            recent = placed[-_SPACING_WINDOW:]
            best: tuple[float, float] | None = None
            best_gap = -1.0
            for _attempt in range(_PLACEMENT_ATTEMPTS):
                x = rng.uniform(*_X_RANGE)
                y = rng.uniform(*_Y_RANGE)
                gap = min((math.hypot(x - px, y - py) for px, py, _ in recent), default=math.inf)
                if gap > best_gap:
                    best, best_gap = (x, y), gap
                if gap >= _MIN_SPACING:
                    break
            assert best is not None
            placed.append((best[0], best[1], rng.uniform(*_SIZE_RANGE)))
        return placed
