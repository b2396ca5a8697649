from __future__ import annotations

import pytest

from false_friend.attributes import ATTRIBUTES, AttributeKind
from false_friend.rules import (
    SPAWN_INTERVAL_FLOOR_MS,
    min_hits_for_round,
    near_miss_probability,
    near_value_probability,
    rule_for_round,
    spawn_interval_ms_for_round,
)


def test_every_round_has_active_attributes_with_bounded_pools() -> None:
    for r in list(range(1, 201)) + [1_000, 10_000]:
        rule = rule_for_round(r)
        assert rule.round_number == r
        assert len(rule.active) >= 1
        for kind in rule.active:
            size = rule.pool_size(kind)
            assert 2 <= size <= ATTRIBUTES[kind].max_pool


def test_difficulty_is_monotone_in_round_number() -> None:
    prev = rule_for_round(1)
    for r in range(2, 120):
        cur = rule_for_round(r)
        assert set(prev.active) <= set(cur.active)
        for kind in prev.active:
            assert cur.pool_size(kind) >= prev.pool_size(kind)
        prev = cur


def test_ramp_starts_with_one_attribute_and_reaches_all_four() -> None:
    assert rule_for_round(1).active == (AttributeKind.COLOR,)
    assert set(rule_for_round(10).active) == set(AttributeKind)


def test_round_below_one_is_rejected() -> None:
    with pytest.raises(ValueError):
        rule_for_round(0)
    with pytest.raises(ValueError):
        spawn_interval_ms_for_round(-3)
    with pytest.raises(ValueError):
        min_hits_for_round(0)


def test_inactive_pool_lookup_raises() -> None:
    rule = rule_for_round(1)
    with pytest.raises(KeyError):
        rule.pool_size(AttributeKind.NOTCH_ANGLE)


def test_spawn_interval_decreases_to_floor() -> None:
    values = [spawn_interval_ms_for_round(r) for r in range(1, 60)]
    assert values[0] == 700
    assert all(a >= b for a, b in zip(values, values[1:]))
    assert min(values) == SPAWN_INTERVAL_FLOOR_MS
    assert spawn_interval_ms_for_round(500) == SPAWN_INTERVAL_FLOOR_MS


def test_min_hits_non_decreasing_and_capped_below_friend_count() -> None:
    values = [min_hits_for_round(r, friends_per_round=4) for r in range(1, 80)]
    assert values[0] == 1
    assert all(a <= b for a, b in zip(values, values[1:]))
    assert max(values) == 3


def test_near_miss_probabilities_ramp_and_stay_below_one() -> None:
    for fn in (near_miss_probability, near_value_probability):
        values = [fn(r) for r in range(1, 200)]
        assert all(a <= b for a, b in zip(values, values[1:]))
        assert all(0.0 < v < 1.0 for v in values)


def test_rule_matches_only_looks_at_active_attributes() -> None:
    rule = rule_for_round(1)
    friend = rule.fixed.replace(AttributeKind.COLOR, 45)
    same_colour = friend.replace(AttributeKind.SHAPE, "hexagon")
    other_colour = friend.replace(AttributeKind.COLOR, 90)

    assert rule.matches(friend, friend)
    assert rule.matches(same_colour, friend)
    assert not rule.matches(other_colour, friend)


def test_rule_card_text_names_active_attributes() -> None:
    rule = rule_for_round(6)
    assert rule.title == "Match colour + shape + dot count"
    assert rule.description == "Click only objects with the same colour, shape and dot count as the example."
