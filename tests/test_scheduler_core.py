from __future__ import annotations

import pytest

from false_friend.content import ContentGenerator
from false_friend.rules import rule_for_round
from false_friend.scheduler import RoundScheduler, TimerQueue, Token


def test_timers_fire_in_due_order_then_scheduling_order() -> None:
    queue = TimerQueue(lambda: 0)
    fired: list[str] = []
    queue.schedule_at(300.0, lambda: fired.append("c"))
    queue.schedule_at(100.0, lambda: fired.append("a1"))
    queue.schedule_at(200.0, lambda: fired.append("b"))
    queue.schedule_at(100.0, lambda: fired.append("a2"))

    assert queue.advance_to(150.0) == 2
    assert fired == ["a1", "a2"]
    assert queue.next_due_ms() == 200.0

    queue.advance_to(1_000.0)
    assert fired == ["a1", "a2", "b", "c"]
    assert queue.pending() == ()


def test_timer_scheduled_by_callback_fires_in_same_advance_when_due() -> None:
    queue = TimerQueue(lambda: 0)
    fired: list[str] = []

    def first() -> None:
        fired.append("first")
        queue.schedule_at(150.0, lambda: fired.append("chained"))

    queue.schedule_at(100.0, first)
    queue.advance_to(200.0)
    assert fired == ["first", "chained"]


def test_stale_generation_callbacks_are_no_ops() -> None:
    generation = [1]
    queue = TimerQueue(lambda: generation[0])
    fired: list[str] = []
    late = queue.schedule_at(100.0, lambda: fired.append("stale"))

    generation[0] = 2
    assert queue.advance_to(500.0) == 0
    assert fired == []
    assert late.fire() is False

    queue.schedule_at(600.0, lambda: fired.append("fresh"))
    queue.advance_to(600.0)
    assert fired == ["fresh"]


def test_cancel_all_drops_pending_timers() -> None:
    queue = TimerQueue(lambda: 0)
    fired: list[int] = []
    timers = [queue.schedule_at(float(i), lambda i=i: fired.append(i)) for i in range(5)]

    assert queue.cancel_all() == 5
    assert queue.pending() == ()
    queue.advance_to(100.0)
    assert fired == []
    assert all(t.fire() is False for t in timers)


def test_timer_fires_at_most_once() -> None:
    queue = TimerQueue(lambda: 0)
    fired: list[int] = []
    t = queue.schedule_at(10.0, lambda: fired.append(1))
    assert t.fire() is True
    assert t.fire() is False
    queue.advance_to(20.0)
    assert fired == [1]


def _round_scheduler(queue: TimerQueue, spawned: list[Token], expired: list[Token]) -> RoundScheduler:
    rule = rule_for_round(2)
    content = ContentGenerator(seed=42, objects_per_round=6, friends_per_round=2).build_round(2, rule)
    return RoundScheduler(
        content=content,
        timers=queue,
        start_ms=1_000.0,
        spawn_interval_ms=500,
        visible_ms=2_000,
        on_spawn=spawned.append,
        on_expire=expired.append,
    )


def test_round_scheduler_spawns_on_cadence_and_expires_after_ttl() -> None:
    queue = TimerQueue(lambda: 0)
    spawned: list[Token] = []
    expired: list[Token] = []
    sched = _round_scheduler(queue, spawned, expired)
    sched.start()

    queue.advance_to(999.0)
    assert spawned == []

    queue.advance_to(1_000.0)
    assert [t.spec.index for t in spawned] == [0]
    assert spawned[0].spawned_at_ms == 1_000.0
    assert spawned[0].expires_at_ms == 3_000.0

    queue.advance_to(2_600.0)
    assert [t.spec.index for t in sched.live_tokens()] == [0, 1, 2, 3]

    queue.advance_to(3_000.0)
    assert [t.spec.index for t in expired] == [0]
    assert not sched.drained

    queue.advance_to(10_000.0)
    assert [t.spec.index for t in spawned] == list(range(6))
    assert [t.spec.index for t in expired] == list(range(6))
    assert all(a.spawned_at_ms < b.spawned_at_ms for a, b in zip(spawned, spawned[1:]))
    assert sched.drained


def test_claimed_token_never_expires() -> None:
    queue = TimerQueue(lambda: 0)
    spawned: list[Token] = []
    expired: list[Token] = []
    sched = _round_scheduler(queue, spawned, expired)
    sched.start()

    queue.advance_to(1_600.0)
    claimed = sched.claim("2-1")
    assert claimed is not None and claimed.spec.index == 1
    assert sched.claim("2-1") is None
    assert sched.claim("2-5") is None  # not spawned yet

    queue.advance_to(10_000.0)
    assert 1 not in [t.spec.index for t in expired]
    assert len(expired) == 5
    assert sched.drained


def test_round_scheduler_rejects_bad_pacing() -> None:
    queue = TimerQueue(lambda: 0)
    content = ContentGenerator(seed=1).build_round(1, rule_for_round(1))
    with pytest.raises(ValueError):
        RoundScheduler(
            content=content,
            timers=queue,
            start_ms=0.0,
            spawn_interval_ms=0,
            visible_ms=2_000,
            on_spawn=lambda t: None,
            on_expire=lambda t: None,
        )
