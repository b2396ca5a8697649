from __future__ import annotations

from dataclasses import dataclass

import pytest

from false_friend.config import FalseFriendConfig
from false_friend.content import ContentGenerator
from false_friend.engine import (
    DeathCause,
    PressOutcome,
    RunEventKind,
    build_false_friend_run,
)
from false_friend.game_core import Phase
from false_friend.rules import rule_for_round
from false_friend.scoring import FALSE_FRIEND_EXPIRE_BONUS, round_clear_bonus


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)

    def set_ms(self, ms: float) -> None:
        self.t = float(ms) / 1000.0


# Default pacing: 3 x 1000 ms countdown, 2000 ms rule card, 700 ms spawns in round 1.
PLAY_START_MS = 5_000.0
ROUND1_INTERVAL_MS = 700
ROUND1_LAST_EXPIRY_MS = PLAY_START_MS + 19 * ROUND1_INTERVAL_MS + 2_000


def _start_playing(seed: int) -> tuple[FakeClock, object]:
    clock = FakeClock()
    engine = build_false_friend_run(clock=clock, seed=seed)
    engine.start_run()
    clock.set_ms(PLAY_START_MS)
    engine.update()
    assert engine.phase is Phase.PLAYING
    return clock, engine


def test_phase_sequence_countdown_rule_card_playing() -> None:
    clock = FakeClock()
    engine = build_false_friend_run(clock=clock, seed=1)
    assert engine.phase is Phase.IDLE

    engine.start_run()
    assert engine.phase is Phase.COUNTDOWN
    assert engine.snapshot().countdown == 3

    clock.advance(1.0)
    engine.update()
    assert engine.snapshot().countdown == 2

    clock.advance(2.0)
    engine.update()
    snap = engine.snapshot()
    assert snap.phase is Phase.RULE_CARD
    assert snap.round_number == 1
    assert snap.rule is not None and snap.rule.round_number == 1
    assert snap.preview == ContentGenerator(seed=1).friend_vector(1, rule_for_round(1))
    assert snap.tokens == ()

    clock.advance(2.0)
    engine.update()
    snap = engine.snapshot()
    assert snap.phase is Phase.PLAYING
    assert [t.token_id for t in snap.tokens] == ["1-0"]


def test_press_outside_playing_is_ignored() -> None:
    clock = FakeClock()
    engine = build_false_friend_run(clock=clock, seed=1)
    assert engine.press("1-0") is PressOutcome.IGNORED
    engine.start_run()
    assert engine.press("1-0") is PressOutcome.IGNORED


def test_one_friend_click_then_expiries_clears_round_one_with_exact_score() -> None:
    seed = 5150
    clock, engine = _start_playing(seed)

    mirror = ContentGenerator(seed=seed)
    content = mirror.build_round(1, rule_for_round(1))
    friend_idx = content.friend_indices[0]

    clock.set_ms(PLAY_START_MS + friend_idx * ROUND1_INTERVAL_MS + 300)
    assert engine.press(f"1-{friend_idx}") is PressOutcome.HIT
    assert engine.hits_this_round == 1
    assert engine.press(f"1-{friend_idx}") is PressOutcome.IGNORED

    clock.set_ms(ROUND1_LAST_EXPIRY_MS + 500)
    engine.update()

    assert engine.phase is Phase.RULE_CARD
    assert engine.round_number == 2
    assert engine.rounds_cleared == 1
    assert engine.score == (2_000 - 300) + 16 * FALSE_FRIEND_EXPIRE_BONUS + round_clear_bonus(1)
    assert engine.score == 2_600

    kinds = [e.kind for e in engine.events()]
    assert kinds.count(RunEventKind.FRIEND_HIT) == 1
    assert kinds.count(RunEventKind.FRIEND_EXPIRED) == 3
    assert kinds.count(RunEventKind.FALSE_FRIEND_EXPIRED) == 16
    assert kinds[-1] is RunEventKind.ROUND_CLEARED

    # Round 2 starts after the rule card dwell with a faster cadence.
    clock.set_ms(ROUND1_LAST_EXPIRY_MS + 2_001)
    engine.update()
    assert engine.phase is Phase.PLAYING
    assert engine.spawn_interval_ms() == 670
    assert [t.token_id for t in engine.live_tokens()] == ["2-0"]


def test_false_friend_click_kills_run_immediately() -> None:
    seed = 99
    clock, engine = _start_playing(seed)

    content = ContentGenerator(seed=seed).build_round(1, rule_for_round(1))
    decoy_idx = next(t.index for t in content.tokens if not t.is_friend)

    clock.set_ms(PLAY_START_MS + decoy_idx * ROUND1_INTERVAL_MS + 100)
    engine.update()
    score_before = engine.score

    assert engine.press(f"1-{decoy_idx}") is PressOutcome.FALSE_FRIEND
    assert engine.phase is Phase.DEAD
    assert engine.death_cause is DeathCause.FALSE_FRIEND_CLICKED
    assert engine.live_tokens() == ()
    assert engine.pending_timers() == ()
    assert engine.score == score_before

    clock.advance(60.0)
    engine.update()
    assert engine.phase is Phase.DEAD
    assert engine.score == score_before


def test_too_few_hits_when_queue_drains_is_a_soft_fail() -> None:
    clock, engine = _start_playing(seed=7)

    clock.set_ms(ROUND1_LAST_EXPIRY_MS - 1)
    engine.update()
    assert engine.phase is Phase.PLAYING

    clock.set_ms(ROUND1_LAST_EXPIRY_MS + 1)
    engine.update()
    assert engine.phase is Phase.DEAD
    assert engine.death_cause is DeathCause.TOO_FEW_HITS
    assert engine.score == 16 * FALSE_FRIEND_EXPIRE_BONUS
    assert engine.rounds_cleared == 0
    assert engine.events()[-1].kind is RunEventKind.ROUND_FAILED


def test_expired_token_cannot_be_clicked() -> None:
    seed = 12
    clock, engine = _start_playing(seed)
    content = ContentGenerator(seed=seed).build_round(1, rule_for_round(1))
    friend_idx = content.friend_indices[0]

    clock.set_ms(PLAY_START_MS + friend_idx * ROUND1_INTERVAL_MS + 2_001)
    assert engine.press(f"1-{friend_idx}") is PressOutcome.IGNORED
    assert engine.hits_this_round == 0


def test_restart_mid_round_cancels_old_timers_and_ignores_stale_callbacks() -> None:
    clock, engine = _start_playing(seed=314)
    clock.set_ms(PLAY_START_MS + 1_500)
    engine.update()
    old_generation = engine.generation
    stale = engine.pending_timers()
    assert any(t.label.startswith("spawn") for t in stale)

    engine.start_run()
    assert engine.generation > old_generation
    assert engine.phase is Phase.COUNTDOWN
    assert all(t.label.startswith("countdown") for t in engine.pending_timers())

    # Late firing of the previous round's spawn/expiry callbacks changes nothing.
    for timer in stale:
        assert timer.fire() is False
    assert engine.phase is Phase.COUNTDOWN
    assert engine.score == 0
    assert engine.round_number == 1
    assert engine.live_tokens() == ()

    # The new run proceeds on its own schedule.
    clock.advance(3.0)
    engine.update()
    assert engine.phase is Phase.RULE_CARD
    clock.advance(2.0)
    engine.update()
    assert engine.phase is Phase.PLAYING
    assert [t.token_id for t in engine.live_tokens()] == ["1-0"]


def test_restart_from_dead_resets_score_and_round() -> None:
    clock, engine = _start_playing(seed=7)
    clock.set_ms(ROUND1_LAST_EXPIRY_MS + 1)
    engine.update()
    assert engine.phase is Phase.DEAD

    engine.start_run()
    assert engine.phase is Phase.COUNTDOWN
    assert engine.score == 0
    assert engine.death_cause is None
    assert engine.events() == []


def test_return_to_idle_abandons_the_run() -> None:
    clock, engine = _start_playing(seed=8)
    engine.return_to_idle()
    assert engine.phase is Phase.IDLE
    assert engine.pending_timers() == ()
    clock.advance(60.0)
    engine.update()
    assert engine.phase is Phase.IDLE


def test_same_seed_same_script_same_run() -> None:
    def play(seed: int) -> tuple[int, list[object]]:
        clock, engine = _start_playing(seed)
        content = ContentGenerator(seed=seed).build_round(1, rule_for_round(1))
        for idx in content.friend_indices[:2]:
            clock.set_ms(PLAY_START_MS + idx * ROUND1_INTERVAL_MS + 150)
            engine.press(f"1-{idx}")
        clock.set_ms(ROUND1_LAST_EXPIRY_MS + 100)
        engine.update()
        return engine.score, engine.events()

    assert play(2024) == play(2024)


def test_summary_reports_reaction_average() -> None:
    seed = 5150
    clock, engine = _start_playing(seed)
    content = ContentGenerator(seed=seed).build_round(1, rule_for_round(1))
    a, b = content.friend_indices[:2]

    clock.set_ms(PLAY_START_MS + a * ROUND1_INTERVAL_MS + 200)
    engine.press(f"1-{a}")
    clock.set_ms(PLAY_START_MS + b * ROUND1_INTERVAL_MS + 400)
    engine.press(f"1-{b}")

    summary = engine.summary()
    assert summary.friends_clicked == 2
    assert summary.avg_reaction_ms == pytest.approx(300.0, abs=0.01)


def test_custom_config_shortens_pacing() -> None:
    cfg = FalseFriendConfig(
        objects_per_round=5,
        friends_per_round=1,
        countdown_steps=0,
        rule_card_ms=100,
        visible_ms=400,
    )
    clock = FakeClock()
    engine = build_false_friend_run(clock=clock, seed=3, config=cfg)
    engine.start_run()
    assert engine.phase is Phase.RULE_CARD

    clock.set_ms(101)
    engine.update()
    assert engine.phase is Phase.PLAYING

    clock.set_ms(100 + 4 * 700 + 401)
    engine.update()
    assert engine.phase is Phase.DEAD
    assert engine.score == 4 * cfg.false_friend_expire_bonus
