from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from .attributes import AttributeVector
from .clock import Clock, now_ms
from .config import FalseFriendConfig
from .content import ContentGenerator
from .game_core import Phase
from .rules import RuleDefinition, min_hits_for_round, rule_for_round, spawn_interval_ms_for_round
from .scheduler import RoundScheduler, ScheduledTimer, TimerQueue, Token
from .scoring import round_clear_bonus, score_friend_click

logger = logging.getLogger(__name__)

POPUP_MS = 900


class PressOutcome(StrEnum):
    IGNORED = "ignored"
    HIT = "hit"
    FALSE_FRIEND = "false_friend"


class DeathCause(StrEnum):
    FALSE_FRIEND_CLICKED = "false_friend_clicked"
    TOO_FEW_HITS = "too_few_hits"


class RunEventKind(StrEnum):
    FRIEND_HIT = "friend_hit"
    FALSE_FRIEND_CLICKED = "false_friend_clicked"
    FRIEND_EXPIRED = "friend_expired"
    FALSE_FRIEND_EXPIRED = "false_friend_expired"
    ROUND_CLEARED = "round_cleared"
    ROUND_FAILED = "round_failed"


@dataclass(frozen=True, slots=True)
class RunEvent:
    kind: RunEventKind
    round_number: int
    at_ms: float
    points: int = 0
    token_id: str | None = None
    reaction_ms: float | None = None
    x: float | None = None
    y: float | None = None


@dataclass(frozen=True, slots=True)
class VisibleToken:
    """What the renderer gets for a live token (no friend flag)."""

    token_id: str
    attributes: AttributeVector
    x: float
    y: float
    size: float
    remaining_ms: float


@dataclass(frozen=True, slots=True)
class RunSummary:
    score: int
    rounds_cleared: int
    round_reached: int
    friends_clicked: int
    avg_reaction_ms: float
    death_cause: DeathCause | None


@dataclass(frozen=True, slots=True)
class RunSnapshot:
    """View model for the UI (pure data)."""

    phase: Phase
    round_number: int
    score: int
    rounds_cleared: int
    countdown: int | None
    rule: RuleDefinition | None
    preview: AttributeVector | None
    tokens: tuple[VisibleToken, ...]
    hits_this_round: int
    min_hits: int
    death_cause: DeathCause | None
    popups: tuple[RunEvent, ...] = ()


class FalseFriendEngine:
    """Run state machine: idle -> countdown -> rule card -> playing -> (rule card | dead).

    - Deterministic: round content comes from a generator seeded at construction.
    - Time is entirely via injected Clock; nothing happens between ``update``/``press`` calls.
    - Every timer belongs to a generation. Starting a new run, dying, or leaving
      cancels pending timers and bumps the generation so late callbacks are no-ops.
    """

    def __init__(self, *, clock: Clock, seed: int, config: FalseFriendConfig | None = None) -> None:
        self._cfg = config or FalseFriendConfig()
        self._clock = clock
        self._seed = int(seed)
        self._generator = ContentGenerator(
            seed=self._seed,
            objects_per_round=self._cfg.objects_per_round,
            friends_per_round=self._cfg.friends_per_round,
        )

        self._generation = 0
        self._timers = TimerQueue(lambda: self._generation)

        self._phase: Phase = Phase.IDLE
        self._round_number = 1
        self._score = 0
        self._rounds_cleared = 0
        self._hits_this_round = 0
        self._friends_clicked = 0
        self._reaction_total_ms = 0.0
        self._countdown: int | None = None
        self._death_cause: DeathCause | None = None

        self._rule: RuleDefinition | None = None
        self._preview: AttributeVector | None = None
        self._round: RoundScheduler | None = None
        self._events: list[RunEvent] = []

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def config(self) -> FalseFriendConfig:
        return self._cfg

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def round_number(self) -> int:
        return self._round_number

    @property
    def score(self) -> int:
        return self._score

    @property
    def rounds_cleared(self) -> int:
        return self._rounds_cleared

    @property
    def hits_this_round(self) -> int:
        return self._hits_this_round

    @property
    def death_cause(self) -> DeathCause | None:
        return self._death_cause

    def events(self) -> list[RunEvent]:
        return list(self._events)

    def pending_timers(self) -> tuple[ScheduledTimer, ...]:
        return self._timers.pending()

    def live_tokens(self) -> tuple[Token, ...]:
        if self._round is None:
            return ()
        return self._round.live_tokens()

    def min_hits(self) -> int:
        return min_hits_for_round(self._round_number, friends_per_round=self._cfg.friends_per_round)

    def spawn_interval_ms(self) -> int:
        return spawn_interval_ms_for_round(
            self._round_number,
            base_ms=self._cfg.spawn_interval_base_ms,
            step_ms=self._cfg.spawn_interval_step_ms,
            floor_ms=self._cfg.spawn_interval_floor_ms,
        )

    # ---- commands ----

    def start_run(self) -> None:
        self._invalidate()
        self._phase = Phase.COUNTDOWN
        self._round_number = 1
        self._score = 0
        self._rounds_cleared = 0
        self._hits_this_round = 0
        self._friends_clicked = 0
        self._reaction_total_ms = 0.0
        self._death_cause = None
        self._rule = None
        self._preview = None
        self._round = None
        self._events = []

        started_at = now_ms(self._clock)
        steps = self._cfg.countdown_steps
        tick = self._cfg.countdown_tick_ms
        logger.info(f"[run-start] seed={self._seed} generation={self._generation}")

        if steps == 0:
            self._countdown = None
            self._enter_rule_card(started_at)
            return

        self._countdown = steps
        for i in range(1, steps):
            self._timers.schedule_at(
                started_at + i * tick,
                lambda value=steps - i: self._set_countdown(value),
                label=f"countdown {steps - i}",
            )
        done_at = started_at + steps * tick
        self._timers.schedule_at(done_at, lambda: self._enter_rule_card(done_at), label="countdown done")

    def return_to_idle(self) -> None:
        self._invalidate()
        self._phase = Phase.IDLE
        self._countdown = None
        self._round = None

    def update(self) -> None:
        self._timers.advance_to(now_ms(self._clock))

    def press(self, token_id: str) -> PressOutcome:
        """Click on a token. Only meaningful while playing."""

        # Bring timers up to date first so an already-expired token cannot be clicked.
        self.update()
        if self._phase is not Phase.PLAYING or self._round is None:
            return PressOutcome.IGNORED

        token = self._round.claim(token_id)
        if token is None:
            return PressOutcome.IGNORED

        at_ms = now_ms(self._clock)
        reaction_ms = max(0.0, at_ms - token.spawned_at_ms)

        if not token.is_friend:
            self._events.append(
                RunEvent(
                    kind=RunEventKind.FALSE_FRIEND_CLICKED,
                    round_number=self._round_number,
                    at_ms=at_ms,
                    token_id=token.token_id,
                    reaction_ms=reaction_ms,
                    x=token.spec.x,
                    y=token.spec.y,
                )
            )
            self._die(DeathCause.FALSE_FRIEND_CLICKED)
            return PressOutcome.FALSE_FRIEND

        points = score_friend_click(reaction_ms, visible_ms=self._cfg.visible_ms)
        self._score += points
        self._hits_this_round += 1
        self._friends_clicked += 1
        self._reaction_total_ms += reaction_ms
        self._events.append(
            RunEvent(
                kind=RunEventKind.FRIEND_HIT,
                round_number=self._round_number,
                at_ms=at_ms,
                points=points,
                token_id=token.token_id,
                reaction_ms=reaction_ms,
                x=token.spec.x,
                y=token.spec.y,
            )
        )
        self._check_round_end(at_ms)
        return PressOutcome.HIT

    # ---- views ----

    def summary(self) -> RunSummary:
        avg = 0.0
        if self._friends_clicked > 0:
            avg = round(self._reaction_total_ms / self._friends_clicked, 2)
        return RunSummary(
            score=self._score,
            rounds_cleared=self._rounds_cleared,
            round_reached=self._round_number,
            friends_clicked=self._friends_clicked,
            avg_reaction_ms=avg,
            death_cause=self._death_cause,
        )

    def snapshot(self) -> RunSnapshot:
        now = now_ms(self._clock)
        tokens: tuple[VisibleToken, ...] = ()
        if self._round is not None:
            tokens = tuple(
                VisibleToken(
                    token_id=t.token_id,
                    attributes=t.attributes,
                    x=t.spec.x,
                    y=t.spec.y,
                    size=t.spec.size,
                    remaining_ms=max(0.0, t.expires_at_ms - now),
                )
                for t in self._round.live_tokens()
            )
        popups = tuple(e for e in self._events if e.points > 0 and 0.0 <= now - e.at_ms < POPUP_MS)
        in_round = self._phase in (Phase.RULE_CARD, Phase.PLAYING)
        return RunSnapshot(
            phase=self._phase,
            round_number=self._round_number,
            score=self._score,
            rounds_cleared=self._rounds_cleared,
            countdown=self._countdown if self._phase is Phase.COUNTDOWN else None,
            rule=self._rule if in_round else None,
            preview=self._preview if in_round else None,
            tokens=tokens,
            hits_this_round=self._hits_this_round,
            min_hits=self.min_hits(),
            death_cause=self._death_cause,
            popups=popups,
        )

    # ---- timer callbacks ----

    def _set_countdown(self, value: int) -> None:
        self._countdown = value

    def _enter_rule_card(self, at_ms: float) -> None:
        self._phase = Phase.RULE_CARD
        self._countdown = None
        self._round = None
        self._hits_this_round = 0
        self._rule = rule_for_round(self._round_number)
        self._preview = self._generator.friend_vector(self._round_number, self._rule)
        logger.info(f"[rule-card] round={self._round_number} rule={self._rule.title!r}")

        play_at = at_ms + self._cfg.rule_card_ms
        self._timers.schedule_at(
            play_at,
            lambda: self._enter_playing(play_at),
            label=f"play round={self._round_number}",
        )

    def _enter_playing(self, at_ms: float) -> None:
        assert self._rule is not None
        content = self._generator.build_round(self._round_number, self._rule)
        interval = self.spawn_interval_ms()
        self._phase = Phase.PLAYING
        self._round = RoundScheduler(
            content=content,
            timers=self._timers,
            start_ms=at_ms,
            spawn_interval_ms=interval,
            visible_ms=self._cfg.visible_ms,
            on_spawn=self._on_spawn,
            on_expire=self._on_expire,
        )
        logger.info(
            f"[round-start] round={self._round_number} objects={len(content.tokens)} "
            f"interval={interval}ms min_hits={self.min_hits()}"
        )
        self._round.start()

    def _on_spawn(self, token: Token) -> None:
        logger.debug(f"[spawn] {token.token_id} friend={token.is_friend} at={token.spawned_at_ms:.0f}")

    def _on_expire(self, token: Token) -> None:
        if token.is_friend:
            # A missed friend is a missed opportunity, not a penalty.
            self._events.append(
                RunEvent(
                    kind=RunEventKind.FRIEND_EXPIRED,
                    round_number=self._round_number,
                    at_ms=token.expires_at_ms,
                    token_id=token.token_id,
                    x=token.spec.x,
                    y=token.spec.y,
                )
            )
        else:
            bonus = self._cfg.false_friend_expire_bonus
            self._score += bonus
            self._events.append(
                RunEvent(
                    kind=RunEventKind.FALSE_FRIEND_EXPIRED,
                    round_number=self._round_number,
                    at_ms=token.expires_at_ms,
                    points=bonus,
                    token_id=token.token_id,
                    x=token.spec.x,
                    y=token.spec.y,
                )
            )
        self._check_round_end(token.expires_at_ms)

    # ---- transitions ----

    def _check_round_end(self, at_ms: float) -> None:
        if self._round is None or not self._round.drained:
            return

        needed = self.min_hits()
        if self._hits_this_round < needed:
            self._events.append(
                RunEvent(kind=RunEventKind.ROUND_FAILED, round_number=self._round_number, at_ms=at_ms)
            )
            logger.info(f"[round-failed] round={self._round_number} hits={self._hits_this_round} needed={needed}")
            self._die(DeathCause.TOO_FEW_HITS)
            return

        bonus = round_clear_bonus(self._round_number, base_bonus=self._cfg.round_clear_base_bonus)
        self._score += bonus
        self._rounds_cleared += 1
        self._events.append(
            RunEvent(
                kind=RunEventKind.ROUND_CLEARED,
                round_number=self._round_number,
                at_ms=at_ms,
                points=bonus,
                x=0.5,
                y=0.15,
            )
        )
        logger.info(f"[round-cleared] round={self._round_number} bonus={bonus} score={self._score}")
        self._round_number += 1
        self._enter_rule_card(at_ms)

    def _die(self, cause: DeathCause) -> None:
        self._invalidate()
        self._phase = Phase.DEAD
        self._death_cause = cause
        self._round = None
        logger.info(f"[run-over] cause={cause.value} score={self._score} rounds_cleared={self._rounds_cleared}")

    def _invalidate(self) -> None:
        self._timers.cancel_all()
        self._generation += 1


def build_false_friend_run(
    *,
    clock: Clock,
    seed: int,
    config: FalseFriendConfig | None = None,
) -> FalseFriendEngine:
    return FalseFriendEngine(clock=clock, seed=seed, config=config)
