from __future__ import annotations

from dataclasses import dataclass

from .engine import DeathCause, FalseFriendEngine, RunEvent, RunEventKind
from .game_core import Phase


@dataclass(frozen=True, slots=True)
class RunResult:
    """Persistable summary + event log for a finished run."""

    seed: int
    score_key: str

    score: int
    rounds_cleared: int
    round_reached: int
    friends_clicked: int
    friends_missed: int
    false_friends_dodged: int
    avg_reaction_ms: float
    median_reaction_ms: float | None
    death_cause: DeathCause | None

    events: list[RunEvent]


def run_result_from_engine(engine: FalseFriendEngine) -> RunResult:
    """Build a RunResult from a run that has ended."""

    if engine.phase is not Phase.DEAD:
        raise ValueError(f"run is not over (phase={engine.phase.value})")

    summary = engine.summary()
    events = engine.events()
    rts_ms = sorted(e.reaction_ms for e in events if e.kind is RunEventKind.FRIEND_HIT and e.reaction_ms is not None)

    median_ms: float | None
    if not rts_ms:
        median_ms = None
    else:
        mid = len(rts_ms) // 2
        if len(rts_ms) % 2 == 1:
            median_ms = float(rts_ms[mid])
        else:
            median_ms = float(rts_ms[mid - 1] + rts_ms[mid]) / 2.0

    return RunResult(
        seed=int(engine.seed),
        score_key=engine.config.score_key,
        score=int(summary.score),
        rounds_cleared=int(summary.rounds_cleared),
        round_reached=int(summary.round_reached),
        friends_clicked=int(summary.friends_clicked),
        friends_missed=sum(1 for e in events if e.kind is RunEventKind.FRIEND_EXPIRED),
        false_friends_dodged=sum(1 for e in events if e.kind is RunEventKind.FALSE_FRIEND_EXPIRED),
        avg_reaction_ms=float(summary.avg_reaction_ms),
        median_reaction_ms=median_ms,
        death_cause=summary.death_cause,
        events=events,
    )
