from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .content import DEFAULT_FRIENDS_PER_ROUND, DEFAULT_OBJECTS_PER_ROUND
from .rules import SPAWN_INTERVAL_BASE_MS, SPAWN_INTERVAL_FLOOR_MS, SPAWN_INTERVAL_STEP_MS
from .scoring import FALSE_FRIEND_EXPIRE_BONUS, ROUND_CLEAR_BASE_BONUS, TTL_MS

DB_PATH_ENV = "FALSE_FRIEND_DB_PATH"
LOG_LEVEL_ENV = "FALSE_FRIEND_LOG_LEVEL"
ENV_PREFIX = "FALSE_FRIEND_"


@dataclass(frozen=True, slots=True)
class FalseFriendConfig:
    objects_per_round: int = DEFAULT_OBJECTS_PER_ROUND
    friends_per_round: int = DEFAULT_FRIENDS_PER_ROUND

    countdown_steps: int = 3
    countdown_tick_ms: int = 1000
    rule_card_ms: int = 2000

    visible_ms: int = TTL_MS
    spawn_interval_base_ms: int = SPAWN_INTERVAL_BASE_MS
    spawn_interval_step_ms: int = SPAWN_INTERVAL_STEP_MS
    spawn_interval_floor_ms: int = SPAWN_INTERVAL_FLOOR_MS

    false_friend_expire_bonus: int = FALSE_FRIEND_EXPIRE_BONUS
    round_clear_base_bonus: int = ROUND_CLEAR_BASE_BONUS

    leaderboard_limit: int = 10

    def __post_init__(self) -> None:
        if self.objects_per_round < 2:
            raise ValueError("objects_per_round must be >= 2")
        if not (1 <= self.friends_per_round < self.objects_per_round):
            raise ValueError("friends_per_round must be in [1, objects_per_round)")
        if self.countdown_steps < 0:
            raise ValueError("countdown_steps must be >= 0")
        if self.countdown_tick_ms <= 0:
            raise ValueError("countdown_tick_ms must be > 0")
        if self.rule_card_ms < 0:
            raise ValueError("rule_card_ms must be >= 0")
        if self.visible_ms <= 0:
            raise ValueError("visible_ms must be > 0")
        if self.spawn_interval_floor_ms <= 0:
            raise ValueError("spawn_interval_floor_ms must be > 0")
        if self.spawn_interval_base_ms < self.spawn_interval_floor_ms:
            raise ValueError("spawn_interval_base_ms must be >= spawn_interval_floor_ms")
        if self.spawn_interval_step_ms < 0:
            raise ValueError("spawn_interval_step_ms must be >= 0")
        if self.false_friend_expire_bonus < 0:
            raise ValueError("false_friend_expire_bonus must be >= 0")
        if self.round_clear_base_bonus < 1:
            raise ValueError("round_clear_base_bonus must be >= 1")
        if self.leaderboard_limit < 1:
            raise ValueError("leaderboard_limit must be >= 1")

    @property
    def score_key(self) -> str:
        """Leaderboard table key; runs are only ranked against the same setup."""

        return f"{self.objects_per_round}x{self.friends_per_round}|{self.visible_ms}ms"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "FalseFriendConfig":
        """Defaults overridden by FALSE_FRIEND_<FIELD> integer variables."""

        env = os.environ if environ is None else environ
        overrides: dict[str, int] = {}
        for f in dataclasses.fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw.strip() == "":
                continue
            try:
                overrides[f.name] = int(raw)
            except ValueError:
                raise ValueError(f"{ENV_PREFIX + f.name.upper()} must be an integer, got {raw!r}") from None
        return cls(**overrides)


def default_db_path(environ: Mapping[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    raw = env.get(DB_PATH_ENV)
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".false_friend" / "scores.sqlite3"
