from __future__ import annotations

import math

TTL_MS = 2000
FALSE_FRIEND_EXPIRE_BONUS = 25
ROUND_CLEAR_BASE_BONUS = 500
ROUND_CLEAR_EXPONENT = 1.2


def score_friend_click(reaction_ms: float, *, visible_ms: int = TTL_MS) -> int:
    """Faster clicks score more; anything at or past the visible window scores 0."""

    return max(0, int(visible_ms) - int(round(max(0.0, float(reaction_ms)))))


def round_clear_bonus(round_number: int, *, base_bonus: int = ROUND_CLEAR_BASE_BONUS) -> int:
    if round_number < 1:
        raise ValueError(f"round_number must be >= 1, got {round_number}")
    return int(math.floor(base_bonus * math.pow(round_number, ROUND_CLEAR_EXPONENT)))


def false_friend_expiry_bonus(*, bonus: int = FALSE_FRIEND_EXPIRE_BONUS) -> int:
    return int(bonus)
