from __future__ import annotations

import heapq
import logging
from collections.abc import Callable
from dataclasses import dataclass

from .attributes import AttributeVector
from .content import RoundContent, TokenSpec

logger = logging.getLogger(__name__)


class ScheduledTimer:
    """A callback bound to the generation that was current when it was scheduled."""

    __slots__ = ("due_ms", "seq", "generation", "label", "_callback", "_queue", "_done")

    def __init__(
        self,
        *,
        due_ms: float,
        seq: int,
        generation: int,
        label: str,
        callback: Callable[[], None],
        queue: "TimerQueue",
    ) -> None:
        self.due_ms = float(due_ms)
        self.seq = int(seq)
        self.generation = int(generation)
        self.label = label
        self._callback = callback
        self._queue = queue
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def cancel(self) -> None:
        self._done = True

    def fire(self) -> bool:
        """Run the callback unless cancelled, already fired, or stale. Returns True if it ran."""

        if self._done:
            return False
        self._done = True
        current = self._queue.generation
        if self.generation != current:
            logger.debug(f"[timer-stale] {self.label} gen={self.generation} current={current}")
            return False
        self._callback()
        return True


class TimerQueue:
    """Cooperative timer queue ordered by (due time, scheduling order).

    Nothing fires on its own; the owner pumps it with ``advance_to``. The
    generation is read from ``generation_source`` so that the owner of the run
    state stays the single owner of the counter.
    """

    def __init__(self, generation_source: Callable[[], int]) -> None:
        self._generation_source = generation_source
        self._heap: list[tuple[float, int, ScheduledTimer]] = []
        self._seq = 0

    @property
    def generation(self) -> int:
        return int(self._generation_source())

    def schedule_at(self, due_ms: float, callback: Callable[[], None], *, label: str = "") -> ScheduledTimer:
        timer = ScheduledTimer(
            due_ms=due_ms,
            seq=self._seq,
            generation=self.generation,
            label=label,
            callback=callback,
            queue=self,
        )
        self._seq += 1
        heapq.heappush(self._heap, (timer.due_ms, timer.seq, timer))
        return timer

    def cancel_all(self) -> int:
        count = 0
        for _, _, timer in self._heap:
            if not timer.done:
                timer.cancel()
                count += 1
        self._heap.clear()
        if count:
            logger.debug(f"[timer-cancel] cancelled {count} pending timers")
        return count

    def pending(self) -> tuple[ScheduledTimer, ...]:
        return tuple(t for _, _, t in sorted(self._heap) if not t.done)

    def next_due_ms(self) -> float | None:
        for due, _, timer in sorted(self._heap):
            if not timer.done:
                return due
        return None

    def advance_to(self, now_ms: float) -> int:
        """Fire every timer due at or before ``now_ms``; returns how many ran.

        Timers scheduled by a callback that are already due fire in the same call.
        """

        fired = 0
        while self._heap and self._heap[0][0] <= now_ms:
            _, _, timer = heapq.heappop(self._heap)
            if timer.fire():
                fired += 1
        return fired


@dataclass(frozen=True, slots=True)
class Token:
    spec: TokenSpec
    spawned_at_ms: float
    expires_at_ms: float

    @property
    def token_id(self) -> str:
        return self.spec.token_id

    @property
    def is_friend(self) -> bool:
        return self.spec.is_friend

    @property
    def attributes(self) -> AttributeVector:
        return self.spec.attributes


class RoundScheduler:
    """Spawns a round's tokens on a fixed cadence and expires them after their TTL."""

    def __init__(
        self,
        *,
        content: RoundContent,
        timers: TimerQueue,
        start_ms: float,
        spawn_interval_ms: int,
        visible_ms: int,
        on_spawn: Callable[[Token], None],
        on_expire: Callable[[Token], None],
    ) -> None:
        if spawn_interval_ms <= 0:
            raise ValueError("spawn_interval_ms must be > 0")
        if visible_ms <= 0:
            raise ValueError("visible_ms must be > 0")
        self._content = content
        self._timers = timers
        self._start_ms = float(start_ms)
        self._interval_ms = int(spawn_interval_ms)
        self._visible_ms = int(visible_ms)
        self._on_spawn = on_spawn
        self._on_expire = on_expire

        self._live: dict[str, Token] = {}
        self._spawned = 0
        self._started = False

    @property
    def total(self) -> int:
        return len(self._content.tokens)

    @property
    def spawned_count(self) -> int:
        return self._spawned

    @property
    def drained(self) -> bool:
        return self._spawned >= self.total and not self._live

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        round_number = self._content.round_number
        for spec in self._content.tokens:
            due = self._start_ms + spec.index * self._interval_ms
            self._timers.schedule_at(
                due,
                lambda spec=spec, due=due: self._spawn(spec, due),
                label=f"spawn round={round_number} idx={spec.index}",
            )

    def spawn_time_ms(self, index: int) -> float:
        return self._start_ms + int(index) * self._interval_ms

    def live_tokens(self) -> tuple[Token, ...]:
        return tuple(sorted(self._live.values(), key=lambda t: t.spec.index))

    def get(self, token_id: str) -> Token | None:
        return self._live.get(token_id)

    def claim(self, token_id: str) -> Token | None:
        """Remove a live token (it was clicked). None if it already expired or never spawned."""

        return self._live.pop(token_id, None)

    def _spawn(self, spec: TokenSpec, due_ms: float) -> None:
        token = Token(spec=spec, spawned_at_ms=due_ms, expires_at_ms=due_ms + self._visible_ms)
        self._live[spec.token_id] = token
        self._spawned += 1
        self._timers.schedule_at(
            token.expires_at_ms,
            lambda token_id=spec.token_id: self._expire(token_id),
            label=f"expire {spec.token_id}",
        )
        self._on_spawn(token)

    def _expire(self, token_id: str) -> None:
        token = self._live.pop(token_id, None)
        if token is None:
            return
        self._on_expire(token)
