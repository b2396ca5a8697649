"""Pygame UI shell for False Friend.

Deterministic timing/scoring/RNG/state lives in false_friend/* (core modules);
this module only draws snapshots and forwards clicks and keys.
"""

from __future__ import annotations

import math
import random
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import pygame

from .attributes import AttributeVector
from .clock import RealClock
from .config import FalseFriendConfig, default_db_path
from .engine import DeathCause, FalseFriendEngine, PressOutcome, RunSnapshot, build_false_friend_run
from .game_core import Phase
from .leaderboard import (
    LeaderboardService,
    LeaderboardStatus,
    SqliteLeaderboard,
    submission_from_result,
)
from .results import RunResult, run_result_from_engine

WINDOW_SIZE = (960, 640)
TARGET_FPS = 60

BG = (10, 12, 24)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (170, 182, 210)
ACCENT = (255, 214, 102)
DANGER = (240, 96, 96)

INTRO_LINES = [
    "Click only objects that match the current rule.",
    "One false click ends the run.",
    "",
    "Enter/Space: Start  |  Esc: Back",
]


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 64)
        self._item_font = pygame.font.Font(None, 34)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif event.key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            if self._items:
                self._items[self._selected].action()
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            if self._is_root:
                self._app.quit()
            else:
                self._app.pop()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)

        title = self._title_font.render(self._title, True, TEXT_MAIN)
        surface.blit(title, title.get_rect(center=(w // 2, h // 4)))

        y = h // 2 - 30
        for idx, item in enumerate(self._items):
            selected = idx == self._selected
            color = ACCENT if selected else TEXT_MAIN
            label = f"> {item.label} <" if selected else item.label
            text = self._item_font.render(label, True, color)
            surface.blit(text, text.get_rect(center=(w // 2, y)))
            y += 46

        foot = self._hint_font.render("Up/Down: Move  |  Enter: Select  |  Esc: Back", True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 14)))


def _token_color(hue: int) -> pygame.Color:
    color = pygame.Color(0, 0, 0)
    color.hsva = (float(hue % 360), 70.0, 95.0, 100.0)
    return color


def _shape_points(shape: str, cx: float, cy: float, r: float) -> list[tuple[float, float]] | None:
    sides = {"triangle": 3, "square": 4, "diamond": 4, "pentagon": 5, "hexagon": 6}.get(shape)
    if sides is None:
        return None
    offset = -math.pi / 2
    if shape == "square":
        offset = math.pi / 4
    return [
        (cx + r * math.cos(offset + 2 * math.pi * i / sides), cy + r * math.sin(offset + 2 * math.pi * i / sides))
        for i in range(sides)
    ]


def draw_token(surface: pygame.Surface, attrs: AttributeVector, center: tuple[float, float], size: float) -> None:
    cx, cy = center
    r = size / 2.0
    color = _token_color(attrs.color)

    points = _shape_points(attrs.shape, cx, cy, r)
    if points is None:
        pygame.draw.circle(surface, color, (int(cx), int(cy)), int(r))
    else:
        pygame.draw.polygon(surface, color, points)

    # Notch: a short bar from the rim toward the centre.
    angle = math.radians(attrs.notch_angle) - math.pi / 2
    outer = (cx + r * math.cos(angle), cy + r * math.sin(angle))
    inner = (cx + r * 0.55 * math.cos(angle), cy + r * 0.55 * math.sin(angle))
    pygame.draw.line(surface, BG, inner, outer, max(3, int(size / 12)))

    dot_r = max(2, int(size / 16))
    n = max(1, int(attrs.dot_count))
    ring = 0.0 if n == 1 else r * 0.32
    for i in range(n):
        a = 2 * math.pi * i / n - math.pi / 2
        pygame.draw.circle(surface, BG, (int(cx + ring * math.cos(a)), int(cy + ring * math.sin(a))), dot_r)


class FalseFriendScreen:
    def __init__(
        self,
        app: App,
        *,
        engine_factory: Callable[[], FalseFriendEngine],
        leaderboard: LeaderboardService,
    ) -> None:
        self._app = app
        self._engine_factory = engine_factory
        self._engine = engine_factory()
        self._leaderboard = leaderboard

        self._big_font = pygame.font.Font(None, 140)
        self._mid_font = pygame.font.Font(None, 48)
        self._small_font = pygame.font.Font(None, 28)

        self._arena = pygame.Rect(0, 0, *WINDOW_SIZE)
        self._result: RunResult | None = None
        self._board: LeaderboardStatus | None = None
        self._name = ""
        self._save_message = ""
        self._submitted = False

    def handle_event(self, event: pygame.event.Event) -> None:
        phase = self._engine.phase
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            if phase is Phase.PLAYING:
                self._click(event.pos)
            return

        if event.type != pygame.KEYDOWN:
            return

        if event.key == pygame.K_ESCAPE:
            self._engine.return_to_idle()
            self._app.pop()
            return

        if phase is Phase.DEAD and self._can_enter_name():
            if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
                self._submit_name()
            elif event.key == pygame.K_BACKSPACE:
                self._name = self._name[:-1]
            elif event.unicode and event.unicode.isprintable() and len(self._name) < 16:
                self._name += event.unicode
            return

        if phase in (Phase.IDLE, Phase.DEAD) and event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._start()

    def render(self, surface: pygame.Surface) -> None:
        self._engine.update()
        snap = self._engine.snapshot()
        if snap.phase is Phase.DEAD and self._result is None:
            self._on_run_over()

        w, h = surface.get_size()
        self._arena = pygame.Rect(0, 60, w, h - 60)
        surface.fill(BG)

        if snap.phase is Phase.IDLE:
            self._render_intro(surface)
        elif snap.phase is Phase.COUNTDOWN:
            text = self._big_font.render(str(snap.countdown or ""), True, ACCENT)
            surface.blit(text, text.get_rect(center=(w // 2, h // 2)))
        elif snap.phase in (Phase.RULE_CARD, Phase.PLAYING):
            self._render_hud(surface, snap)
            self._render_arena(surface, snap)
            if snap.phase is Phase.RULE_CARD:
                self._render_rule_card(surface, snap)
        else:
            self._render_dead(surface, snap)

    def _start(self) -> None:
        self._result = None
        self._board = None
        self._name = ""
        self._save_message = ""
        self._submitted = False
        # Fresh engine per run so every run gets its own seed.
        self._engine.return_to_idle()
        self._engine = self._engine_factory()
        self._engine.start_run()

    def _click(self, pos: tuple[int, int]) -> None:
        px, py = pos
        # Topmost (latest spawned) token wins.
        for token in reversed(self._engine.snapshot().tokens):
            cx, cy = self._to_screen(token.x, token.y)
            if math.hypot(px - cx, py - cy) <= token.size / 2.0:
                outcome = self._engine.press(token.token_id)
                if outcome is not PressOutcome.IGNORED:
                    return

    def _on_run_over(self) -> None:
        self._result = run_result_from_engine(self._engine)
        self._board = self._leaderboard.load(self._result.score_key, score=self._result.score)

    def _can_enter_name(self) -> bool:
        return self._board is not None and self._board.ok and self._board.qualifies and not self._submitted

    def _submit_name(self) -> None:
        if self._result is None:
            return
        try:
            submission = submission_from_result(self._result, player_name=self._name)
        except ValueError as exc:
            self._save_message = str(exc)
            return
        status = self._leaderboard.submit(submission)
        self._save_message = status.message
        if status.ok:
            self._submitted = True
            if status.entries:
                self._board = LeaderboardStatus(ok=True, message="", entries=status.entries)

    def _to_screen(self, x: float, y: float) -> tuple[float, float]:
        return (self._arena.x + x * self._arena.w, self._arena.y + y * self._arena.h)

    def _render_intro(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        title = self._mid_font.render("False Friend", True, TEXT_MAIN)
        surface.blit(title, title.get_rect(center=(w // 2, h // 3)))
        y = h // 2
        for line in INTRO_LINES:
            text = self._small_font.render(line, True, TEXT_MUTED)
            surface.blit(text, text.get_rect(center=(w // 2, y)))
            y += 32

    def _render_hud(self, surface: pygame.Surface, snap: RunSnapshot) -> None:
        w = surface.get_width()
        left = self._small_font.render(f"Round {snap.round_number}", True, TEXT_MAIN)
        mid = self._small_font.render(f"Hits {snap.hits_this_round}/{snap.min_hits}", True, TEXT_MUTED)
        right = self._small_font.render(f"Score {snap.score}", True, TEXT_MAIN)
        surface.blit(left, (20, 20))
        surface.blit(mid, mid.get_rect(midtop=(w // 2, 20)))
        surface.blit(right, right.get_rect(topright=(w - 20, 20)))
        if snap.preview is not None and snap.phase is Phase.PLAYING:
            draw_token(surface, snap.preview, (w - 220, 30), 36)

    def _render_arena(self, surface: pygame.Surface, snap: RunSnapshot) -> None:
        for token in snap.tokens:
            draw_token(surface, token.attributes, self._to_screen(token.x, token.y), token.size)
        for popup in snap.popups:
            if popup.x is None or popup.y is None:
                continue
            text = self._small_font.render(f"+{popup.points}", True, ACCENT)
            surface.blit(text, text.get_rect(center=self._to_screen(popup.x, popup.y)))

    def _render_rule_card(self, surface: pygame.Surface, snap: RunSnapshot) -> None:
        w, h = surface.get_size()
        card = pygame.Rect(0, 0, min(560, w - 40), 300)
        card.center = (w // 2, h // 2)
        pygame.draw.rect(surface, (24, 30, 58), card)
        pygame.draw.rect(surface, TEXT_MUTED, card, 2)
        lines = [f"Round {snap.round_number}"]
        if snap.rule is not None:
            lines += [snap.rule.title, snap.rule.description]
        y = card.y + 30
        for i, line in enumerate(lines):
            font = self._mid_font if i == 1 else self._small_font
            text = font.render(line, True, TEXT_MAIN if i == 1 else TEXT_MUTED)
            surface.blit(text, text.get_rect(midtop=(card.centerx, y)))
            y += text.get_height() + 14
        if snap.preview is not None:
            draw_token(surface, snap.preview, (card.centerx, card.bottom - 70), 84)

    def _render_dead(self, surface: pygame.Surface, snap: RunSnapshot) -> None:
        w, h = surface.get_size()
        title = self._mid_font.render("Run Over", True, DANGER)
        surface.blit(title, title.get_rect(center=(w // 2, 60)))

        cause = "False friend clicked" if snap.death_cause is DeathCause.FALSE_FRIEND_CLICKED else "Too few friends"
        lines = [f"Total Score: {snap.score}", cause]
        if self._result is not None:
            lines += [
                f"Rounds cleared: {self._result.rounds_cleared}",
                f"Friends clicked: {self._result.friends_clicked}",
                f"Avg reaction: {self._result.avg_reaction_ms} ms",
            ]
        y = 110
        for line in lines:
            text = self._small_font.render(line, True, TEXT_MAIN)
            surface.blit(text, text.get_rect(center=(w // 2, y)))
            y += 30

        y += 10
        if self._board is not None and not self._board.ok:
            text = self._small_font.render(self._board.message, True, DANGER)
            surface.blit(text, text.get_rect(center=(w // 2, y)))
            y += 30
        elif self._can_enter_name():
            prompt = self._small_font.render(f"New high score! Name: {self._name}_", True, ACCENT)
            surface.blit(prompt, prompt.get_rect(center=(w // 2, y)))
            y += 30
        if self._save_message:
            text = self._small_font.render(self._save_message, True, TEXT_MUTED)
            surface.blit(text, text.get_rect(center=(w // 2, y)))
            y += 30

        if self._board is not None:
            for rank, entry in enumerate(self._board.entries, start=1):
                row = f"{rank:>2}. {entry.player_name:<16} {entry.score:>8}  r{entry.rounds_cleared}"
                text = self._small_font.render(row, True, TEXT_MUTED)
                surface.blit(text, text.get_rect(center=(w // 2, y)))
                y += 24

        foot = self._small_font.render("Enter: Play again  |  Esc: Menu", True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 14)))


class LeaderboardScreen:
    def __init__(self, app: App, *, leaderboard: LeaderboardService, score_key: str) -> None:
        self._app = app
        self._status = leaderboard.load(score_key)
        self._score_key = score_key
        self._font = pygame.font.Font(None, 30)
        self._title_font = pygame.font.Font(None, 52)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN and event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE, pygame.K_RETURN):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)
        title = self._title_font.render("High Scores", True, TEXT_MAIN)
        surface.blit(title, title.get_rect(center=(w // 2, 50)))
        sub = self._font.render(self._score_key, True, TEXT_MUTED)
        surface.blit(sub, sub.get_rect(center=(w // 2, 90)))

        y = 140
        if not self._status.ok:
            lines = [self._status.message]
        elif not self._status.entries:
            lines = ["No scores yet. Be the first!"]
        else:
            lines = [
                f"{rank:>2}. {e.player_name:<16} {e.score:>8}  rounds {e.rounds_cleared}"
                for rank, e in enumerate(self._status.entries, start=1)
            ]
        for line in lines:
            text = self._font.render(line, True, TEXT_MAIN)
            surface.blit(text, text.get_rect(center=(w // 2, y)))
            y += 32


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    config: FalseFriendConfig | None = None,
    db_path: Path | None = None,
) -> int:
    pygame.init()

    pygame.display.set_caption("False Friend")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()
    cfg = config or FalseFriendConfig.from_env()
    leaderboard = LeaderboardService(
        SqliteLeaderboard(db_path or default_db_path()),
        limit=cfg.leaderboard_limit,
    )
    real_clock = RealClock()

    app = App(surface=surface, font=font)

    def open_game() -> None:
        app.push(
            FalseFriendScreen(
                app,
                engine_factory=lambda: build_false_friend_run(clock=real_clock, seed=_new_seed(), config=cfg),
                leaderboard=leaderboard,
            )
        )

    def open_scores() -> None:
        app.push(LeaderboardScreen(app, leaderboard=leaderboard, score_key=cfg.score_key))

    main_items = [
        MenuItem("Play", open_game),
        MenuItem("High Scores", open_scores),
        MenuItem("Quit", app.quit),
    ]
    app.push(MenuScreen(app, "False Friend", main_items, is_root=True))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        pygame.quit()

    return 0
