"""Pygame UI shell for the dual n-back trainer.

The main menu opens a Dual N-Back session and an "N-Back Level" setting.
The session screen draws the 3x3 grid with the current position and colour
cue, an optional letter, a round-progress bar and a debug panel with the
per-channel confusion tallies.

Deterministic timing/scoring/RNG/state lives in nback_trainer/* (core modules).
"""

from __future__ import annotations

import logging
import os
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .clock import RealClock
from .cognitive_core import Phase, TestSnapshot
from .dual_nback import DualNBackConfig, DualNBackPayload, build_dual_nback_test
from .nback_core import Channel
from .stimuli import cell_column, cell_row, pigment_rgb

logger = logging.getLogger(__name__)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


class CognitiveEngine(Protocol):
    def snapshot(self) -> TestSnapshot: ...
    def can_exit(self) -> bool: ...
    def start_practice(self) -> None: ...
    def start_scored(self) -> None: ...
    def submit_answer(self, raw: str) -> bool: ...
    def update(self) -> None: ...
    def restart(self) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str | Callable[[], str]
    action: Callable[[], None]

    def text(self) -> str:
        return self.label() if callable(self.label) else self.label


DEPTH_ENV = "NBACK_TRAINER_DEPTH"
MIN_DEPTH = 0
MAX_DEPTH = 9

WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

BACKGROUND = (38, 38, 38)
WALL_COLOR = (255, 255, 255)
TEXT_MAIN = (235, 235, 245)
TEXT_MUTED = (160, 160, 172)

_CHANNEL_KEYS: dict[int, str] = {
    pygame.K_a: "A",
    pygame.K_d: "D",
    pygame.K_s: "S",
}


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
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif event.key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._back()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BACKGROUND)

        title = self._title_font.render(self._title, True, TEXT_MAIN)
        surface.blit(title, title.get_rect(midtop=(w // 2, max(24, h // 10))))

        row_h = 44
        y = max(90, h // 4)
        for idx, item in enumerate(self._items):
            row = pygame.Rect(w // 2 - 180, y, 360, row_h - 8)
            selected = idx == self._selected
            if selected:
                pygame.draw.rect(surface, (244, 248, 255), row)
            else:
                pygame.draw.rect(surface, (62, 62, 70), row, 1)
            color = (14, 26, 74) if selected else TEXT_MAIN
            text = self._item_font.render(item.text(), True, color)
            surface.blit(text, text.get_rect(center=row.center))
            y += row_h

        foot = self._hint_font.render("Enter/Space: Select  |  Esc/Backspace: Back", True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 12)))


class DepthSettingsScreen:
    """Left/Right pick how many rounds back the player must compare."""

    def __init__(self, app: App, *, get_depth: Callable[[], int], set_depth: Callable[[int], None]) -> None:
        self._app = app
        self._get_depth = get_depth
        self._set_depth = set_depth
        self._big_font = pygame.font.Font(None, 96)
        self._small_font = pygame.font.Font(None, 24)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_LEFT, pygame.K_a, pygame.K_MINUS):
            self._set_depth(max(MIN_DEPTH, self._get_depth() - 1))
        elif event.key in (pygame.K_RIGHT, pygame.K_d, pygame.K_EQUALS, pygame.K_PLUS):
            self._set_depth(min(MAX_DEPTH, self._get_depth() + 1))
        elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BACKGROUND)

        title = self._app.font.render("N-Back Level", True, TEXT_MAIN)
        surface.blit(title, title.get_rect(midtop=(w // 2, 40)))

        value = self._big_font.render(f"< {self._get_depth()} >", True, TEXT_MAIN)
        surface.blit(value, value.get_rect(center=(w // 2, h // 2)))

        hint = self._small_font.render(
            f"Left/Right: {MIN_DEPTH}..{MAX_DEPTH}  |  Enter/Esc: Back", True, TEXT_MUTED
        )
        surface.blit(hint, hint.get_rect(midbottom=(w // 2, h - 12)))


class DualNBackScreen:
    def __init__(self, app: App, *, engine_factory: Callable[[], CognitiveEngine]) -> None:
        self._app = app
        self._engine = engine_factory()
        self._small_font = pygame.font.Font(None, 24)
        self._letter_font = pygame.font.Font(None, 64)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return

        # Emergency exit: allow a hard escape from any state (including SCORED).
        if event.key == pygame.K_F12 or (event.key == pygame.K_ESCAPE and (event.mod & pygame.KMOD_SHIFT)):
            self._app.pop()
            return

        phase = self._engine.snapshot().phase
        if event.key == pygame.K_ESCAPE:
            if self._engine.can_exit():
                self._app.pop()
            return

        if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            if phase is Phase.INSTRUCTIONS:
                self._engine.start_practice()
            elif phase is Phase.PRACTICE_DONE:
                self._engine.start_scored()
            elif phase is Phase.RESULTS:
                self._app.pop()
            return

        if event.key == pygame.K_r:
            self._engine.restart()
            return

        token = _CHANNEL_KEYS.get(event.key)
        if token is not None:
            self._engine.submit_answer(token)

    def render(self, surface: pygame.Surface) -> None:
        self._engine.update()
        snap = self._engine.snapshot()
        payload = snap.payload if isinstance(snap.payload, DualNBackPayload) else None

        surface.fill(BACKGROUND)
        title = self._app.font.render(snap.title, True, TEXT_MAIN)
        surface.blit(title, (40, 24))

        if payload is None:
            y = 80
            lines = str(snap.prompt).split("\n")
            if snap.practice_feedback:
                lines = [snap.practice_feedback, ""] + lines
            for line in lines[:16]:
                txt = self._small_font.render(line, True, TEXT_MAIN)
                surface.blit(txt, (40, y))
                y += 26
            return

        self._render_board(surface, payload)
        self._render_debug_panel(surface, snap, payload)

        hint = self._small_font.render(snap.input_hint, True, TEXT_MUTED)
        surface.blit(hint, (40, surface.get_height() - 36))

        if not self._engine.can_exit():
            lock = self._small_font.render("Test in progress: cannot exit.", True, TEXT_MUTED)
            surface.blit(lock, lock.get_rect(bottomright=(surface.get_width() - 24, surface.get_height() - 12)))

    def _render_board(self, surface: pygame.Surface, payload: DualNBackPayload) -> None:
        w, h = surface.get_size()
        bound = max(120, min(360, h - 140))
        spacing = max(6, bound // 12)
        size = (bound - spacing) // 3
        center = pygame.Vector2(w * 0.38, h * 0.5)
        wall = 8

        frame = pygame.Rect(0, 0, bound, bound)
        frame.center = (int(center.x), int(center.y))
        pygame.draw.rect(surface, WALL_COLOR, frame.inflate(wall, wall), wall)

        if payload.cell is not None:
            x = center.x + cell_column(payload.cell) * (size + spacing)
            y = center.y - cell_row(payload.cell) * (size + spacing)
        else:
            x, y = center.x, center.y

        color = pigment_rgb(payload.pigment) if payload.pigment is not None else WALL_COLOR
        square = pygame.Rect(0, 0, size, size)
        square.center = (int(x), int(y))
        pygame.draw.rect(surface, color, square)

        if payload.letter is not None:
            glyph = payload.letter.value if payload.letter.value != "none" else ""
            text = self._letter_font.render(glyph, True, BACKGROUND)
            surface.blit(text, text.get_rect(center=square.center))

        bar = pygame.Rect(frame.x, frame.bottom + wall + 10, frame.w, 6)
        pygame.draw.rect(surface, (70, 70, 80), bar)
        filled = bar.copy()
        filled.w = int(round(bar.w * payload.round_progress))
        pygame.draw.rect(surface, TEXT_MAIN, filled)

    def _render_debug_panel(
        self, surface: pygame.Surface, snap: TestSnapshot, payload: DualNBackPayload
    ) -> None:
        w, _ = surface.get_size()
        x = int(w * 0.66)
        y = 80

        lines = [f"n back: {payload.depth}", f"round: {payload.round_index}"]
        if snap.time_remaining_s is not None:
            rem = int(round(snap.time_remaining_s))
            lines.append(f"time: {rem // 60:02d}:{rem % 60:02d}")
        lines.append(f"phase: {snap.phase.value}")
        lines.append("")
        for stats in payload.stats:
            claimed = "*" if payload.claims.get(stats.channel, False) else " "
            lines.append(f"[{claimed}] {stats.channel.value}")
            lines.append(f"    correct: {stats.correct}  wrong: {stats.wrong}")
            lines.append(f"    F1 score: {stats.f1:.3f}")
        lines.extend(["", "R: restart"])

        for line in lines:
            txt = self._small_font.render(line, True, TEXT_MAIN)
            surface.blit(txt, (x, y))
            y += 24


def _default_depth() -> int:
    raw = os.environ.get(DEPTH_ENV, "").strip()
    if raw == "":
        return DualNBackConfig().depth
    try:
        value = int(raw)
    except ValueError:
        logger.warning("ignoring %s=%r: not an integer", DEPTH_ENV, raw)
        return DualNBackConfig().depth
    return max(MIN_DEPTH, min(MAX_DEPTH, value))


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def run(*, max_frames: int | None = None, event_injector: Callable[[int], None] | None = None) -> int:
    pygame.init()

    pygame.display.set_caption("nback!")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)
    real_clock = RealClock()

    settings = {"depth": _default_depth()}

    def get_depth() -> int:
        return settings["depth"]

    def set_depth(value: int) -> None:
        settings["depth"] = int(value)
        logger.info("n-back level set to %d", settings["depth"])

    def open_session(channels: tuple[Channel, ...]) -> Callable[[], None]:
        def _open() -> None:
            seed = _new_seed()
            config = DualNBackConfig(depth=get_depth(), channels=channels)
            app.push(
                DualNBackScreen(
                    app,
                    engine_factory=lambda: build_dual_nback_test(clock=real_clock, seed=seed, config=config),
                )
            )

        return _open

    depth_screen = DepthSettingsScreen(app, get_depth=get_depth, set_depth=set_depth)

    main_items = [
        MenuItem("Dual N-Back", open_session((Channel.POSITION, Channel.PIGMENT))),
        MenuItem("Triple N-Back (+ letters)", open_session((Channel.POSITION, Channel.PIGMENT, Channel.LETTER))),
        MenuItem(lambda: f"N-Back Level: {get_depth()}", lambda: app.push(depth_screen)),
        MenuItem("Quit", app.quit),
    ]

    app.push(MenuScreen(app, "Main Menu", main_items, is_root=True))

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
