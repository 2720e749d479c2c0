from __future__ import annotations

import os

import pytest


def _key(pygame: object, key: int) -> None:
    pygame.event.post(pygame.event.Event(pygame.KEYDOWN, {"key": key, "mod": 0, "unicode": ""}))  # type: ignore[attr-defined]


def test_ui_smoke_open_dual_nback_claim_and_restart() -> None:
    # Headless SDL for CI.
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

    import pygame

    from nback_trainer.app import run

    def inject(frame: int) -> None:
        # Main Menu -> Dual N-Back -> begin practice -> claim both channels -> restart
        if frame == 1:
            _key(pygame, pygame.K_RETURN)
        elif frame == 2:
            _key(pygame, pygame.K_RETURN)
        elif frame == 3:
            _key(pygame, pygame.K_a)
        elif frame == 4:
            _key(pygame, pygame.K_d)
        elif frame == 5:
            _key(pygame, pygame.K_r)
        elif frame == 6:
            _key(pygame, pygame.K_ESCAPE)

    assert run(max_frames=20, event_injector=inject) == 0


def test_ui_smoke_change_depth_then_open_triple_nback() -> None:
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

    import pygame

    from nback_trainer.app import run

    def inject(frame: int) -> None:
        # Main Menu -> N-Back Level -> raise depth -> back -> Triple N-Back -> begin practice
        if frame in (1, 2):
            _key(pygame, pygame.K_DOWN)
        elif frame == 3:
            _key(pygame, pygame.K_RETURN)
        elif frame == 4:
            _key(pygame, pygame.K_RIGHT)
        elif frame == 5:
            _key(pygame, pygame.K_RETURN)
        elif frame == 6:
            _key(pygame, pygame.K_UP)
        elif frame == 7:
            _key(pygame, pygame.K_RETURN)
        elif frame == 8:
            _key(pygame, pygame.K_RETURN)
        elif frame == 9:
            _key(pygame, pygame.K_s)

    assert run(max_frames=20, event_injector=inject) == 0


@pytest.mark.parametrize(("raw", "expected"), [("", 2), ("4", 4), ("42", 9), ("-3", 0), ("two", 2)])
def test_default_depth_env_override(monkeypatch: pytest.MonkeyPatch, raw: str, expected: int) -> None:
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")

    from nback_trainer import app

    monkeypatch.setenv(app.DEPTH_ENV, raw)
    assert app._default_depth() == expected


def test_session_screen_drives_engine_through_its_protocol() -> None:
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

    import pygame

    from nback_trainer.app import App, DualNBackScreen
    from nback_trainer.cognitive_core import Phase
    from nback_trainer.dual_nback import DualNBackConfig, DualNBackPayload, build_dual_nback_test
    from nback_trainer.nback_core import Channel

    class _Clock:
        t = 0.0

        def now(self) -> float:
            return self.t

    pygame.init()
    try:
        surface = pygame.Surface((960, 540))
        app = App(surface, pygame.font.Font(None, 36))
        clock = _Clock()
        engine = build_dual_nback_test(
            clock=clock,
            seed=11,
            config=DualNBackConfig(practice_duration_s=0.0, scored_duration_s=10.0),
        )
        screen = DualNBackScreen(app, engine_factory=lambda: engine)

        def press(key: int) -> None:
            screen.handle_event(pygame.event.Event(pygame.KEYDOWN, {"key": key, "mod": 0, "unicode": ""}))

        press(pygame.K_RETURN)
        assert engine.phase is Phase.PRACTICE_DONE
        press(pygame.K_RETURN)
        assert engine.phase is Phase.SCORED

        press(pygame.K_a)
        payload = engine.snapshot().payload
        assert isinstance(payload, DualNBackPayload)
        assert payload.claims[Channel.POSITION] is True

        press(pygame.K_ESCAPE)
        assert engine.phase is Phase.SCORED

        clock.t = 10.0
        screen.render(surface)
        assert engine.phase is Phase.RESULTS
    finally:
        pygame.quit()
