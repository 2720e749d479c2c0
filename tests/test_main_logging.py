from __future__ import annotations

import logging
import os

import pytest

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, logging.WARNING), ("debug", logging.DEBUG), (" INFO ", logging.INFO), ("loud", logging.WARNING)],
)
def test_log_level_comes_from_env(
    monkeypatch: pytest.MonkeyPatch, root_logger: logging.Logger, raw: str | None, expected: int
) -> None:
    from nback_trainer import __main__ as entry

    if raw is None:
        monkeypatch.delenv(entry.LOG_LEVEL_ENV, raising=False)
    else:
        monkeypatch.setenv(entry.LOG_LEVEL_ENV, raw)

    entry._configure_logging()

    assert root_logger.level == expected
