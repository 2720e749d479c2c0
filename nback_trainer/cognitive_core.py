from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, TypeVar

T = TypeVar("T")


class RandomSource(Protocol):
    """The draws a stimulus chain needs from its random number generator."""

    def random(self) -> float:
        """Return a uniform fraction in [0.0, 1.0)."""
        ...

    def choice(self, seq: Sequence[T]) -> T:
        ...


class Phase(str, Enum):
    INSTRUCTIONS = "instructions"
    PRACTICE = "practice"
    PRACTICE_DONE = "practice_done"
    SCORED = "scored"
    RESULTS = "results"


@dataclass(frozen=True, slots=True)
class AttemptSummary:
    attempted: int
    correct: int
    accuracy: float
    duration_s: float
    throughput_per_min: float
    mean_response_time_s: float | None
    total_score: float = 0.0
    max_score: float = 0.0
    score_ratio: float = 0.0


@dataclass(frozen=True, slots=True)
class TestSnapshot:
    """View model for the UI (pure data)."""

    title: str
    phase: Phase
    prompt: str
    input_hint: str
    time_remaining_s: float | None
    attempted_scored: int
    correct_scored: int
    payload: object | None = None
    practice_feedback: str | None = None


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def random(self) -> float:
        return self._rng.random()

    def choice(self, seq: Sequence[T]) -> T:
        return self._rng.choice(seq)
