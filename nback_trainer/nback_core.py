from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Generic, TypeVar

from .cognitive_core import RandomSource
from .stimuli import CELL_DOMAIN, LETTER_DOMAIN, PIGMENT_DOMAIN, StimulusDomain

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Probability of deliberately repeating the value from exactly n rounds back.
REPEAT_PROBABILITY = 0.25


class StimulusChain(Generic[T]):
    """Memorization and generation of cues for one channel.

    Holds the last ``depth + 1`` stimuli, oldest first. The window starts out
    filled with the domain sentinel, so no match can register until real
    history reaches the n-back slot.
    """

    def __init__(self, *, domain: StimulusDomain[T], depth: int, rng: RandomSource) -> None:
        if int(depth) < 0:
            raise ValueError("depth must be >= 0")
        self._domain = domain
        self._rng = rng
        n = int(depth)
        self._window: deque[T] = deque((domain.sentinel for _ in range(n + 1)), maxlen=n + 1)

    @classmethod
    def with_depth(cls, n: int, *, domain: StimulusDomain[T], rng: RandomSource) -> StimulusChain[T]:
        return cls(domain=domain, depth=n, rng=rng)

    @property
    def domain(self) -> StimulusDomain[T]:
        return self._domain

    def depth(self) -> int:
        return len(self._window) - 1

    def window(self) -> tuple[T, ...]:
        return tuple(self._window)

    def current(self) -> T:
        return self._window[-1]

    def nback_slot(self) -> T:
        """Value the next cue is compared against once it has been pushed.

        The oldest entry falls out on push, so that is the second slot; with
        depth 0 the window only holds the previous cue.
        """
        return self._window[1] if len(self._window) > 1 else self._window[0]

    def advance(self) -> T:
        y = self._rng.random()
        back = self.nback_slot()

        if y < REPEAT_PROBABILITY and back != self._domain.sentinel:
            cue = back
        else:
            # The sentinel is a legitimate uniform outcome here, even after warm-up.
            cue = self._domain.sample(self._rng)

        # deque(maxlen=...) drops the oldest entry on append.
        self._window.append(cue)
        return self._window[-1]

    def current_match(self) -> bool:
        front = self._window[0]
        if front == self._domain.sentinel:
            return False
        return self._window[-1] == front

    def rebuilt(self) -> StimulusChain[T]:
        """Fresh chain with the same depth, domain and random source."""
        return StimulusChain(domain=self._domain, depth=self.depth(), rng=self._rng)


@dataclass(slots=True)
class ScoreTracker:
    """Confusion matrix for one channel."""

    true_positive: int = 0
    false_positive: int = 0
    false_negative: int = 0
    true_negative: int = 0

    def record_true_positive(self) -> None:
        self.true_positive += 1

    def record_false_positive(self) -> None:
        self.false_positive += 1

    def record_false_negative(self) -> None:
        self.false_negative += 1

    def record_true_negative(self) -> None:
        self.true_negative += 1

    def correct(self) -> int:
        return self.true_positive + self.true_negative

    def wrong(self) -> int:
        return self.false_positive + self.false_negative

    def total(self) -> int:
        return self.correct() + self.wrong()

    def f1(self) -> float:
        # Nothing to detect yet and nothing missed counts as perfect.
        if self.true_positive + self.false_negative == 0:
            return 1.0
        return self.true_positive / (
            self.true_positive + 0.5 * (self.false_positive + self.false_negative)
        )

    def restart(self) -> None:
        self.true_positive = 0
        self.false_positive = 0
        self.false_negative = 0
        self.true_negative = 0


class Channel(StrEnum):
    POSITION = "position"
    PIGMENT = "pigment"
    LETTER = "letter"


class Outcome(StrEnum):
    TRUE_POSITIVE = "true_positive"
    FALSE_POSITIVE = "false_positive"
    FALSE_NEGATIVE = "false_negative"
    TRUE_NEGATIVE = "true_negative"


@dataclass(frozen=True, slots=True)
class RoundOutcome:
    channel: Channel
    stimulus: Any
    claimed: bool
    matched: bool
    outcome: Outcome


def classify(*, claimed: bool, matched: bool) -> Outcome:
    if claimed:
        return Outcome.TRUE_POSITIVE if matched else Outcome.FALSE_POSITIVE
    return Outcome.FALSE_NEGATIVE if matched else Outcome.TRUE_NEGATIVE


def default_domains(channels: Iterable[Channel]) -> dict[Channel, StimulusDomain[Any]]:
    builtin: dict[Channel, StimulusDomain[Any]] = {
        Channel.POSITION: CELL_DOMAIN,
        Channel.PIGMENT: PIGMENT_DOMAIN,
        Channel.LETTER: LETTER_DOMAIN,
    }
    return {channel: builtin[channel] for channel in channels}


class NBack:
    """Per-channel chains and trackers plus the player's claims for the current round.

    The engine holds no clock: a round ends when the host calls ``complete_round``.
    Each channel is reconciled against the stimulus already on screen and only
    then advanced, so a claim always refers to what the player saw.
    """

    def __init__(
        self,
        *,
        domains: Mapping[Channel, StimulusDomain[Any]],
        depth: int,
        rng: RandomSource,
    ) -> None:
        if not domains:
            raise ValueError("at least one channel is required")

        self._chains: dict[Channel, StimulusChain[Any]] = {
            channel: StimulusChain.with_depth(depth, domain=domain, rng=rng)
            for channel, domain in domains.items()
        }
        self._trackers: dict[Channel, ScoreTracker] = {channel: ScoreTracker() for channel in domains}
        self._claims: dict[Channel, bool] = {channel: False for channel in domains}

    @property
    def channels(self) -> tuple[Channel, ...]:
        return tuple(self._chains)

    def depth(self) -> int:
        return next(iter(self._chains.values())).depth()

    def chain(self, channel: Channel) -> StimulusChain[Any]:
        return self._chains[channel]

    def tracker(self, channel: Channel) -> ScoreTracker:
        return self._trackers[channel]

    def claims(self) -> dict[Channel, bool]:
        return dict(self._claims)

    def current(self) -> dict[Channel, Any]:
        return {channel: chain.current() for channel, chain in self._chains.items()}

    def claim(self, channel: Channel) -> bool:
        """Assert a match for ``channel`` this round. Returns False for unknown channels."""
        if channel not in self._claims:
            return False
        self._claims[channel] = True
        return True

    def present(self) -> dict[Channel, Any]:
        """Advance every chain without scoring; used to show the opening stimulus."""
        shown: dict[Channel, Any] = {}
        for channel, chain in self._chains.items():
            shown[channel] = chain.advance()
            logger.debug("cue %s: %s", channel.value, shown[channel])
        return shown

    def complete_round(self) -> list[RoundOutcome]:
        results: list[RoundOutcome] = []
        for channel, chain in self._chains.items():
            claimed = self._claims[channel]
            matched = chain.current_match()
            outcome = classify(claimed=claimed, matched=matched)
            self._record(channel, outcome)
            logger.debug("%s: %s", channel.value, outcome.value)
            results.append(
                RoundOutcome(
                    channel=channel,
                    stimulus=chain.current(),
                    claimed=claimed,
                    matched=matched,
                    outcome=outcome,
                )
            )

            cue = chain.advance()
            logger.debug("cue %s: %s", channel.value, cue)
            self._claims[channel] = False
        return results

    def restart(self) -> None:
        for channel in self._chains:
            self._trackers[channel].restart()
            self._chains[channel] = self._chains[channel].rebuilt()
            self._claims[channel] = False

    def _record(self, channel: Channel, outcome: Outcome) -> None:
        tracker = self._trackers[channel]
        if outcome is Outcome.TRUE_POSITIVE:
            tracker.record_true_positive()
        elif outcome is Outcome.FALSE_POSITIVE:
            tracker.record_false_positive()
        elif outcome is Outcome.FALSE_NEGATIVE:
            tracker.record_false_negative()
        else:
            tracker.record_true_negative()
