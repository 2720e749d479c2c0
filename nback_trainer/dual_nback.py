from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .clock import Clock, RoundTimer
from .cognitive_core import AttemptSummary, Phase, RandomSource, SeededRng, TestSnapshot
from .nback_core import Channel, NBack, Outcome, RoundOutcome, default_domains
from .stimuli import Cell, Letter, Pigment

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DualNBackConfig:
    depth: int = 2
    round_interval_s: float = 2.0
    practice_duration_s: float = 20.0
    scored_duration_s: float = 120.0
    channels: tuple[Channel, ...] = (Channel.POSITION, Channel.PIGMENT)


@dataclass(frozen=True, slots=True)
class ChannelStats:
    channel: Channel
    true_positive: int
    false_positive: int
    false_negative: int
    true_negative: int
    correct: int
    wrong: int
    f1: float


@dataclass(frozen=True, slots=True)
class DualNBackPayload:
    cell: Cell | None
    pigment: Pigment | None
    letter: Letter | None
    depth: int
    claims: dict[Channel, bool]
    stats: tuple[ChannelStats, ...]
    round_index: int
    round_progress: float


@dataclass(frozen=True, slots=True)
class RoundEvent:
    phase: Phase
    round_index: int
    channel: Channel
    stimulus: str
    claimed: bool
    matched: bool
    outcome: Outcome


_CLAIM_TOKENS: dict[str, Channel] = {
    "POS": Channel.POSITION,
    "POSITION": Channel.POSITION,
    "A": Channel.POSITION,
    "COL": Channel.PIGMENT,
    "COLOR": Channel.PIGMENT,
    "COLOUR": Channel.PIGMENT,
    "PIGMENT": Channel.PIGMENT,
    "D": Channel.PIGMENT,
    "LET": Channel.LETTER,
    "LETTER": Channel.LETTER,
    "S": Channel.LETTER,
}


class DualNBackEngine:
    """Timed dual n-back session: instructions -> practice -> scored -> results.

    Rounds are driven by a RoundTimer polled from ``update()`` against the
    injected Clock. Claims submitted during a round are scored at the next
    boundary, after which every channel shows a fresh stimulus.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        seed: int,
        config: DualNBackConfig | None = None,
        rng: RandomSource | None = None,
    ) -> None:
        cfg = config or DualNBackConfig()

        if cfg.depth < 0:
            raise ValueError("depth must be >= 0")
        if cfg.round_interval_s <= 0.0:
            raise ValueError("round_interval_s must be > 0")
        if cfg.practice_duration_s < 0.0:
            raise ValueError("practice_duration_s must be >= 0")
        if cfg.scored_duration_s <= 0.0:
            raise ValueError("scored_duration_s must be > 0")
        if not cfg.channels:
            raise ValueError("channels must not be empty")
        if len(set(cfg.channels)) != len(cfg.channels):
            raise ValueError("channels must be unique")

        self._clock = clock
        self._seed = int(seed)
        self._cfg = cfg

        self._nback = NBack(
            domains=default_domains(cfg.channels),
            depth=cfg.depth,
            rng=rng if rng is not None else SeededRng(self._seed),
        )
        self._timer = RoundTimer(interval_s=cfg.round_interval_s, started_at_s=self._clock.now())

        self._phase = Phase.INSTRUCTIONS
        self._phase_started_at_s = self._clock.now()
        self._round_index = 0
        self._events: list[RoundEvent] = []
        # Seconds from stimulus onset to the first claim of a channel in that round.
        self._response_times: list[tuple[Phase, float]] = []

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def config(self) -> DualNBackConfig:
        return self._cfg

    @property
    def nback(self) -> NBack:
        return self._nback

    def can_exit(self) -> bool:
        return self._phase is not Phase.SCORED

    def start_practice(self) -> None:
        if self._phase is not Phase.INSTRUCTIONS:
            return
        if self._cfg.practice_duration_s <= 0.0:
            self._phase = Phase.PRACTICE_DONE
            self._phase_started_at_s = self._clock.now()
            return
        self._phase = Phase.PRACTICE
        self._begin_runtime_phase()

    def start_scored(self) -> None:
        if self._phase not in (Phase.INSTRUCTIONS, Phase.PRACTICE_DONE):
            return
        self._phase = Phase.SCORED
        self._begin_runtime_phase()

    def restart(self) -> None:
        if self._phase not in (Phase.PRACTICE, Phase.SCORED):
            return
        logger.info("restarting %s at depth %d", self._phase.value, self._nback.depth())
        self._begin_runtime_phase()

    def submit_answer(self, raw: str) -> bool:
        if self._phase not in (Phase.PRACTICE, Phase.SCORED):
            return False

        token = str(raw).strip().upper()
        channel = _CLAIM_TOKENS.get(token)
        if channel is None:
            return False
        already_claimed = self._nback.claims().get(channel, False)
        if not self._nback.claim(channel):
            return False
        if not already_claimed:
            onset = self._phase_started_at_s + self._round_index * self._cfg.round_interval_s
            self._response_times.append((self._phase, max(0.0, self._clock.now() - onset)))
        return True

    def update(self) -> None:
        if self._phase not in (Phase.PRACTICE, Phase.SCORED):
            return

        now = self._clock.now()
        phase_end = self._phase_started_at_s + self._phase_duration_s()

        # Boundaries that fall after the phase end are not played.
        due = self._timer.poll(min(now, phase_end))
        for _ in range(due):
            self._complete_round()

        if now >= phase_end:
            self._finish_phase(now)

    def time_remaining_s(self) -> float | None:
        if self._phase not in (Phase.PRACTICE, Phase.SCORED):
            return None
        rem = self._phase_duration_s() - (self._clock.now() - self._phase_started_at_s)
        return max(0.0, rem)

    def round_progress(self) -> float:
        if self._phase not in (Phase.PRACTICE, Phase.SCORED):
            return 0.0
        return self._timer.progress(self._clock.now())

    def channel_stats(self) -> tuple[ChannelStats, ...]:
        out: list[ChannelStats] = []
        for channel in self._nback.channels:
            tracker = self._nback.tracker(channel)
            out.append(
                ChannelStats(
                    channel=channel,
                    true_positive=tracker.true_positive,
                    false_positive=tracker.false_positive,
                    false_negative=tracker.false_negative,
                    true_negative=tracker.true_negative,
                    correct=tracker.correct(),
                    wrong=tracker.wrong(),
                    f1=float(tracker.f1()),
                )
            )
        return tuple(out)

    def scored_summary(self) -> AttemptSummary:
        duration = float(self._cfg.scored_duration_s)
        scored = [evt for evt in self._events if evt.phase is Phase.SCORED]
        attempted = len(scored)
        correct = sum(1 for evt in scored if evt.outcome in (Outcome.TRUE_POSITIVE, Outcome.TRUE_NEGATIVE))
        accuracy = 0.0 if attempted == 0 else correct / attempted
        throughput = (attempted / duration) * 60.0
        rts = [rt for phase, rt in self._response_times if phase is Phase.SCORED]
        mean_rt = None if not rts else sum(rts) / len(rts)

        # Trackers only hold the scored block once it has started.
        if self._phase in (Phase.SCORED, Phase.RESULTS):
            stats = self.channel_stats()
            total_score = sum(s.f1 for s in stats) / float(len(stats))
            max_score = 1.0
        else:
            total_score = 0.0
            max_score = 0.0
        ratio = 0.0 if max_score <= 0.0 else total_score / max_score

        return AttemptSummary(
            attempted=attempted,
            correct=correct,
            accuracy=float(accuracy),
            duration_s=duration,
            throughput_per_min=float(throughput),
            mean_response_time_s=mean_rt,
            total_score=float(total_score),
            max_score=float(max_score),
            score_ratio=float(ratio),
        )

    def events(self) -> list[RoundEvent]:
        return list(self._events)

    def snapshot(self) -> TestSnapshot:
        payload = self._build_payload() if self._phase in (Phase.PRACTICE, Phase.SCORED) else None
        summary = self.scored_summary()
        return TestSnapshot(
            title=self._title(),
            phase=self._phase,
            prompt=self.current_prompt(),
            input_hint=self._input_hint(),
            time_remaining_s=self.time_remaining_s(),
            attempted_scored=summary.attempted,
            correct_scored=summary.correct,
            payload=payload,
            practice_feedback=self._practice_feedback(),
        )

    def current_prompt(self) -> str:
        depth = self._nback.depth()
        if self._phase is Phase.INSTRUCTIONS:
            lines = [
                self._title(),
                "",
                f"A new stimulus appears every {self._cfg.round_interval_s:g} seconds.",
                f"Signal a match when the current stimulus equals the one shown {depth} rounds earlier.",
                "",
                "Controls:",
            ]
            lines.extend(f"- {label}" for label in self._control_labels())
            lines.extend(
                [
                    "- R: restart the current block",
                    "",
                    "Once scored begins, exit is locked until completion.",
                    "Press Enter to start practice.",
                ]
            )
            return "\n".join(lines)

        if self._phase is Phase.PRACTICE_DONE:
            return "Practice complete. Press Enter to begin the timed scored block."

        if self._phase is Phase.RESULTS:
            s = self.scored_summary()
            lines = [
                "Results",
                "",
                f"N back:    {depth}",
                f"Rounds:    {s.attempted}",
                f"Correct:   {s.correct}",
                f"Accuracy:  {s.accuracy*100.0:.1f}%",
            ]
            for stats in self.channel_stats():
                lines.append(
                    f"{stats.channel.value.title():<9} correct {stats.correct}  wrong {stats.wrong}  F1 {stats.f1:.2f}"
                )
            lines.extend(["", "Press Enter to return."])
            return "\n".join(lines)

        return "Signal every n-back match before the next stimulus appears."

    def _practice_feedback(self) -> str | None:
        if self._phase is not Phase.PRACTICE_DONE:
            return None
        practice = [evt for evt in self._events if evt.phase is Phase.PRACTICE]
        if not practice:
            return None
        correct = sum(1 for evt in practice if evt.outcome in (Outcome.TRUE_POSITIVE, Outcome.TRUE_NEGATIVE))
        return f"Practice: {correct}/{len(practice)} responses correct."

    def _title(self) -> str:
        prefix = {1: "Single", 2: "Dual"}.get(len(self._nback.channels), "Triple")
        return f"{prefix} {self._nback.depth()}-Back"

    def _control_labels(self) -> list[str]:
        labels = {
            Channel.POSITION: "A: position match",
            Channel.PIGMENT: "D: colour match",
            Channel.LETTER: "S: letter match",
        }
        return [labels[channel] for channel in self._nback.channels]

    def _input_hint(self) -> str:
        return "  ".join(self._control_labels() + ["R: restart"])

    def _phase_duration_s(self) -> float:
        if self._phase is Phase.PRACTICE:
            return float(self._cfg.practice_duration_s)
        return float(self._cfg.scored_duration_s)

    def _begin_runtime_phase(self) -> None:
        now = self._clock.now()
        self._phase_started_at_s = now
        self._timer.reset(now)
        self._round_index = 0
        # A restarted block replaces, rather than extends, that phase's log.
        self._events = [evt for evt in self._events if evt.phase is not self._phase]
        self._response_times = [(p, rt) for p, rt in self._response_times if p is not self._phase]

        self._nback.restart()
        self._nback.present()
        logger.info("%s started at depth %d", self._phase.value, self._nback.depth())

    def _complete_round(self) -> None:
        self._round_index += 1
        for result in self._nback.complete_round():
            self._record_event(result)

    def _record_event(self, result: RoundOutcome) -> None:
        self._events.append(
            RoundEvent(
                phase=self._phase,
                round_index=self._round_index,
                channel=result.channel,
                stimulus=str(result.stimulus),
                claimed=result.claimed,
                matched=result.matched,
                outcome=result.outcome,
            )
        )

    def _finish_phase(self, now: float) -> None:
        if self._phase is Phase.PRACTICE:
            self._phase = Phase.PRACTICE_DONE
        elif self._phase is Phase.SCORED:
            self._phase = Phase.RESULTS
        self._phase_started_at_s = now
        logger.info("phase -> %s after %d rounds", self._phase.value, self._round_index)

    def _build_payload(self) -> DualNBackPayload:
        shown: dict[Channel, Any] = self._nback.current()
        return DualNBackPayload(
            cell=shown.get(Channel.POSITION),
            pigment=shown.get(Channel.PIGMENT),
            letter=shown.get(Channel.LETTER),
            depth=self._nback.depth(),
            claims=self._nback.claims(),
            stats=self.channel_stats(),
            round_index=self._round_index,
            round_progress=self.round_progress(),
        )


def build_dual_nback_test(
    *,
    clock: Clock,
    seed: int,
    config: DualNBackConfig | None = None,
) -> DualNBackEngine:
    return DualNBackEngine(clock=clock, seed=seed, config=config)
