from __future__ import annotations

import dataclasses
import threading
import types
import typing as t

from ai_util.errors import ValidationError

BENCHMARK_MINUTES: t.Mapping[str, int] = types.MappingProxyType(
    {
        "easy": 15,
        "medium": 30,
        "hard": 45,
    }
)

SLOW_RATIO = 1.5
FAST_RATIO = 0.7

NEEDS_PRACTICE = "needs practice"
PROFICIENT = "proficient"
ON_TRACK = "on track"

_MESSAGES = {
    NEEDS_PRACTICE: "You took longer than expected. Let's reinforce this topic at the same difficulty.",
    PROFICIENT: "You solved it quickly. Time to move up in difficulty or try new concepts.",
    ON_TRACK: "You're on track. Keep a steady pace with a related challenge.",
}

_PROMPT_NOTES = {
    NEEDS_PRACTICE: (
        "The user took significantly longer than expected, so suggest another {difficulty} problem "
        "on the same topic to reinforce it."
    ),
    PROFICIENT: (
        "The user solved this much faster than expected, so suggest a harder problem or one that "
        "introduces a new concept."
    ),
    ON_TRACK: "The user is on track, so suggest a problem of similar difficulty that builds on this topic.",
}


@dataclasses.dataclass(frozen=True)
class PerformanceResult:
    topic: str
    difficulty: str
    time_taken: int
    ratio: float
    band: str

    @property
    def message(self) -> str:
        return _MESSAGES[self.band]

    def prompt_note(self) -> str:
        return _PROMPT_NOTES[self.band].format(difficulty=self.difficulty)

    def to_dict(self) -> dict[str, str]:
        return {
            "topic": self.topic,
            "ratio": f"{self.ratio:.2f}",
            "message": self.message,
        }


def classify(ratio: float) -> str:
    if ratio > SLOW_RATIO:
        return NEEDS_PRACTICE
    if ratio < FAST_RATIO:
        return PROFICIENT
    return ON_TRACK


def evaluate(topic: str, difficulty: str, time_taken: int | float) -> PerformanceResult:
    key = str(difficulty).strip().lower()
    benchmark = BENCHMARK_MINUTES.get(key)
    if benchmark is None:
        raise ValidationError(
            f"Invalid difficulty '{difficulty}'. Expected one of: {', '.join(BENCHMARK_MINUTES)}"
        )
    ratio = float(time_taken) / benchmark
    return PerformanceResult(
        topic=topic,
        difficulty=key,
        time_taken=int(time_taken),
        ratio=ratio,
        band=classify(ratio),
    )


class PerformanceTracker:
    """Per-topic ratio history. Lives for the process lifetime only."""

    def __init__(self) -> None:
        self._history: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def record(self, topic: str, difficulty: str, time_taken: int | float) -> PerformanceResult:
        result = evaluate(topic, difficulty, time_taken)
        with self._lock:
            self._history.setdefault(topic, []).append(result.ratio)
        return result

    def history(self, topic: str) -> list[float]:
        with self._lock:
            return list(self._history.get(topic, []))

    def topics(self) -> list[str]:
        with self._lock:
            return list(self._history.keys())
