from __future__ import annotations

import dataclasses
import enum
import logging
import time
import typing as t

from ai_util.errors import ValidationError
from backend.kv_store import TIMER_STATE, KeyValueStore

JsonDict = dict[str, t.Any]
Clock = t.Callable[[], int]

STATUS_STOPPED = "Timer stopped"

logger = logging.getLogger(__name__)


def epoch_ms() -> int:
    return int(time.time() * 1000)


class TimerPhase(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclasses.dataclass(frozen=True)
class TimerState:
    is_running: bool = False
    start_time: int | None = None
    elapsed: int = 0

    def __post_init__(self) -> None:
        if self.is_running and self.start_time is None:
            raise ValueError("A running timer needs a start time")

    def to_dict(self) -> JsonDict:
        return {
            "isRunning": self.is_running,
            "startTime": self.start_time,
            "elapsed": self.elapsed,
        }


class TimerStateMachine:
    """Owns the timer for the background context.

    ``start``, ``stop`` and ``reset`` write the full state to the store before
    returning. ``query`` never writes. The stored document also carries
    ``savedAt`` so a restart can account for time spent while the process
    was down.
    """

    def __init__(self, store: KeyValueStore, clock: Clock = epoch_ms) -> None:
        self.store = store
        self.clock = clock
        self._state = TimerState()
        self.phase = TimerPhase.IDLE

    @property
    def state(self) -> TimerState:
        return self._state

    def _commit(self, state: TimerState, phase: TimerPhase, now: int) -> TimerState:
        self.store.set({TIMER_STATE: {**state.to_dict(), "savedAt": now}})
        self._state = state
        self.phase = phase
        return state

    def install(self) -> None:
        self.store.set({TIMER_STATE: None})
        self._state = TimerState()
        self.phase = TimerPhase.IDLE

    def rehydrate(self) -> TimerState:
        # The stored startTime is not trusted; it is recomputed from elapsed.
        raw = self.store.get(TIMER_STATE) or {}
        if raw.get("isRunning"):
            now = self.clock()
            elapsed = int(raw.get("elapsed") or 0)
            saved_at = raw.get("savedAt")
            if saved_at is not None:
                elapsed += max(0, now - int(saved_at))
            self._state = TimerState(is_running=True, start_time=now - elapsed, elapsed=elapsed)
            self.phase = TimerPhase.RUNNING
            logger.info("Timer rehydrated with %d ms already elapsed", elapsed)
        return self._state

    def start(self) -> TimerState:
        # Always a fresh interval, even from Stopped.
        now = self.clock()
        return self._commit(TimerState(is_running=True, start_time=now, elapsed=0), TimerPhase.RUNNING, now)

    def stop(self) -> TimerState:
        start_time = self._state.start_time
        if not self._state.is_running or start_time is None:
            return self._state
        now = self.clock()
        elapsed = max(0, now - start_time)
        return self._commit(TimerState(is_running=False, start_time=None, elapsed=elapsed), TimerPhase.STOPPED, now)

    def reset(self) -> TimerState:
        return self._commit(TimerState(), TimerPhase.IDLE, self.clock())

    def query(self) -> TimerState:
        start_time = self._state.start_time
        if not self._state.is_running or start_time is None:
            return self._state
        return dataclasses.replace(self._state, elapsed=max(0, self.clock() - start_time))

    def handle_message(self, request: t.Mapping[str, t.Any]) -> JsonDict:
        """Dispatch one extension message and build its reply."""
        action = request.get("action")
        if action == "startTimer":
            return {"status": "Timer started", "timerState": self.start().to_dict()}
        if action == "stopTimer":
            was_running = self._state.is_running
            state = self.stop()
            if not was_running:
                return {"timerState": state.to_dict()}
            return {"status": STATUS_STOPPED, "timerState": state.to_dict()}
        if action == "getTimerState":
            return {"timerState": self.query().to_dict()}
        if action == "resetTimer":
            return {"status": "Timer reset", "timerState": self.reset().to_dict()}
        raise ValidationError(f"Unknown action: {action}")
