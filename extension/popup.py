from __future__ import annotations

import dataclasses
import logging
import typing as t

from backend.kv_store import CURRENT_PROBLEM, FIRST_TIME, TIMER_STATE, KeyValueStore
from extension.detector import ProblemDetails, SendMessage, SuggestionClient, completion_payload
from extension.timer import STATUS_STOPPED, Clock, epoch_ms

JsonDict = dict[str, t.Any]
OpenTab = t.Callable[[str], None]

JOURNEY_START: JsonDict = {
    "last_problem": "",
    "difficulty": "easy",
    "time_taken": 0,
    "topic": "arrays",
}

logger = logging.getLogger(__name__)


def format_elapsed(total_ms: int) -> str:
    total_seconds = max(0, int(total_ms)) // 1000
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


@dataclasses.dataclass
class PopupView:
    first_time: bool
    current_problem: ProblemDetails | None = None
    timer_running: bool = False
    status: str = ""
    next_problem: JsonDict | None = None

    @property
    def timer_button_label(self) -> str:
        return "Stop Timer" if self.timer_running else "Start Timer"

    @property
    def complete_enabled(self) -> bool:
        return self.timer_running


class PopupController:
    def __init__(
        self,
        store: KeyValueStore,
        send_message: SendMessage,
        client: SuggestionClient,
        clock: Clock = epoch_ms,
    ) -> None:
        self.store = store
        self.send_message = send_message
        self.client = client
        self.clock = clock
        self.view = PopupView(first_time=True)

    def load(self) -> PopupView:
        data = self.store.get_many([FIRST_TIME, CURRENT_PROBLEM, TIMER_STATE])
        self.view = PopupView(first_time=not data.get(FIRST_TIME))
        if not self.view.first_time:
            if data.get(CURRENT_PROBLEM):
                self.view.current_problem = ProblemDetails.from_dict(data[CURRENT_PROBLEM])
            self.view.timer_running = bool((data.get(TIMER_STATE) or {}).get("isRunning"))
        return self.view

    def toggle_timer(self) -> PopupView:
        action = "stopTimer" if self.view.timer_running else "startTimer"
        self.send_message({"action": action})
        self.view.timer_running = not self.view.timer_running
        return self.view

    def refresh_timer(self) -> str:
        reply = self.send_message({"action": "getTimerState"}) or {}
        state = reply.get("timerState")
        if not state:
            return ""
        if state.get("isRunning") and state.get("startTime") is not None:
            elapsed = self.clock() - int(state["startTime"])
        else:
            elapsed = int(state.get("elapsed") or 0)
        self.view.status = "Timer running" if state.get("isRunning") else "Timer stopped"
        return format_elapsed(elapsed)

    def _show_next(self, data: JsonDict, status: str) -> PopupView:
        if not data.get("success"):
            raise RuntimeError(data.get("error") or status)
        self.view.next_problem = data.get("problem")
        return self.view

    def mark_complete(self) -> PopupView:
        try:
            reply = self.send_message({"action": "stopTimer"}) or {}
            state = reply.get("timerState")
            if reply.get("status") != STATUS_STOPPED or not state:
                return self.view
            current = self.store.get(CURRENT_PROBLEM)
            if not current:
                raise RuntimeError("No current problem found")
            payload = completion_payload(ProblemDetails.from_dict(current), int(state.get("elapsed") or 0))
            self._show_next(self.client.request_next_problem(payload), "Failed to get next problem")
            self.view.status = "Problem completed!"
            self.view.timer_running = False
        except (RuntimeError, OSError, ValueError) as e:
            logger.error("Mark complete failed: %s", e)
            self.view.status = f"Error: {e}"
        return self.view

    def start_journey(self) -> PopupView:
        try:
            self._show_next(self.client.request_next_problem(dict(JOURNEY_START)), "Failed to start journey")
            self.store.set({FIRST_TIME: True})
            self.view.first_time = False
        except (RuntimeError, OSError, ValueError) as e:
            logger.error("Start journey failed: %s", e)
            self.view.status = f"Error: {e}"
        return self.view

    def go_to_next(self, open_tab: OpenTab) -> bool:
        problem = self.view.next_problem
        if not problem or not problem.get("url"):
            return False
        open_tab(problem["url"])
        self.store.set({CURRENT_PROBLEM: problem})
        self.send_message({"action": "startTimer"})
        self.view.timer_running = True
        return True
