from __future__ import annotations

import dataclasses
import json
import logging
import typing as t
import urllib.error
import urllib.request

from bs4 import BeautifulSoup

from backend.kv_store import CURRENT_PROBLEM, LAST_COMPLETION_TIME, NEXT_PROBLEM, KeyValueStore
from extension.timer import STATUS_STOPPED, Clock, epoch_ms

JsonDict = dict[str, t.Any]
Document = t.Union[str, BeautifulSoup]
SendMessage = t.Callable[[JsonDict], JsonDict]

COMPLETION_MARKER = "Accepted"
TITLE_SELECTOR = '[data-cy="question-title"]'
DIFFICULTY_SELECTOR = "[diff]"
TOPICS_SELECTOR = '[class*="topics-"]'
SUCCESS_SELECTOR = '[class*="success"]'
RESTART_GUARD_MS = 1000

logger = logging.getLogger(__name__)


def as_soup(document: Document) -> BeautifulSoup:
    if isinstance(document, BeautifulSoup):
        return document
    return BeautifulSoup(document or "", "html.parser")


@dataclasses.dataclass(frozen=True)
class ProblemDetails:
    title: str
    difficulty: str
    topics: tuple[str, ...]
    url: str

    @property
    def primary_topic(self) -> str:
        return self.topics[0] if self.topics else "general"

    def to_dict(self) -> JsonDict:
        return {
            "title": self.title,
            "difficulty": self.difficulty,
            "topics": list(self.topics),
            "url": self.url,
        }

    @staticmethod
    def from_dict(data: JsonDict) -> "ProblemDetails":
        return ProblemDetails(
            title=str(data.get("title") or ""),
            difficulty=str(data.get("difficulty") or ""),
            topics=tuple(data.get("topics") or ()),
            url=str(data.get("url") or ""),
        )


def extract_problem_details(document: Document, url: str = "") -> ProblemDetails:
    soup = as_soup(document)
    title_el = soup.select_one(TITLE_SELECTOR)
    difficulty_el = soup.select_one(DIFFICULTY_SELECTOR)
    topics_el = soup.select_one(TOPICS_SELECTOR)

    topics: list[str] = []
    if topics_el is not None:
        topics = [a.get_text().strip() for a in topics_el.select("a")]

    return ProblemDetails(
        title=title_el.get_text().strip() if title_el is not None else "",
        difficulty=difficulty_el.get_text().strip().lower() if difficulty_el is not None else "",
        topics=tuple(topics),
        url=url,
    )


def is_problem_completed(document: Document) -> bool:
    soup = as_soup(document)
    return any(COMPLETION_MARKER in el.get_text() for el in soup.select(SUCCESS_SELECTOR))


class SuggestionClient:
    """Posts completion data to the next-problem endpoint."""

    def __init__(self, endpoint: str, timeout_s: float = 20.0) -> None:
        self.endpoint = endpoint
        self.timeout_s = timeout_s

    def request_next_problem(self, payload: JsonDict) -> JsonDict:
        req = urllib.request.Request(
            self.endpoint,
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_s) as resp:
                raw = resp.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            # Error replies still carry a {success, error} body.
            raw = e.read().decode("utf-8")
        return t.cast(JsonDict, json.loads(raw))


def completion_payload(details: ProblemDetails, elapsed_ms: int) -> JsonDict:
    return {
        "last_problem": details.title,
        "difficulty": details.difficulty,
        "time_taken": int(elapsed_ms // 1000 // 60),
        "topic": details.primary_topic,
    }


class CompletionSession:
    """One observation session over a page, from load to first completion.

    ``observe`` pulls mutation batches lazily and stops at the first batch
    that shows the completion marker. The handler runs at most once.
    """

    def __init__(
        self,
        details: ProblemDetails,
        send_message: SendMessage,
        client: SuggestionClient,
        store: KeyValueStore,
        clock: Clock = epoch_ms,
    ) -> None:
        self.details = details
        self.send_message = send_message
        self.client = client
        self.store = store
        self.clock = clock
        self.closed = False
        self.result: JsonDict | None = None

    def observe(self, batches: t.Iterable[Document]) -> bool:
        if self.closed:
            return False
        for batch in batches:
            if is_problem_completed(batch):
                self.closed = True
                self.handle_completion()
                return True
        return False

    def disconnect(self) -> None:
        self.closed = True

    def handle_completion(self) -> JsonDict | None:
        reply = self.send_message({"action": "stopTimer"}) or {}
        timer_state = reply.get("timerState")
        if reply.get("status") != STATUS_STOPPED or not timer_state:
            # The timer was not running, so there is no time to report.
            return None

        payload = completion_payload(self.details, int(timer_state.get("elapsed") or 0))
        try:
            data = self.client.request_next_problem(payload)
        except (OSError, ValueError) as e:
            logger.error("Error sending completion data: %s", e)
            return None

        self.result = data
        if data.get("success"):
            self.store.set({
                NEXT_PROBLEM: data.get("problem"),
                LAST_COMPLETION_TIME: self.clock(),
            })
        else:
            logger.warning("Suggestion request failed: %s", data.get("error"))
        return data


def on_page_load(
    document: Document,
    url: str,
    send_message: SendMessage,
    client: SuggestionClient,
    store: KeyValueStore,
    clock: Clock = epoch_ms,
) -> CompletionSession:
    """Snapshot the problem, start timing a new problem, and open a session."""
    details = extract_problem_details(document, url)
    store.set({CURRENT_PROBLEM: details.to_dict()})

    last_completion = store.get(LAST_COMPLETION_TIME) or 0
    if clock() - int(last_completion) > RESTART_GUARD_MS:
        send_message({"action": "startTimer"})

    return CompletionSession(details, send_message, client, store, clock=clock)
