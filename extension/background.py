from __future__ import annotations

import dataclasses
import logging

from backend.kv_store import KeyValueStore, MongoKeyValueStore
from extension.detector import CompletionSession, Document, SuggestionClient, on_page_load
from extension.popup import PopupController
from extension.timer import TimerStateMachine
from set_env_vars import Settings

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class Background:
    """The long-lived extension context: one store, one timer, one client."""

    store: KeyValueStore
    timer: TimerStateMachine
    client: SuggestionClient

    def page_loaded(self, document: Document, url: str) -> CompletionSession:
        return on_page_load(document, url, self.timer.handle_message, self.client, self.store, clock=self.timer.clock)

    def popup(self) -> PopupController:
        return PopupController(self.store, self.timer.handle_message, self.client, clock=self.timer.clock)


def create_background(settings: Settings, store: KeyValueStore | None = None) -> Background:
    if store is None:
        store = MongoKeyValueStore.from_env(settings.mongo_uri, settings.mongo_db)
    timer = TimerStateMachine(store)
    timer.rehydrate()
    logger.info("Background ready, posting completions to %s", settings.suggestion_endpoint)
    return Background(store=store, timer=timer, client=SuggestionClient(settings.suggestion_endpoint))
