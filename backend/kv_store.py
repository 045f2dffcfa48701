from __future__ import annotations

import datetime as dt
import logging
import os
import threading
import typing as t

from pymongo import MongoClient, ReplaceOne
from pymongo.collection import Collection
from pymongo.errors import ServerSelectionTimeoutError
from pymongo.server_api import ServerApi

logger = logging.getLogger(__name__)

COLLECTION_NAME = "extension_storage"

# Keys shared between the background timer, page contexts and the popup.
TIMER_STATE = "timerState"
CURRENT_PROBLEM = "currentProblem"
NEXT_PROBLEM = "nextProblem"
LAST_COMPLETION_TIME = "lastCompletionTime"
FIRST_TIME = "firstTime"

_client: MongoClient | None = None


def connect(uri: str | None = None, db_name: str | None = None, timeout_ms: int = 5000) -> t.Any:
    global _client
    uri = uri or os.getenv("MONGO_URI")
    db_name = db_name or os.getenv("MONGO_DB")

    if not uri:
        raise RuntimeError("MONGO_URI environment variable is not set")
    if not db_name:
        raise RuntimeError("MONGO_DB environment variable is not set")

    if _client is None:
        _client = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms, server_api=ServerApi("1"))
        try:
            _client.admin.command("ping")
        except ServerSelectionTimeoutError as exc:
            _client = None
            raise RuntimeError("Unable to connect to MongoDB") from exc
        logger.info("Connected to MongoDB database %s", db_name)

    return _client[db_name]


class KeyValueStore(t.Protocol):
    def get(self, key: str, default: t.Any = None) -> t.Any: ...

    def get_many(self, keys: t.Iterable[str]) -> dict[str, t.Any]: ...

    def set(self, items: t.Mapping[str, t.Any]) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Process-local store. Values are kept as given; callers store plain data."""

    def __init__(self, initial: t.Mapping[str, t.Any] | None = None) -> None:
        self._data: dict[str, t.Any] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str, default: t.Any = None) -> t.Any:
        with self._lock:
            return self._data.get(key, default)

    def get_many(self, keys: t.Iterable[str]) -> dict[str, t.Any]:
        with self._lock:
            return {k: self._data[k] for k in keys if k in self._data}

    def set(self, items: t.Mapping[str, t.Any]) -> None:
        with self._lock:
            self._data.update(items)

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class MongoKeyValueStore:
    """One document per key: ``{_id: key, value: ..., updatedAt: ...}``.

    A single key is written with one replace, so each value lands atomically.
    """

    def __init__(self, collection: Collection) -> None:
        self.collection = collection

    @classmethod
    def from_env(cls, uri: str | None = None, db_name: str | None = None) -> "MongoKeyValueStore":
        return cls(connect(uri, db_name)[COLLECTION_NAME])

    def get(self, key: str, default: t.Any = None) -> t.Any:
        doc = self.collection.find_one({"_id": key}, {"value": 1})
        if not doc:
            return default
        return doc.get("value", default)

    def get_many(self, keys: t.Iterable[str]) -> dict[str, t.Any]:
        docs = self.collection.find({"_id": {"$in": list(keys)}}, {"value": 1})
        return {doc["_id"]: doc.get("value") for doc in docs if "_id" in doc}

    def set(self, items: t.Mapping[str, t.Any]) -> None:
        if not items:
            return
        now = dt.datetime.now(dt.timezone.utc)
        ops = [
            ReplaceOne({"_id": key}, {"_id": key, "value": value, "updatedAt": now}, upsert=True)
            for key, value in items.items()
        ]
        self.collection.bulk_write(ops, ordered=True)

    def remove(self, key: str) -> None:
        self.collection.delete_one({"_id": key})
