import unittest
from unittest.mock import MagicMock, patch
import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from pymongo import ReplaceOne

from backend import kv_store
from backend.kv_store import TIMER_STATE, MemoryKeyValueStore, MongoKeyValueStore
from backend.rate_limit import FixedWindowLimiter


class TestMemoryKeyValueStore(unittest.TestCase):
    def test_get_set_remove(self):
        store = MemoryKeyValueStore({"firstTime": True})
        store.set({"a": 1, "b": {"x": 2}})

        self.assertEqual(store.get("a"), 1)
        self.assertEqual(store.get("missing", "default"), "default")
        self.assertEqual(store.get_many(["a", "firstTime", "missing"]), {"a": 1, "firstTime": True})

        store.remove("a")
        store.remove("never-set")
        self.assertIsNone(store.get("a"))


class TestMongoKeyValueStore(unittest.TestCase):
    def setUp(self):
        self.collection = MagicMock()
        self.store = MongoKeyValueStore(self.collection)

    def test_set_replaces_one_document_per_key(self):
        self.store.set({TIMER_STATE: {"isRunning": True, "startTime": 10, "elapsed": 0}})

        self.collection.bulk_write.assert_called_once()
        ops = self.collection.bulk_write.call_args[0][0]
        self.assertEqual(len(ops), 1)
        self.assertIsInstance(ops[0], ReplaceOne)

    def test_set_nothing(self):
        self.store.set({})
        self.collection.bulk_write.assert_not_called()

    def test_get(self):
        self.collection.find_one.return_value = {"_id": TIMER_STATE, "value": {"isRunning": False}}

        self.assertEqual(self.store.get(TIMER_STATE), {"isRunning": False})
        self.collection.find_one.assert_called_once_with({"_id": TIMER_STATE}, {"value": 1})

    def test_get_missing(self):
        self.collection.find_one.return_value = None
        self.assertEqual(self.store.get("nextProblem", {}), {})

    def test_get_many(self):
        self.collection.find.return_value = [
            {"_id": "firstTime", "value": True},
            {"_id": "currentProblem", "value": {"title": "Two Sum"}},
        ]

        data = self.store.get_many(["firstTime", "currentProblem", "timerState"])

        self.assertEqual(data, {"firstTime": True, "currentProblem": {"title": "Two Sum"}})

    def test_remove(self):
        self.store.remove("nextProblem")
        self.collection.delete_one.assert_called_once_with({"_id": "nextProblem"})


class TestConnect(unittest.TestCase):
    def tearDown(self):
        kv_store._client = None

    def test_requires_uri(self):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(RuntimeError):
                kv_store.connect()

    @patch("backend.kv_store.MongoClient")
    def test_connect_pings_once(self, mock_client_cls):
        client = mock_client_cls.return_value

        db = kv_store.connect(uri="mongodb://localhost", db_name="coach")
        kv_store.connect(uri="mongodb://localhost", db_name="coach")

        mock_client_cls.assert_called_once()
        client.admin.command.assert_called_once_with("ping")
        self.assertIs(db, client.__getitem__.return_value)


class TestFixedWindowLimiter(unittest.TestCase):
    def test_window(self):
        now = [0.0]
        limiter = FixedWindowLimiter(2, 60, clock=lambda: now[0])

        self.assertTrue(limiter.hit("1.2.3.4"))
        self.assertTrue(limiter.hit("1.2.3.4"))
        self.assertFalse(limiter.hit("1.2.3.4"))
        self.assertTrue(limiter.hit("5.6.7.8"))

        now[0] = 60.0
        self.assertTrue(limiter.hit("1.2.3.4"))

    def test_reset(self):
        limiter = FixedWindowLimiter(1, 60)
        limiter.hit("a")
        limiter.reset()
        self.assertTrue(limiter.hit("a"))


if __name__ == "__main__":
    unittest.main()
