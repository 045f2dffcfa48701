import unittest
import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from ai_util.errors import ValidationError
from backend.kv_store import TIMER_STATE, MemoryKeyValueStore
from extension.timer import TimerPhase, TimerState, TimerStateMachine


class FakeClock:
    def __init__(self, now=1_700_000_000_000):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class TestTimerStateMachine(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.store = MemoryKeyValueStore()
        self.timer = TimerStateMachine(self.store, clock=self.clock)

    def test_start_then_query(self):
        self.timer.start()
        self.assertEqual(self.timer.query().elapsed, 0)
        self.assertEqual(self.timer.phase, TimerPhase.RUNNING)

    def test_start_wait_stop(self):
        self.timer.start()
        self.clock.advance(2000)
        state = self.timer.stop()

        self.assertFalse(state.is_running)
        self.assertIsNone(state.start_time)
        self.assertGreaterEqual(state.elapsed, 2000)
        self.assertLess(state.elapsed, 2100)
        self.assertEqual(self.timer.phase, TimerPhase.STOPPED)

    def test_stop_when_not_running_is_noop(self):
        before = self.timer.state
        after = self.timer.stop()

        self.assertEqual(before, after)
        self.assertIsNone(self.store.get(TIMER_STATE))
        self.assertEqual(self.timer.phase, TimerPhase.IDLE)

    def test_start_from_stopped_zeroes_elapsed(self):
        self.timer.start()
        self.clock.advance(5000)
        self.timer.stop()
        self.clock.advance(1000)
        state = self.timer.start()

        self.assertEqual(state.elapsed, 0)
        self.assertEqual(state.start_time, self.clock.now)

    def test_reset(self):
        self.timer.start()
        self.clock.advance(1000)
        state = self.timer.reset()

        self.assertEqual(state, TimerState())
        self.assertEqual(self.timer.phase, TimerPhase.IDLE)
        self.assertFalse(self.store.get(TIMER_STATE)["isRunning"])

    def test_transitions_are_persisted(self):
        self.timer.start()
        stored = self.store.get(TIMER_STATE)
        self.assertEqual(stored["isRunning"], True)
        self.assertEqual(stored["startTime"], self.clock.now)
        self.assertEqual(stored["elapsed"], 0)

        self.clock.advance(3000)
        self.timer.stop()
        stored = self.store.get(TIMER_STATE)
        self.assertEqual(stored["isRunning"], False)
        self.assertEqual(stored["elapsed"], 3000)

    def test_query_does_not_write(self):
        self.timer.start()
        stored = dict(self.store.get(TIMER_STATE))
        self.clock.advance(4000)

        self.assertEqual(self.timer.query().elapsed, 4000)
        self.assertEqual(self.store.get(TIMER_STATE), stored)
        self.assertEqual(self.timer.state.elapsed, 0)

    def test_query_is_monotonic(self):
        self.timer.start()
        self.clock.advance(10)
        first = self.timer.query().elapsed
        second = self.timer.query().elapsed
        self.clock.advance(1)
        third = self.timer.query().elapsed

        self.assertGreaterEqual(first, 0)
        self.assertLessEqual(first, second)
        self.assertLessEqual(second, third)

    def test_rehydrate_counts_downtime(self):
        saved_at = self.clock.now
        self.store.set({TIMER_STATE: {
            "isRunning": True,
            "startTime": saved_at - 5000,
            "elapsed": 5000,
            "savedAt": saved_at,
        }})
        self.clock.advance(3000)

        restarted = TimerStateMachine(self.store, clock=self.clock)
        restarted.rehydrate()

        self.assertEqual(restarted.phase, TimerPhase.RUNNING)
        self.assertEqual(restarted.query().elapsed, 8000)

    def test_rehydrate_without_saved_at(self):
        self.store.set({TIMER_STATE: {"isRunning": True, "startTime": 1, "elapsed": 5000}})

        restarted = TimerStateMachine(self.store, clock=self.clock)
        state = restarted.rehydrate()

        self.assertEqual(state.start_time, self.clock.now - 5000)
        self.clock.advance(3000)
        self.assertEqual(restarted.query().elapsed, 8000)

    def test_rehydrate_document_without_start_time(self):
        self.store.set({TIMER_STATE: {"isRunning": True, "elapsed": 5000}})

        restarted = TimerStateMachine(self.store, clock=self.clock)
        state = restarted.rehydrate()

        self.assertTrue(state.is_running)
        self.assertEqual(state.start_time, self.clock.now - 5000)

    def test_rehydrate_document_without_start_time_counts_downtime(self):
        self.store.set({TIMER_STATE: {"isRunning": True, "elapsed": 5000, "savedAt": self.clock.now}})
        self.clock.advance(3000)

        restarted = TimerStateMachine(self.store, clock=self.clock)
        restarted.rehydrate()

        self.assertEqual(restarted.query().elapsed, 8000)

    def test_rehydrate_stopped_state_stays_idle(self):
        self.store.set({TIMER_STATE: {"isRunning": False, "startTime": None, "elapsed": 5000}})

        restarted = TimerStateMachine(self.store, clock=self.clock)

        self.assertEqual(restarted.rehydrate(), TimerState())
        self.assertEqual(restarted.phase, TimerPhase.IDLE)

    def test_install_clears_storage(self):
        self.timer.start()
        self.timer.install()

        self.assertIn(TIMER_STATE, self.store.get_many([TIMER_STATE]))
        self.assertIsNone(self.store.get(TIMER_STATE))
        self.assertEqual(self.timer.rehydrate(), TimerState())

    def test_running_state_requires_start_time(self):
        with self.assertRaises(ValueError):
            TimerState(is_running=True, start_time=None)


class TestTimerMessages(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.timer = TimerStateMachine(MemoryKeyValueStore(), clock=self.clock)

    def test_message_round_trip(self):
        reply = self.timer.handle_message({"action": "startTimer"})
        self.assertEqual(reply["status"], "Timer started")
        self.assertTrue(reply["timerState"]["isRunning"])

        self.clock.advance(60_000)
        reply = self.timer.handle_message({"action": "getTimerState"})
        self.assertNotIn("status", reply)
        self.assertEqual(reply["timerState"]["elapsed"], 60_000)

        reply = self.timer.handle_message({"action": "stopTimer"})
        self.assertEqual(reply["status"], "Timer stopped")
        self.assertEqual(reply["timerState"], {"isRunning": False, "startTime": None, "elapsed": 60_000})

        reply = self.timer.handle_message({"action": "resetTimer"})
        self.assertEqual(reply["status"], "Timer reset")
        self.assertEqual(reply["timerState"]["elapsed"], 0)

    def test_stop_message_when_idle(self):
        reply = self.timer.handle_message({"action": "stopTimer"})
        self.assertEqual(reply, {"timerState": {"isRunning": False, "startTime": None, "elapsed": 0}})

    def test_unknown_action(self):
        with self.assertRaises(ValidationError):
            self.timer.handle_message({"action": "pauseTimer"})


if __name__ == "__main__":
    unittest.main()
