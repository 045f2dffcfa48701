from __future__ import annotations

import threading
import time
import typing as t


class FixedWindowLimiter:
    """Counts requests per key in fixed windows of ``window_s`` seconds."""

    def __init__(self, max_requests: int, window_s: float, clock: t.Callable[[], float] = time.monotonic) -> None:
        self.max_requests = max_requests
        self.window_s = window_s
        self.clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        """Record one request. Returns False when the key is over its budget."""
        now = self.clock()
        with self._lock:
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_s:
                started, count = now, 0
            count += 1
            self._windows[key] = (started, count)
            return count <= self.max_requests

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
