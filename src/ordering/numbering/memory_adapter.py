"""In-process per-day counters guarded by a lock."""

import threading
from collections import defaultdict

from ordering.numbering.port import OrderSequence


class InMemoryOrderSequence(OrderSequence):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, int] = defaultdict(int)

    def next_value(self, scope):
        with self._lock:
            self._counters[scope] += 1
            return self._counters[scope]
