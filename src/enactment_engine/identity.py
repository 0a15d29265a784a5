"""Process-wide invocation identifiers."""
from __future__ import annotations

import itertools
import threading


class InvocationCounter:
    """Strictly increasing id source shared by every node of the process.

    The lock belongs to the counter, so ids stay unique no matter which node,
    task or thread draws them.
    """

    def __init__(self, start: int = 0) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(start)

    def next_id(self) -> int:
        with self._lock:
            return next(self._ids)


INVOCATION_COUNTER = InvocationCounter()
