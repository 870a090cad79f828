"""Monotonic integer identifiers."""

import threading


class IdSequence:
    """Hands out 1, 2, 3, ... and never repeats within a process."""

    def __init__(self, start: int = 1):
        self._next = start
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            return value

    def peek(self) -> int:
        """The id the next call to next() will return."""
        with self._lock:
            return self._next
