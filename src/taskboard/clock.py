"""Timestamp and identifier sources owned by the task store."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """UTC wall clock that never goes backwards."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last: datetime | None = None

    def now(self) -> datetime:
        current = datetime.now(tz=UTC)
        with self._lock:
            # Wall clock adjustments must not reorder task dates.
            if self._last is not None and current < self._last:
                current = self._last
            self._last = current
        return current


class IdSequence:
    """Monotonic integer counter rendered as string ids.

    Not thread-safe on its own; the store only touches it under its lock.
    """

    def __init__(self, last: int = -1) -> None:
        self._last = last

    @property
    def last(self) -> str:
        return str(self._last)

    def peek(self) -> str:
        return str(self._last + 1)

    def advance(self) -> str:
        self._last += 1
        return str(self._last)
