"""
Clock port and timestamp-derived identifiers.
"""

from abc import ABC, abstractmethod
from datetime import datetime, date
import threading


class Clock(ABC):
    """Source of the current time"""

    @abstractmethod
    def now(self) -> datetime:
        pass

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Local wall-clock time (calendar days follow the user's timezone)"""

    def now(self) -> datetime:
        return datetime.now()


class TimestampIdFactory:
    """
    Generates ids from the clock's epoch milliseconds.

    Ids are strictly increasing within a process, so sorting ids as integers
    sorts records by creation time even when two are created in the same
    millisecond.
    """

    def __init__(self, clock: Clock):
        self.clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            candidate = int(self.clock.now().timestamp() * 1000)
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return str(candidate)

    def observe(self, existing_id: str) -> None:
        """Make sure future ids sort after an id loaded from storage"""
        try:
            value = int(existing_id)
        except (TypeError, ValueError):
            return
        with self._lock:
            self._last = max(self._last, value)
