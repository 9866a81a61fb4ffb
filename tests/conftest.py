"""
Shared fixtures: a controllable clock and fresh in-memory services.
"""

import pytest
from datetime import datetime, timedelta

from krishibondhu.clock import Clock
from krishibondhu.events import EventDispatcher
from krishibondhu.storage import InMemoryStore


class FixedClock(Clock):
    """Clock that only moves when told to"""

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 5, 20, 9, 30))


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def events():
    return EventDispatcher()
