"""Shared fixtures: a fresh in-memory store and a controllable clock per test."""

from datetime import datetime, timedelta, timezone

import pytest

from planbuddy.adapters.memory_store import InMemoryRecordStore
from planbuddy.repository import TaskRepository


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def now():
    return datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now):
    return FakeClock(now)


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def repo(store, clock):
    return TaskRepository(store, clock=clock)
