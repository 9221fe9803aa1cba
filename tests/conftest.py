"""Shared fixtures."""

from datetime import date

import pytest

from duecycle.engine.service import ObligationService
from duecycle.storage.sqlite import SQLiteStorage


class FakeClock:
    """Controllable stand-in for date.today."""

    def __init__(self, today: date):
        self.current = today

    def __call__(self) -> date:
        return self.current

    def set(self, today: date) -> None:
        self.current = today


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(date(2025, 1, 1))


@pytest.fixture
def storage():
    store = SQLiteStorage(":memory:")
    yield store
    store.close()


@pytest.fixture
def service(storage: SQLiteStorage, clock: FakeClock) -> ObligationService:
    return ObligationService(storage, today=clock)
