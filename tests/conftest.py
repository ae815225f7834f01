"""
Shared pytest configuration.

Every test gets a fresh in-memory store and a clock it can move by hand.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

import main
from dependencies import Services
from storage import MemoryStorage

MONDAY = date(2026, 10, 19)


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def services(storage, clock):
    return Services(storage, clock=clock)


@pytest.fixture
def make_match(services):
    def _make(match_date=MONDAY, time_slot="lunch", capacity=4, **kwargs):
        return services.schedule.create_match(
            match_date=match_date, time_slot=time_slot, capacity=capacity, **kwargs
        )
    return _make


@pytest.fixture
def make_user(services):
    def _make(name, team=None):
        return services.identity.resolve_user(name, team)
    return _make


@pytest.fixture
def client(services):
    previous = main.app.state.services
    main.app.state.services = services
    yield TestClient(main.app)
    main.app.state.services = previous
