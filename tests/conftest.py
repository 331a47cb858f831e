"""Shared fixtures: a controllable clock for TTL and follow-up tests."""

from datetime import datetime, timedelta, timezone

import pytest


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 5, 1, 12, 0, 30, tzinfo=timezone.utc))
