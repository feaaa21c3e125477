"""
Shared fixtures: an in-memory result store and helpers to fill it.
"""
import itertools
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from src.speedtest_api.database import ResultStore, SpeedTestResult
from src.speedtest_api.oracle import Clock
from src.speedtest_api.time_utils import submission_minute

BASE_TIME = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


class TickingClock(Clock):
    """Trusted clock stand-in that moves forward one second per call."""

    def __init__(self, start: datetime = BASE_TIME):
        self.current = start

    def now(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def clock():
    """Trusted clock starting at BASE_TIME."""
    return TickingClock(BASE_TIME)


@pytest.fixture
def store():
    """Fresh in-memory store with the schema created."""
    s = ResultStore.from_url("sqlite://")
    s.create_schema()
    yield s
    s.close()


@pytest.fixture
def make_result(store):
    """
    Insert a result directly into the store.

    Each call is one minute later than the previous one unless a timestamp
    is given, so insertion order is also timestamp order.
    """
    counter = itertools.count(1)

    def _make(**overrides):
        n = next(counter)
        ts = overrides.pop("timestamp", BASE_TIME + timedelta(minutes=n))
        fields = {
            "submission_id": str(uuid.uuid4()),
            "location": "Tokyo, Tokyo, Japan",
            "city": "Tokyo",
            "country": "Japan",
            "download_speed": 100.0,
            "upload_speed": 20.0,
            "ping": 12.0,
            "timestamp": ts,
            "submission_minute": submission_minute(ts),
            "address": "0xabc",
            "latitude": None,
            "longitude": None,
        }
        fields.update(overrides)
        return store.insert(SpeedTestResult(**fields))

    return _make
