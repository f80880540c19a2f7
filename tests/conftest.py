"""
Shared pytest fixtures for the punctuality tracker tests

Provides:
- make_call: EstimatedCall builder with sensible defaults
- MemoryIO: in-memory document store with versioned, conditional puts
- FakeEntur: data source returning canned StopFetch results or errors
"""

from datetime import datetime, timedelta, timezone

import pytest

from errors import FetchError, StoreConflict
from models import EstimatedCall, StopFetch

AIMED = datetime(2026, 2, 9, 8, 0, tzinfo=timezone(timedelta(hours=1)))


def make_call(delay_seconds=0, realtime=True, cancelled=False, mode='bus'):
    return EstimatedCall(
        realtime=realtime,
        cancelled=cancelled,
        aimed_time=AIMED,
        expected_time=AIMED + timedelta(seconds=delay_seconds),
        mode=mode,
    )


class MemoryIO:
    """Document store held in memory. Versions are increasing integers as strings."""

    def __init__(self, data=None):
        self.data = data
        self.version = '1' if data is not None else None
        self.puts = 0

    def get_document(self):
        return self.data, self.version

    def head_version(self):
        return self.version

    def put_document(self, data, version):
        if version != self.version:
            raise StoreConflict(f'stale version {version}, store at {self.version}')
        self.puts += 1
        self.data = data
        self.version = str(int(self.version or 0) + 1)
        return self.version

    def external_write(self, data):
        """Simulate another writer committing."""
        self.data = data
        self.version = str(int(self.version or 0) + 1)


class FakeEntur:
    def __init__(self, responses):
        self.responses = responses
        self.requested = []

    def get_stop_place(self, stop_id):
        self.requested.append(stop_id)
        result = self.responses.get(stop_id, [])
        if isinstance(result, Exception):
            raise result
        return StopFetch(stop_id=stop_id, calls=list(result))


@pytest.fixture
def memory_io():
    return MemoryIO()


@pytest.fixture
def stops():
    return {
        'NSR:StopPlace:1': {'name': 'First', 'area': 'Sentrum', 'lat': 59.91, 'lon': 10.75},
        'NSR:StopPlace:2': {'name': 'Second', 'area': 'Sentrum', 'lat': 59.92, 'lon': 10.73},
        'NSR:StopPlace:3': {'name': 'Third', 'area': 'Frogner', 'lat': 59.93, 'lon': 10.71},
    }


def fetch_error(stop_id, reason='HTTP 503'):
    return FetchError(stop_id, reason)
