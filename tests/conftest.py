"""Shared fixtures: an in-memory status store and a controllable clock."""

import json
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import pytest

from specwright.lib.types import ProjectStatus
from specwright.lib.validate import validate_status
from specwright.status.store import StatusWriteError


class InMemoryStatusStore:
    """StatusStore that keeps serialized records in a dict.

    Records round-trip through to_dict()/from_dict() so callers never share
    objects with the store, matching the file-backed store.
    """

    def __init__(self):
        self.records: dict[str, dict] = {}
        self.write_count = 0
        self.fail_writes = False
        self._lock = threading.Lock()

    def read(self, project_id):
        data = self.records.get(project_id)
        if data is None:
            return None
        return ProjectStatus.from_dict(_copy(data), project_id=project_id)

    def write(self, project_id, status):
        if not status.last_updated_at:
            raise StatusWriteError(project_id, "lastUpdatedAt must be set by the caller")
        if self.fail_writes:
            raise StatusWriteError(project_id, "disk full")
        data = status.to_dict()
        validate_status(data)
        self.records[project_id] = _copy(data)
        self.write_count += 1

    @contextmanager
    def lock(self, project_id):
        # Non-reentrant like flock: nested acquisition fails instead of hanging.
        if not self._lock.acquire(timeout=2):
            raise AssertionError(f"lock for {project_id} re-entered or never released")
        try:
            yield
        finally:
            self._lock.release()


def _copy(data):
    return json.loads(json.dumps(data))


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=None, step=timedelta(0)):
        self.current = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        moment = self.current
        self.current = self.current + self.step
        return moment

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


@pytest.fixture
def store():
    return InMemoryStatusStore()


@pytest.fixture
def clock():
    """Frozen clock: every call returns the same instant until advanced."""
    return FakeClock()


@pytest.fixture
def ticking_clock():
    """Clock that moves forward one second per call."""
    return FakeClock(step=timedelta(seconds=1))


@pytest.fixture
def store_factory():
    return InMemoryStatusStore
