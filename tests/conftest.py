import os
import sys
from datetime import datetime

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from flowday.database import Database  # noqa: E402


class FakeScheduler:
    """Manually advanced timer source."""

    def __init__(self) -> None:
        self.now = 0
        self._timers = {}
        self._next_handle = 1

    def schedule(self, delay_ms, callback):
        handle = self._next_handle
        self._next_handle += 1
        self._timers[handle] = (self.now + delay_ms, callback)
        return handle

    def cancel(self, handle) -> None:
        self._timers.pop(handle, None)

    @property
    def pending(self) -> int:
        return len(self._timers)

    def advance(self, ms: int) -> None:
        target = self.now + ms
        while True:
            due = sorted((when, handle) for handle, (when, _) in self._timers.items() if when <= target)
            if not due:
                break
            when, handle = due[0]
            self.now = when
            _, callback = self._timers.pop(handle)
            callback()
        self.now = target


def fixed_clock() -> datetime:
    return datetime(2026, 1, 5, 9, 30)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "flowday.db")
    yield database
    database.close()
