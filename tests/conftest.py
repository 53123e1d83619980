"""
Pytest configuration for counter walk tests.

Puts src/ on sys.path so the tests run against the working tree, and
provides a deterministic clock plus an in-memory log sink.
"""

import sys
from pathlib import Path

import pytest

_src_root = Path(__file__).parent.parent / "src"
if str(_src_root) not in sys.path:
    sys.path.insert(0, str(_src_root))

from counter_walk.utils.logger import Logger, MemoryStrategy


class FakeClock:
    """Callable time source that only moves when told to."""

    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def memory_log():
    """Route Logger output into memory for the duration of a test."""
    storage = MemoryStrategy()
    Logger.reset()
    Logger.set_log_storage_strategy(storage)
    yield storage
    Logger.reset()


@pytest.fixture(autouse=True)
def _detach_logger(monkeypatch, tmp_path):
    """Keep tests from writing to the default log file."""
    monkeypatch.setenv("COUNTER_WALK_LOG_PATH", str(tmp_path / "counter_walk_logs.txt"))
    yield
    Logger.reset()
