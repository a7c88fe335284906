"""
Shared pytest fixtures for spine-delayed tests.

This module provides:
- A fakeredis-backed ``RedisStore`` (with Lua scripting, so the atomic
  pop/remove scripts run as they would on a real server)
- A controllable clock for ``Scheduler``
- A ``ResqueQueue`` on the same store, standing in for the downstream queue

Usage:
    def test_something(scheduler, ready_queue, clock):
        scheduler.enqueue_at(clock.now + 5, "jobs", "Job")
"""

import sys
from pathlib import Path

import fakeredis
import pytest

# Ensure spine_delayed is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from spine_delayed.queue import ResqueQueue
from spine_delayed.scheduling import Scheduler
from spine_delayed.store import RedisStore

NOW = 1_700_000_000
QUEUE_JOBS = "jobs"
JOB_CLASS = "Test_Job"


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = item.path.relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Store Fixtures
# =============================================================================


class FakeClock:
    """Callable clock returning a settable UNIX time."""

    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def redis_server():
    """One in-memory Redis server; every client built on it shares data."""
    return fakeredis.FakeServer()


@pytest.fixture
def client_factory(redis_server):
    def factory():
        return fakeredis.FakeRedis(server=redis_server, decode_responses=True)

    return factory


@pytest.fixture
def store(client_factory):
    store = RedisStore("redis://fake:6379/0", namespace="resque:", client_factory=client_factory)
    yield store
    store.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(store, clock):
    return Scheduler(store, clock=clock)


@pytest.fixture
def ready_queue(store):
    return ResqueQueue(store)
