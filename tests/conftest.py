"""Shared pytest fixtures."""

import os
import tempfile
from typing import Generator

import pytest
import yaml

from diskmonitor.core.bus import LocalBus
from diskmonitor.core.scheduler import Scheduler, SchedulerState


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingProber:
    """Prober that records calls and optionally posts canned results."""

    def __init__(self, post=None, results=()):
        self.calls = 0
        self.post = post
        self.results = list(results)

    def check_disk_space_usage(self):
        self.calls += 1
        if self.post is not None:
            for result in self.results:
                self.post(result)


class RecordingHeartbeat:
    """Heartbeat that only records schedule requests."""

    def __init__(self):
        self.requests = []

    def schedule_wakeup(self, request):
        self.requests.append(request)

    def cancel(self):
        pass


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def prober() -> RecordingProber:
    return RecordingProber()


@pytest.fixture
def heartbeat() -> RecordingHeartbeat:
    return RecordingHeartbeat()


@pytest.fixture
def state() -> SchedulerState:
    return SchedulerState()


@pytest.fixture
def scheduler(state, prober, heartbeat, clock) -> Scheduler:
    return Scheduler(state, prober, heartbeat, clock=clock)


@pytest.fixture
def bus() -> LocalBus:
    bus = LocalBus()
    bus.connect()
    return bus


@pytest.fixture
def temp_config_file() -> Generator[str, None, None]:
    """Create a temporary config file for testing."""
    config = {
        "prober": {
            "default_max_usage_percent": 80,
            "mounts": [{"path": "/", "max_usage_percent": 85}],
        },
        "heartbeat": {"slot_seconds": 0},
        "notifications": [{"type": "console", "enabled": True}],
        "logging": {"level": "warning", "file": "stdout"},
    }

    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(config, f)
        config_path = f.name

    yield config_path

    # Cleanup
    os.unlink(config_path)
