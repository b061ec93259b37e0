"""Shared fixtures."""
import pytest
import numpy as np

from geoveil.shared.events import RecordingEventSink

MASTER_KEY = "test-master-key"


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def master_key():
    return MASTER_KEY


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def events():
    return RecordingEventSink()
