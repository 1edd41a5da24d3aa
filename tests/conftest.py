# tests/conftest.py
import pytest

from syncwatch.observer import SyncObserver
from syncwatch.services.event_store import EventStore

START_MS = 1_700_000_000_000


class FakeClock:
    """Controllable epoch-ms clock"""

    def __init__(self, start_ms: int = START_MS):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    s = EventStore(f"sqlite:///{tmp_path / 'syncwatch.db'}").init()
    yield s
    s.close()


@pytest.fixture
def unready_store():
    # never initialized: every call raises StoreNotReady
    return EventStore("sqlite://")


@pytest.fixture
def observer(store, clock):
    """Observer with inline writes (not started) and no tick-time recalculation"""
    obs = SyncObserver(store, clock=clock, recalc_on_tick=False)
    yield obs
    obs.stop()


def ok_event(**overrides):
    event = {
        "operation": "update_listing",
        "httpMethod": "PUT",
        "endpointPath": "/v3/application/listings/1",
        "statusCode": 200,
        "durationMs": 100,
    }
    event.update(overrides)
    return event
