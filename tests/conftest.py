"""
Shared fixtures: a fresh in-memory StateStore per test, an EventHub on top of
it, and a LifecycleEngine whose timers never fire unless a test asks for
short intervals.
"""
import random

import pytest
import pytest_asyncio

from database import create_session_factory
from core.event_hub import EventHub, SinkClosed
from core.match_engine import LifecycleEngine
from core.state_store import StateStore

# Long enough that no background timer fires during a unit test
IDLE_SECONDS = 3600


class RecordingSink:
    """Sink that keeps every delivered event in memory."""

    def __init__(self):
        self.events = []
        self.closed = False

    def send(self, event):
        if self.closed:
            raise SinkClosed("closed")
        self.events.append(event)

    def close(self):
        self.closed = True

    @property
    def types(self):
        return [event.type.value for event in self.events]


class FailingSink(RecordingSink):
    """Sink whose transport is gone."""

    def send(self, event):
        raise ConnectionResetError("client went away")


class ScriptedRandom(random.Random):
    """random.Random whose random() returns a fixed script of values."""

    def __init__(self, values):
        super().__init__(0)
        self._values = list(values)

    def random(self):
        return self._values.pop(0)


@pytest.fixture
def store():
    return StateStore(create_session_factory("sqlite://"))


@pytest.fixture
def hub(store):
    return EventHub(store)


@pytest_asyncio.fixture
async def engine(store, hub):
    engine = LifecycleEngine(
        store,
        hub,
        match_duration_seconds=IDLE_SECONDS,
        event_interval_min_seconds=IDLE_SECONDS,
        event_interval_max_seconds=IDLE_SECONDS,
        rng=random.Random(42),
    )
    yield engine
    await engine.shutdown()


@pytest_asyncio.fixture
async def fast_engine(store, hub):
    engine = LifecycleEngine(
        store,
        hub,
        match_duration_seconds=0.3,
        event_interval_min_seconds=0.01,
        event_interval_max_seconds=0.03,
        rng=random.Random(7),
    )
    yield engine
    await engine.shutdown()
