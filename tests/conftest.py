import os
import tempfile

# must be set before repairhub.database builds its engine
os.environ.setdefault("DATABASE_URL", f"sqlite:///{tempfile.mkdtemp()}/repairhub_test.db")

import pytest

from repairhub.database import Base, SessionLocal, engine
from repairhub.intake.channel import InMemoryChannel
from repairhub.rates import seed_settings


@pytest.fixture
def db():
    from repairhub import models  # noqa: F401
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    seed_settings(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def channel():
    return InMemoryChannel()


class Recorder:
    """Subscribes to a topic and keeps every message it sees."""

    def __init__(self, channel, topic):
        self.messages = []
        self.unsubscribe = channel.subscribe(topic, self.messages.append)

    @property
    def types(self):
        return [m["type"] for m in self.messages]

    def last(self):
        return self.messages[-1]


@pytest.fixture
def record(channel):
    def _record(topic):
        return Recorder(channel, topic)
    return _record


class FakeTimers:
    """Stand-in for loop.call_later; fire() runs everything that is due."""

    def __init__(self):
        self.pending = []

    def __call__(self, delay, callback):
        timer = _Timer(delay, callback)
        self.pending.append(timer)
        return timer

    def fire(self):
        due, self.pending = self.pending, []
        for t in due:
            if not t.cancelled:
                t.callback()


class _Timer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


@pytest.fixture
def timers():
    return FakeTimers()
