"""
Shared test fixtures and helpers for the Kestrel test suite.
"""

import pytest

from kestrel.sessions import BackendSession, MemoryBackend


class FakeClock:
    """Controllable epoch-seconds clock."""

    def __init__(self, now: int = 1_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend(clock):
    return MemoryBackend(clock=clock)


@pytest.fixture
def make_session(backend, clock):
    """Factory for sessions bound to the shared memory backend."""

    def factory(name="app", options=None, id_expiration_interval=None, session_id=None):
        session = BackendSession(
            backend,
            name=name,
            options=options,
            id_expiration_interval=id_expiration_interval,
            clock=clock,
        )
        session.id = session_id
        return session

    return factory


@pytest.fixture
def seed_record(backend):
    """Store raw data under a fresh id and return the id."""

    def seed(data, name="app"):
        session_id = backend.open(name, None, {})
        backend.data.update(data)
        backend.close()
        return session_id

    return seed
