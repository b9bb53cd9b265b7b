"""
Shared pytest fixtures and configuration for all tests.
"""
import logging
import os

import pytest
from hypothesis import HealthCheck, Phase, Verbosity, settings

from sqlite_sessions.session.sqlite_store import SQLiteSessionStore

# Property tests open a fresh in-memory database per example, so the
# per-example deadline is off and the "too slow" health check is muted.
_STORE_PROFILE = dict(deadline=None, print_blob=True, suppress_health_check=[HealthCheck.too_slow])

settings.register_profile("default", max_examples=50, **_STORE_PROFILE)
settings.register_profile(
    "ci", max_examples=200, verbosity=Verbosity.verbose, derandomize=True, **_STORE_PROFILE
)
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],
    **_STORE_PROFILE,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))

START = 1_700_000_000_000


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now: int = START):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock):
    """In-memory store on a fake clock, background GC disabled."""
    store = SQLiteSessionStore(filename=":memory:", clock=clock, gc_interval=0)
    yield store
    store.close()


@pytest.fixture
def file_store(tmp_path, clock):
    """File-backed store in a temporary directory, background GC disabled."""
    store = SQLiteSessionStore(dir=str(tmp_path), clock=clock, gc_interval=0)
    yield store
    store.close()
    store.delete_database_file()


@pytest.fixture
def restore_root_logging():
    """Undo handler/level changes made by configure_logging()."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
