"""
Shared fixtures for the memory test suite.

Every test gets its own in-memory store driven by a fake clock.
"""

import os
import tempfile

# Keep test runs out of the project log directory (set before any logger exists)
os.environ.setdefault('RECALL_LOG_DIR', tempfile.mkdtemp(prefix='recall-logs-'))

import pytest

from modules.memory import SQLStore, MemoryManager
from utils.config import MemoryConfig

DAY = 24 * 60 * 60
T0 = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock (seconds since epoch)"""

    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return MemoryConfig(db_path=":memory:", backup_on_startup=False)


@pytest.fixture
def store(config, clock):
    """Initialized in-memory store"""
    store = SQLStore(config=config, clock=clock)
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def manager(store, config):
    return MemoryManager(store, config=config)
