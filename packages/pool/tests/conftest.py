"""Pytest configuration for quarry_pool tests."""

import sys
from pathlib import Path

import pytest

# Add the package source to path for testing
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from quarry_pool.config import PoolConfig  # noqa: E402
from quarry_pool.connection import ConnectionFactory  # noqa: E402
from quarry_pool.registry import reset_registry  # noqa: E402


class TrackingFactory(ConnectionFactory):
    """Connection factory that records what the pool does with connections.

    Connections listed in ``broken`` fail validation.
    """

    def __init__(self):
        self.created = []
        self.discarded = []
        self.resets = 0
        self.broken = set()
        self.fail_create = False

    def create(self, url):
        if self.fail_create:
            from quarry_pool.exceptions import ConnectionFailedError

            raise ConnectionFailedError("sqlite", "refused for test")
        connection = super().create(url)
        self.created.append(connection)
        return connection

    def validate(self, connection):
        if connection in self.broken:
            return False
        return super().validate(connection)

    def reset(self, connection):
        self.resets += 1
        super().reset(connection)

    def discard(self, connection):
        self.discarded.append(connection)
        super().discard(connection)


@pytest.fixture
def factory():
    return TrackingFactory()


@pytest.fixture
def make_config():
    """Build a PoolConfig for an in-memory SQLite backend."""

    def _make(**overrides):
        values = {"backend_uri": "sqlite::memory:", "acquire_timeout_seconds": 0.05}
        values.update(overrides)
        return PoolConfig(**values)

    return _make


@pytest.fixture
def sqlite_file_url(tmp_path):
    return f"sqlite:///{tmp_path / 'quarry.db'}"


@pytest.fixture(autouse=True)
def clean_shared_registry():
    yield
    reset_registry()
