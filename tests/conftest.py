"""
Pytest configuration and fixtures for the Sion binding tests.

Provides:
- An in-memory backend with scriptable failures
- Connection manager / record store fixtures wired to it
- A live-server fixture for integration tests
"""

import socket

import pytest
from dotenv import load_dotenv

from sion_ycsb.config import BackendConfig

# Load environment variables for integration tests
load_dotenv()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (require a running Sion server)"
    )


# ============================================================================
# Fake Backend
# ============================================================================

class FakeBackend:
    """
    In-memory backend shared by every handle a factory builds.

    ``get_failures`` / ``set_failures`` are queues: each call pops one entry;
    an exception is raised, any other entry is returned as the
    SET reply. Once empty, calls behave normally.
    """

    def __init__(self, data: dict, kind: str, calls: list, get_failures: list, set_failures: list):
        self.data = data
        self.kind = kind
        self.calls = calls
        self.get_failures = get_failures
        self.set_failures = set_failures
        self.closed = False
        self.close_error: Exception | None = None

    def get(self, key):
        self.calls.append(("get", key))
        if self.get_failures:
            raise self.get_failures.pop(0)
        return self.data.get(key)

    def set(self, key, value):
        self.calls.append(("set", key))
        if self.set_failures:
            outcome = self.set_failures.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        self.data[key] = value
        return True

    def close(self):
        self.calls.append(("close", None))
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


class FakeBackendFactory:
    """Backend factory recording every handle it builds."""

    def __init__(self):
        self.data: dict[str, bytes] = {}
        self.calls: list[tuple[str, str | None]] = []
        self.get_failures: list = []
        self.set_failures: list = []
        self.connect_failures: list[Exception] = []
        self.backends: list[FakeBackend] = []
        self.configs: list[BackendConfig] = []

    def __call__(self, config: BackendConfig) -> FakeBackend:
        self.configs.append(config)
        if self.connect_failures:
            raise self.connect_failures.pop(0)
        backend = FakeBackend(
            self.data,
            "cluster" if config.cluster_mode else "single",
            self.calls,
            self.get_failures,
            self.set_failures,
        )
        self.backends.append(backend)
        return backend

    @property
    def backend_calls(self) -> list[tuple[str, str | None]]:
        """GET/SET calls only."""
        return [c for c in self.calls if c[0] in ("get", "set")]


@pytest.fixture
def backend_factory():
    """Provide a fresh fake backend factory."""
    return FakeBackendFactory()


@pytest.fixture
def config():
    """Small single-node config: three fields per record."""
    return BackendConfig(hosts=["127.0.0.1"], field_count=3)


@pytest.fixture
def connection(config, backend_factory):
    """Provide a connection manager wired to the fake backend."""
    from sion_ycsb.connection import ConnectionManager

    manager = ConnectionManager(config, backend_factory=backend_factory)
    yield manager
    manager.shutdown()


@pytest.fixture
def store(connection):
    """Provide a record store over the fake backend."""
    from sion_ycsb.store import RecordStore

    return RecordStore(connection)


# ============================================================================
# Live Server
# ============================================================================

@pytest.fixture(scope="session")
def live_config():
    """
    Provide a config for a running Sion server.

    Uses SION_HOST / SION_PORT; skips when nothing answers there.
    """
    from sion_ycsb.config import load_config_from_env

    live = load_config_from_env()
    try:
        with socket.create_connection((live.hosts[0], live.port), timeout=1.0):
            pass
    except OSError:
        pytest.skip(f"No Sion server on {live.hosts[0]}:{live.port}")
    return live
