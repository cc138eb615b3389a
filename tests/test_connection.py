"""
Unit tests for the connection lifecycle.

Tests:
- Lazy connect and reconnect after invalidation
- Handle variant selection
- Best-effort close
- Shutdown
"""

import logging

import pytest

from sion_ycsb.config import BackendConfig
from sion_ycsb.connection import ConnectionManager, ConnectionState
from sion_ycsb.errors import StoreConfigurationError, StoreConnectionError


@pytest.mark.unit
class TestConnect:
    """Test handle creation."""

    def test_starts_disconnected(self, connection, backend_factory):
        assert connection.state is ConnectionState.DISCONNECTED
        assert connection.pending_reset is False
        assert connection.handle_kind is None
        assert backend_factory.backends == []

    def test_connect(self, connection, backend_factory):
        connection.connect()

        assert connection.state is ConnectionState.CONNECTED
        assert connection.is_connected
        assert connection.handle_kind == "single"
        assert connection.connect_count == 1
        assert len(backend_factory.backends) == 1

    def test_cluster_for_several_hosts(self, backend_factory):
        config = BackendConfig(hosts=["a", "b"], cluster=False)
        with ConnectionManager(config, backend_factory=backend_factory) as manager:
            manager.connect()
            assert manager.handle_kind == "cluster"

    def test_connect_with_new_config(self, connection, backend_factory):
        connection.connect(BackendConfig(hosts=["x"], cluster=True))

        assert connection.config.hosts == ["x"]
        assert connection.handle_kind == "cluster"

    def test_reconnect_closes_previous_handle(self, connection, backend_factory):
        connection.connect()
        connection.connect()

        first, second = backend_factory.backends
        assert first.closed
        assert not second.closed

    def test_connect_failure_raises_connection_error(self, connection, backend_factory):
        backend_factory.connect_failures.append(OSError("connection refused"))

        with pytest.raises(StoreConnectionError) as exc_info:
            connection.connect()

        assert isinstance(exc_info.value.original_error, OSError)
        assert "127.0.0.1:6378" in str(exc_info.value)
        assert connection.state is ConnectionState.DISCONNECTED

    def test_connect_failure_is_not_retried(self, connection, backend_factory):
        backend_factory.connect_failures.extend([OSError("down"), OSError("down")])

        with pytest.raises(StoreConnectionError):
            connection.connect()

        assert len(backend_factory.configs) == 1


@pytest.mark.unit
class TestEnsureConnected:
    """Test lazy connection."""

    def test_connects_when_disconnected(self, connection):
        connection.ensure_connected()
        assert connection.is_connected

    def test_idempotent(self, connection, backend_factory):
        connection.ensure_connected()
        connection.ensure_connected()

        assert connection.connect_count == 1
        assert len(backend_factory.backends) == 1

    def test_reconnects_after_invalidate(self, connection, backend_factory):
        connection.ensure_connected()
        connection.invalidate()

        assert connection.pending_reset is True
        connection.ensure_connected()

        assert connection.pending_reset is False
        assert connection.connect_count == 2
        assert len(backend_factory.backends) == 2

    def test_pending_reset_kept_when_reconnect_fails(self, connection, backend_factory):
        connection.ensure_connected()
        connection.invalidate()
        backend_factory.connect_failures.append(OSError("down"))

        with pytest.raises(StoreConnectionError):
            connection.ensure_connected()

        assert connection.pending_reset is True
        assert connection.state is ConnectionState.DISCONNECTED


@pytest.mark.unit
class TestInvalidate:
    """Test connection teardown."""

    def test_invalidate_closes_handle(self, connection, backend_factory):
        connection.connect()
        connection.invalidate()

        assert backend_factory.backends[0].closed
        assert connection.state is ConnectionState.DISCONNECTED
        assert connection.handle_kind is None

    def test_invalidate_is_safe_to_repeat(self, connection):
        connection.invalidate()
        connection.invalidate()

        assert connection.invalidate_count == 2
        assert connection.state is ConnectionState.DISCONNECTED

    def test_close_failure_is_logged(self, connection, backend_factory, caplog):
        connection.connect()
        backend_factory.backends[0].close_error = OSError("broken pipe")

        with caplog.at_level(logging.WARNING, logger="sion_ycsb.connection"):
            connection.invalidate()

        assert "broken pipe" in caplog.text
        assert connection.state is ConnectionState.DISCONNECTED

    def test_never_connected_and_usable_at_once(self, connection):
        connection.connect()
        connection.invalidate()

        assert not (connection.pending_reset and connection.is_connected)
        assert connection.handle_kind is None


@pytest.mark.unit
class TestExecute:
    """Test routing calls through a live handle."""

    def test_execute_connects_first(self, connection, backend_factory):
        backend_factory.data["k"] = b"v"

        assert connection.execute(lambda backend: backend.get("k")) == b"v"
        assert connection.connect_count == 1

    def test_execute_after_invalidate_uses_fresh_handle(self, connection, backend_factory):
        seen = []
        connection.execute(seen.append)
        connection.invalidate()
        connection.execute(seen.append)

        assert seen[0] is not seen[1]
        assert seen[0].closed
        assert not seen[1].closed


@pytest.mark.unit
class TestShutdown:
    """Test end of life."""

    def test_shutdown_closes_handle(self, connection, backend_factory):
        connection.connect()
        connection.shutdown()

        assert backend_factory.backends[0].closed
        assert connection.state is ConnectionState.DISCONNECTED
        assert connection.pending_reset is False

    def test_shutdown_twice(self, connection):
        connection.shutdown()
        connection.shutdown()

    def test_not_reusable_after_shutdown(self, connection):
        connection.shutdown()

        with pytest.raises(StoreConfigurationError):
            connection.ensure_connected()
        with pytest.raises(StoreConfigurationError):
            connection.connect()

    def test_context_manager(self, config, backend_factory):
        with ConnectionManager(config, backend_factory=backend_factory) as manager:
            manager.connect()

        assert backend_factory.backends[0].closed
        with pytest.raises(StoreConfigurationError):
            manager.execute(lambda backend: backend.get("k"))
