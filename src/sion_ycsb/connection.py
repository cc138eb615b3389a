"""
Connection lifecycle for one Sion backend handle.

The manager guarantees that every backend call runs on a connected handle,
and that after a failure is reported (``invalidate``) the next call builds a
fresh handle instead of reusing a possibly broken one.

Not thread-safe. One manager belongs to one worker; give each concurrent
worker its own manager and record store.
"""

import logging
from enum import Enum
from typing import Callable, TypeVar

from sion_ycsb.backend import KVBackend, create_backend
from sion_ycsb.config import BackendConfig
from sion_ycsb.errors import StoreConfigurationError, StoreConnectionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

BackendFactory = Callable[[BackendConfig], KVBackend]


class ConnectionState(str, Enum):
    """Connection states of a manager."""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class ConnectionManager:
    """
    Owns one backend handle (single node or cluster) and its lifecycle.

    States:
    - DISCONNECTED: no handle; the next ``ensure_connected`` connects
    - CONNECTED: a live handle is held

    ``pending_reset`` is set when a handle was torn down by ``invalidate``
    and cleared by the reconnect that follows.

    Example:
        with ConnectionManager(BackendConfig(hosts=["127.0.0.1"])) as manager:
            value = manager.execute(lambda backend: backend.get("user1"))
    """

    def __init__(
        self,
        config: BackendConfig,
        *,
        backend_factory: BackendFactory | None = None,
    ) -> None:
        """
        Initialize the manager. Does not connect.

        Args:
            config: Resolved backend settings
            backend_factory: Builds a handle from the config (default: redis-backed handles)
        """
        self.config = config
        self._backend_factory = backend_factory or create_backend
        self._backend: KVBackend | None = None
        self._state = ConnectionState.DISCONNECTED
        self._pending_reset = False
        self._shut_down = False

        self.connect_count = 0
        self.invalidate_count = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def pending_reset(self) -> bool:
        return self._pending_reset

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def handle_kind(self) -> str | None:
        """Kind of the live handle ("single" or "cluster"), None when disconnected."""
        return self._backend.kind if self._backend is not None else None

    def connect(self, config: BackendConfig | None = None) -> None:
        """
        Build a new handle.

        A cluster handle is used when several hosts are configured or the
        cluster flag is set; a single-node handle otherwise.

        Args:
            config: New settings to use from now on (default: keep the current ones)

        Raises:
            StoreConnectionError: If the handle cannot be established
            StoreConfigurationError: If the manager was shut down
        """
        self._check_not_shut_down()
        if config is not None:
            self.config = config

        if self._backend is not None:
            self._close_backend()

        try:
            backend = self._backend_factory(self.config)
        except Exception as e:
            self._state = ConnectionState.DISCONNECTED
            hosts = ",".join(self.config.hosts)
            raise StoreConnectionError(
                f"Failed to connect to Sion at {hosts}:{self.config.port}",
                original_error=e
            ) from e

        self._backend = backend
        self._state = ConnectionState.CONNECTED
        self._pending_reset = False
        self.connect_count += 1
        logger.info(f"Connected to Sion ({backend.kind}): {backend!r}")

    def ensure_connected(self) -> None:
        """Connect if disconnected (including after an invalidation). No-op otherwise."""
        self._check_not_shut_down()
        if self._state is ConnectionState.DISCONNECTED:
            if self._pending_reset:
                logger.info("Reconnecting to Sion after connection reset")
            self.connect()

    def invalidate(self) -> None:
        """
        Tear down the current handle so the next call reconnects.

        Close failures are logged, not raised. Safe to call repeatedly.
        """
        self.invalidate_count += 1
        self._state = ConnectionState.DISCONNECTED
        if not self._shut_down:
            self._pending_reset = True
        self._close_backend()

    def shutdown(self) -> None:
        """Close the handle for good. The manager cannot be used afterwards."""
        if self._shut_down:
            return
        self._shut_down = True
        self._state = ConnectionState.DISCONNECTED
        self._pending_reset = False
        self._close_backend()
        logger.info("Sion connection manager shut down")

    def execute(self, operation: Callable[[KVBackend], T]) -> T:
        """
        Run ``operation`` against a connected handle.

        The handle is only ever passed into ``operation``; it is not kept by
        callers.
        """
        self.ensure_connected()
        return operation(self._backend)

    def _close_backend(self) -> None:
        backend, self._backend = self._backend, None
        if backend is None:
            return
        try:
            backend.close()
        except Exception as e:
            logger.warning(f"Error on reset connection: {e}")

    def _check_not_shut_down(self) -> None:
        if self._shut_down:
            raise StoreConfigurationError("Connection manager has been shut down")

    def __enter__(self) -> "ConnectionManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    def __repr__(self) -> str:
        return (
            f"ConnectionManager(state={self._state.value}, "
            f"pending_reset={self._pending_reset}, handle={self._backend!r})"
        )
