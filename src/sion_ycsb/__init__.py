"""
Sion YCSB - resilient benchmark client binding for Sion.

This package maps benchmark record operations onto a Sion backend reached
as a single node or as a sharded cluster, with lazy reconnect after
failures, bounded-retry writes and fixed-size record payloads.
"""

from sion_ycsb.store import (
    RecordStore,
    Status,
    build_stored_value,
)

from sion_ycsb.connection import (
    ConnectionManager,
    ConnectionState,
)

from sion_ycsb.backend import (
    KVBackend,
    SingleNodeBackend,
    ClusterBackend,
    create_backend,
)

from sion_ycsb.binding import SionClient

from sion_ycsb.errors import (
    SionStoreError,
    StoreConnectionError,
    ReadError,
    RecordNotFoundError,
    WriteError,
    StoreValidationError,
    StoreConfigurationError,
    UnexpectedReplyError,
)

from sion_ycsb.config import (
    BackendConfig,
    load_config_from_env,
)

from sion_ycsb.observability import (
    Tracer,
    OperationMetrics,
)

__version__ = "1.0.0"

__all__ = [
    # Core store
    "RecordStore",
    "Status",
    "build_stored_value",
    "ConnectionManager",
    "ConnectionState",
    # Backends
    "KVBackend",
    "SingleNodeBackend",
    "ClusterBackend",
    "create_backend",
    # Benchmark binding
    "SionClient",
    # Errors
    "SionStoreError",
    "StoreConnectionError",
    "ReadError",
    "RecordNotFoundError",
    "WriteError",
    "StoreValidationError",
    "StoreConfigurationError",
    "UnexpectedReplyError",
    # Configuration
    "BackendConfig",
    "load_config_from_env",
    # Observability
    "Tracer",
    "OperationMetrics",
]
