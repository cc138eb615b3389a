"""
Backend handles for Sion.

Sion speaks the Redis protocol, so both handle variants are thin wrappers
around redis-py clients:

- SingleNodeBackend: one dedicated connection to one address
- ClusterBackend: a slot-routing client over a set of startup nodes

Both expose the same three calls (get, set, close). Nothing else of the
wire protocol is relied upon.
"""

import logging
from typing import Protocol, Sequence, runtime_checkable

from redis import Redis
from redis.cluster import ClusterNode, RedisCluster

from sion_ycsb.config import BackendConfig

logger = logging.getLogger(__name__)

SINGLE = "single"
CLUSTER = "cluster"


@runtime_checkable
class KVBackend(Protocol):
    """Capability set the record store relies on."""

    kind: str

    def get(self, key: str) -> bytes | None:
        ...

    def set(self, key: str, value: bytes) -> bool:
        ...

    def close(self) -> None:
        ...


class SingleNodeBackend:
    """
    Handle to a single Sion node.

    Uses a dedicated connection (``single_connection_client``), which is
    opened while the client is built, so an unreachable node fails here
    rather than on the first command.
    """

    kind = SINGLE

    def __init__(self, host: str, port: int, timeout: float | None = None):
        self.host = host
        self.port = port
        self.timeout = timeout

        options = {}
        if timeout is not None:
            options["socket_timeout"] = timeout
            options["socket_connect_timeout"] = timeout

        self._client = Redis(
            host=host,
            port=port,
            single_connection_client=True,
            **options,
        )
        logger.debug(f"Connected to Sion node {host}:{port} (timeout={timeout})")

    def get(self, key: str) -> bytes | None:
        return self._client.get(key)

    def set(self, key: str, value: bytes) -> bool:
        return self._client.set(key, value)

    def close(self) -> None:
        self._client.close()

    def __repr__(self) -> str:
        return f"SingleNodeBackend({self.host}:{self.port})"


class ClusterBackend:
    """Handle to a sharded Sion cluster."""

    kind = CLUSTER

    def __init__(self, nodes: Sequence[tuple[str, int]]):
        # Deduplicated by host+port, first-seen order kept
        self.nodes = list(dict.fromkeys(nodes))
        self._client = RedisCluster(
            startup_nodes=[ClusterNode(host, port) for host, port in self.nodes],
        )
        logger.debug(f"Connected to Sion cluster via {len(self.nodes)} startup node(s)")

    def get(self, key: str) -> bytes | None:
        return self._client.get(key)

    def set(self, key: str, value: bytes) -> bool:
        return self._client.set(key, value)

    def close(self) -> None:
        self._client.close()

    def __repr__(self) -> str:
        nodes = ",".join(f"{h}:{p}" for h, p in self.nodes)
        return f"ClusterBackend({nodes})"


def create_backend(config: BackendConfig) -> KVBackend:
    """
    Build the handle variant selected by the config.

    Cluster when several hosts are configured or the cluster flag is set;
    a single node otherwise, with the timeout applied if one is configured.
    """
    if config.cluster_mode:
        return ClusterBackend([(host, config.port) for host in config.hosts])
    return SingleNodeBackend(config.hosts[0], config.port, config.timeout)
