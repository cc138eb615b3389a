"""
Unit tests for the redis-backed handle variants.

The redis client classes are patched, so no server is needed.
"""

from unittest.mock import MagicMock, patch

import pytest

from sion_ycsb.backend import (
    ClusterBackend,
    KVBackend,
    SingleNodeBackend,
    create_backend,
)
from sion_ycsb.config import BackendConfig


@pytest.mark.unit
class TestCreateBackend:
    """Test handle variant selection."""

    @patch("sion_ycsb.backend.Redis")
    def test_single_host_builds_single_node(self, mock_redis):
        backend = create_backend(BackendConfig(hosts=["10.0.0.1"], port=7000))

        assert isinstance(backend, SingleNodeBackend)
        assert backend.kind == "single"
        mock_redis.assert_called_once_with(
            host="10.0.0.1",
            port=7000,
            single_connection_client=True,
        )

    @patch("sion_ycsb.backend.Redis")
    def test_single_node_applies_timeout(self, mock_redis):
        create_backend(BackendConfig(hosts=["10.0.0.1"], timeout=1.5))

        kwargs = mock_redis.call_args.kwargs
        assert kwargs["socket_timeout"] == 1.5
        assert kwargs["socket_connect_timeout"] == 1.5

    @patch("sion_ycsb.backend.RedisCluster")
    def test_cluster_flag_builds_cluster(self, mock_cluster):
        backend = create_backend(BackendConfig(hosts=["10.0.0.1"], cluster=True))

        assert isinstance(backend, ClusterBackend)
        assert backend.kind == "cluster"
        assert backend.nodes == [("10.0.0.1", 6378)]
        mock_cluster.assert_called_once()

    @patch("sion_ycsb.backend.RedisCluster")
    @patch("sion_ycsb.backend.Redis")
    def test_multiple_hosts_always_cluster(self, mock_redis, mock_cluster):
        config = BackendConfig.from_properties({
            "sion.host": "10.0.0.1,10.0.0.2",
            "redis.cluster": "false",
        })
        backend = create_backend(config)

        assert isinstance(backend, ClusterBackend)
        mock_redis.assert_not_called()

    @patch("sion_ycsb.backend.RedisCluster")
    def test_cluster_nodes_deduplicated(self, mock_cluster):
        backend = create_backend(BackendConfig(hosts=["a", "b", "a"], port=6000))

        assert backend.nodes == [("a", 6000), ("b", 6000)]
        startup_nodes = mock_cluster.call_args.kwargs["startup_nodes"]
        assert [(n.host, n.port) for n in startup_nodes] == [("a", 6000), ("b", 6000)]


@pytest.mark.unit
class TestBackendCalls:
    """Test that handles delegate to the redis client."""

    @patch("sion_ycsb.backend.Redis")
    def test_single_node_delegates(self, mock_redis):
        client = mock_redis.return_value
        client.get.return_value = b"value"
        client.set.return_value = True

        backend = SingleNodeBackend("127.0.0.1", 6378)

        assert backend.get("k") == b"value"
        assert backend.set("k", b"v") is True
        backend.close()

        client.get.assert_called_once_with("k")
        client.set.assert_called_once_with("k", b"v")
        client.close.assert_called_once()

    @patch("sion_ycsb.backend.RedisCluster")
    def test_cluster_delegates(self, mock_cluster):
        client = mock_cluster.return_value
        client.get.return_value = None

        backend = ClusterBackend([("127.0.0.1", 6378)])

        assert backend.get("missing") is None
        backend.close()
        client.close.assert_called_once()

    @patch("sion_ycsb.backend.Redis")
    def test_handles_satisfy_protocol(self, mock_redis):
        assert isinstance(SingleNodeBackend("127.0.0.1", 6378), KVBackend)

    @patch("sion_ycsb.backend.Redis")
    def test_connect_failure_propagates(self, mock_redis):
        from redis.exceptions import ConnectionError as RedisConnectionError

        mock_redis.side_effect = RedisConnectionError("connection refused")
        with pytest.raises(RedisConnectionError):
            SingleNodeBackend("127.0.0.1", 6378)
