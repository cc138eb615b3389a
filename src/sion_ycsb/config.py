"""
Configuration for the Sion client binding.

This module provides:
- Pydantic-based validation of the backend settings
- Loading from benchmark properties (``sion.host``, ``sion.port``, ...)
- Loading from environment variables

The settings are resolved once, before the connection manager is built,
and are never mutated afterwards.
"""

import os
import logging
from typing import Any, Mapping, Optional
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

logger = logging.getLogger(__name__)


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6378
DEFAULT_FIELD_COUNT = 10

# Benchmark property names
HOST_PROPERTY = "sion.host"
PORT_PROPERTY = "sion.port"
TIMEOUT_PROPERTY = "sion.timeout"
CLUSTER_PROPERTY = "redis.cluster"
FIELD_COUNT_PROPERTY = "fieldcount"
INSERT_RETRIES_PROPERTY = "sion.insert.retries"
UPDATE_RETRIES_PROPERTY = "sion.update.retries"
READ_INVALIDATE_PROPERTY = "sion.read.invalidate"
TRACING_PROPERTY = "sion.tracing"


def split_hosts(value: str) -> list[str]:
    """Split a comma-separated host string into its addresses."""
    return [h.strip() for h in value.split(",") if h.strip()]


def parse_bool(value: Optional[str]) -> bool:
    """Parse a property flag. Only ``"true"`` (any case) is true."""
    return value is not None and value.strip().lower() == "true"


class BackendConfig(BaseModel):
    """
    Backend settings for a single Sion node or a Sion cluster.

    Example usage:
        # Single node with a 2s timeout
        config = BackendConfig(hosts=["10.0.0.5"], timeout=2.0)

        # Several hosts always mean cluster mode
        config = BackendConfig(host="10.0.0.5,10.0.0.6")
        assert config.cluster_mode
    """

    hosts: list[str] = Field(
        default_factory=lambda: [DEFAULT_HOST],
        description="Backend host addresses, in order"
    )

    port: int = Field(
        default=DEFAULT_PORT,
        ge=1,
        le=65535,
        description="Backend port, shared by every host"
    )

    timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Connect and socket timeout in seconds (single node only)"
    )

    cluster: bool = Field(
        default=False,
        description="Use a cluster handle even with a single host"
    )

    field_count: int = Field(
        default=DEFAULT_FIELD_COUNT,
        ge=1,
        description="Number of fields per record in the workload"
    )

    insert_retries: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Write attempts for insert"
    )

    update_retries: int = Field(
        default=1,
        ge=1,
        le=100,
        description="Write attempts for update"
    )

    invalidate_on_read_failure: bool = Field(
        default=False,
        description="Tear down the connection when a read fails"
    )

    enable_tracing: bool = Field(
        default=False,
        description="Record OpenTelemetry spans for each operation"
    )

    model_config = ConfigDict(frozen=True)

    @model_validator(mode='before')
    @classmethod
    def collapse_host_string(cls, data: Any) -> Any:
        """
        Accept ``host="a,b"`` or ``hosts="a,b"`` and force cluster mode for several hosts.

        ``timeout_ms`` (milliseconds) is accepted in place of ``timeout``.
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)

        if "host" in data:
            host = data.pop("host")
            if host is not None and "hosts" not in data:
                data["hosts"] = host
        if isinstance(data.get("hosts"), str):
            data["hosts"] = split_hosts(data["hosts"])

        if "timeout_ms" in data:
            timeout_ms = data.pop("timeout_ms")
            if timeout_ms is not None and "timeout" not in data:
                data["timeout"] = float(timeout_ms) / 1000.0

        # Automatically enables cluster if several hosts are given
        hosts = data.get("hosts")
        if isinstance(hosts, (list, tuple)) and len(hosts) > 1:
            data["cluster"] = True
        return data

    @field_validator('hosts')
    @classmethod
    def validate_hosts(cls, v):
        """Strip host addresses and reject empty ones."""
        hosts = [h.strip() for h in v]
        if not hosts:
            raise ValueError("At least one host required")
        if any(not h for h in hosts):
            raise ValueError("Host addresses must not be empty")
        return hosts

    @property
    def cluster_mode(self) -> bool:
        """True when a cluster handle must be used."""
        return self.cluster or len(self.hosts) > 1

    @classmethod
    def from_properties(cls, props: Mapping[str, str]) -> "BackendConfig":
        """
        Build a config from benchmark properties.

        ``sion.timeout`` is given in milliseconds, as the benchmark passes it.
        Unset properties fall back to the defaults. Values are passed to the
        model as given, so a malformed one raises ``ValidationError``.
        """
        values: dict[str, Any] = {
            "hosts": split_hosts(props.get(HOST_PROPERTY) or DEFAULT_HOST),
            "cluster": parse_bool(props.get(CLUSTER_PROPERTY)),
            "invalidate_on_read_failure": parse_bool(props.get(READ_INVALIDATE_PROPERTY)),
            "enable_tracing": parse_bool(props.get(TRACING_PROPERTY)),
        }

        for name, field in (
            (PORT_PROPERTY, "port"),
            (TIMEOUT_PROPERTY, "timeout_ms"),
            (FIELD_COUNT_PROPERTY, "field_count"),
            (INSERT_RETRIES_PROPERTY, "insert_retries"),
            (UPDATE_RETRIES_PROPERTY, "update_retries"),
        ):
            if props.get(name) is not None:
                values[field] = props[name]

        config = cls(**values)
        logger.debug(
            f"Resolved backend config: hosts={config.hosts}, port={config.port}, "
            f"cluster={config.cluster_mode}, field_count={config.field_count}"
        )
        return config


def load_config_from_env() -> BackendConfig:
    """
    Load configuration from environment variables.

    Environment variables:
        SION_HOST: Comma-separated list of hosts (default: 127.0.0.1)
        SION_PORT: Port (default: 6378)
        SION_TIMEOUT_MS: Timeout in milliseconds (default: none)
        SION_CLUSTER: Force cluster mode (true/false)
        SION_FIELD_COUNT: Fields per record (default: 10)

    Returns:
        Validated configuration
    """
    props = {
        HOST_PROPERTY: os.getenv("SION_HOST", DEFAULT_HOST),
        PORT_PROPERTY: os.getenv("SION_PORT", str(DEFAULT_PORT)),
        CLUSTER_PROPERTY: os.getenv("SION_CLUSTER", "false"),
        FIELD_COUNT_PROPERTY: os.getenv("SION_FIELD_COUNT", str(DEFAULT_FIELD_COUNT)),
    }
    timeout_ms = os.getenv("SION_TIMEOUT_MS")
    if timeout_ms:
        props[TIMEOUT_PROPERTY] = timeout_ms

    return BackendConfig.from_properties(props)
