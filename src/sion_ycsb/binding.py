"""
Benchmark-facing DB binding for Sion.

All benchmark records are mapped to one Sion object each. The harness calls
``init`` once per worker thread, then the record operations, then
``cleanup``. Once ``init`` has run, operations never raise; they report a
Status and log the cause of any failure. Calling one before ``init`` raises
``StoreConfigurationError``.
"""

import logging
from typing import Any, Iterable, Mapping, MutableMapping

from sion_ycsb.config import BackendConfig
from sion_ycsb.connection import BackendFactory, ConnectionManager
from sion_ycsb.errors import RecordNotFoundError, SionStoreError, StoreConfigurationError
from sion_ycsb.store import RecordStore, Status

logger = logging.getLogger(__name__)


class SionClient:
    """
    DB binding for Sion.

    One instance per benchmark worker; instances share nothing.

    Example:
        client = SionClient()
        client.init({"sion.host": "127.0.0.1", "fieldcount": "10"})
        client.insert("usertable", "user1", {"field0": b"x" * 100})
        client.cleanup()
    """

    def __init__(self, *, backend_factory: BackendFactory | None = None) -> None:
        self._backend_factory = backend_factory
        self.store: RecordStore | None = None

    def init(self, properties: Mapping[str, str] | None = None) -> None:
        """
        Resolve settings from benchmark properties and connect.

        A store left over from an earlier ``init`` is closed first.

        Raises:
            StoreConnectionError: If the backend cannot be reached
            pydantic.ValidationError: If a property holds an invalid value
        """
        config = BackendConfig.from_properties(properties or {})
        self.cleanup()
        connection = ConnectionManager(config, backend_factory=self._backend_factory)
        connection.connect()
        self.store = RecordStore(connection)
        logger.info(
            f"Sion binding initialized: {len(config.hosts)} host(s), "
            f"cluster={config.cluster_mode}, fieldcount={config.field_count}"
        )

    def cleanup(self) -> None:
        """Close the connection."""
        if self.store is not None:
            self.store.close()
            self.store = None

    def read(
        self,
        table: str,
        key: str,
        fields: Iterable[str] | None,
        result: MutableMapping[str, Any],
    ) -> Status:
        """
        Read a record into ``result`` as ``{key: buffer}``.

        ``table`` and ``fields`` are ignored: the whole stored buffer is returned.
        """
        store = self._require_store()
        try:
            result.update(store.read(key))
        except RecordNotFoundError:
            logger.debug(f"Not possible to get the object {key}: not found")
            return Status.NOT_FOUND
        except SionStoreError as e:
            logger.error(f"Not possible to get the object {key}: {e}")
            return Status.ERROR
        return Status.OK

    def insert(self, table: str, key: str, values: Mapping[str, bytes]) -> Status:
        """
        Create a new object from ``values``.

        Only the content of the first field is written, repeated once per
        field, so the object size is fieldlength * fieldcount.
        """
        return self._write(self._require_store().insert, key, values)

    def update(self, table: str, key: str, values: Mapping[str, bytes]) -> Status:
        """Overwrite the object stored under ``key``."""
        return self._write(self._require_store().update, key, values)

    def delete(self, table: str, key: str) -> Status:
        return self._require_store().delete(key)

    def scan(
        self,
        table: str,
        startkey: str,
        recordcount: int,
        fields: Iterable[str] | None,
        result: list,
    ) -> Status:
        return self._require_store().scan(startkey, recordcount, fields)

    def _write(self, operation, key: str, values: Mapping[str, bytes]) -> Status:
        try:
            operation(key, values)
        except SionStoreError as e:
            logger.error(f"Not possible to write the object {key}: {e}")
            return Status.ERROR
        return Status.OK

    def _require_store(self) -> RecordStore:
        if self.store is None:
            raise StoreConfigurationError("SionClient.init() must be called before any operation")
        return self.store
