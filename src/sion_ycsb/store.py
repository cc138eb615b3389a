"""
Record store for the Sion benchmark binding.

Maps the benchmark's record operations onto a single-key-value backend:

- read: one GET, one attempt
- insert / update: one SET of a fixed-size payload, with bounded retries
- delete / scan: not supported, reported as Status.NOT_IMPLEMENTED

Only the *size* of a stored record matters to the benchmark, so a record
is flattened into one buffer: the first field's bytes repeated once per
field. With fieldlength L and fieldcount F every record is stored as L * F
bytes, whatever number of fields a particular call supplies.
"""

import logging
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, TypeVar

from tenacity import Retrying, retry_if_not_exception_type, stop_after_attempt, wait_none

from sion_ycsb.connection import ConnectionManager
from sion_ycsb.errors import (
    ReadError,
    RecordNotFoundError,
    SionStoreError,
    StoreConfigurationError,
    StoreValidationError,
    UnexpectedReplyError,
    WriteError,
)
from sion_ycsb.logging_utils import PerformanceLogger
from sion_ycsb.observability import OperationMetrics, Tracer

logger = logging.getLogger(__name__)

T = TypeVar("T")

Record = Mapping[str, bytes]


class Status(str, Enum):
    """Outcome of a record operation as reported to the benchmark."""
    OK = "OK"
    ERROR = "ERROR"
    NOT_FOUND = "NOT_FOUND"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"


def first_payload(record: Record) -> bytes | None:
    """Payload of the first field in iteration order, None for an empty record."""
    for field, payload in record.items():
        if not isinstance(payload, (bytes, bytearray, memoryview)):
            raise StoreValidationError(
                f"payload must be bytes, got {type(payload).__name__}",
                field=field
            )
        return bytes(payload)
    return None


def build_stored_value(record: Record, field_count: int, fallback: bytes | None = None) -> bytes:
    """
    Flatten a record into the buffer that is actually stored.

    The first field's payload is repeated ``max(len(record), field_count)``
    times with no separator. Updates usually carry fewer fields than the
    insert did; padding up to ``field_count`` keeps the stored size stable.

    Args:
        record: Field name to payload mapping
        field_count: Configured number of fields per record
        fallback: Payload to repeat when ``record`` is empty

    Raises:
        StoreValidationError: If there is no payload to repeat
    """
    effective_field_count = max(len(record), field_count)

    source = first_payload(record)
    if source is None:
        source = fallback
    if source is None:
        raise StoreValidationError("record has no fields and no earlier payload to reuse")

    return source * effective_field_count


class RecordStore:
    """
    Record operations on top of a ConnectionManager.

    Writes run up to ``retries`` attempts; every failed attempt invalidates
    the connection so that the next attempt reconnects. Reads run once and,
    by default, leave the connection alone.

    The last non-empty payload written is kept and reused when a later
    write supplies no fields at all.

    Example:
        config = BackendConfig(hosts=["127.0.0.1"], field_count=3)
        with RecordStore(ConnectionManager(config)) as store:
            store.insert("user1", {"field0": b"0123456789"})
            store.read("user1")  # {"user1": <30 bytes>}
    """

    def __init__(
        self,
        connection: ConnectionManager,
        *,
        metrics: OperationMetrics | None = None,
        tracer: Tracer | None = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            connection: Manager owning the backend handle
            metrics: Metrics sink (default: a fresh OperationMetrics)
            tracer: Tracer (default: enabled when the config asks for tracing)
        """
        self.connection = connection
        self.metrics = metrics or OperationMetrics()
        self.tracer = tracer or Tracer(enabled=connection.config.enable_tracing)
        self._stashed_payload: bytes | None = None

    @property
    def config(self):
        return self.connection.config

    @property
    def field_count(self) -> int:
        return self.config.field_count

    # Record operations

    def read(self, key: str) -> dict[str, bytes]:
        """
        Read the stored buffer of a record.

        Returns:
            ``{key: buffer}``; the buffer is not split back into fields

        Raises:
            RecordNotFoundError: If nothing is stored under ``key``
            ReadError: If the GET fails
        """
        self._validate_key(key)
        value = self._measure("read", key, lambda: self._read_impl(key))
        return {key: value}

    def insert(self, key: str, record: Record) -> None:
        """
        Store a new record.

        Raises:
            WriteError: If every attempt failed
            StoreValidationError: If the record cannot be flattened
        """
        self._measure(
            "insert", key,
            lambda: self.write_normalized(key, record, self.config.insert_retries)
        )

    def update(self, key: str, record: Record) -> None:
        """
        Overwrite a record. Gets fewer attempts than insert by default.

        Raises:
            WriteError: If every attempt failed
            StoreValidationError: If the record cannot be flattened
        """
        self._measure(
            "update", key,
            lambda: self.write_normalized(key, record, self.config.update_retries)
        )

    def delete(self, key: str) -> Status:
        """Not supported. No backend call is made."""
        self.metrics.record_not_implemented("delete")
        return Status.NOT_IMPLEMENTED

    def scan(self, start_key: str, count: int, fields: Iterable[str] | None = None) -> Status:
        """Not supported. No backend call is made."""
        self.metrics.record_not_implemented("scan")
        return Status.NOT_IMPLEMENTED

    def write_normalized(self, key: str, record: Record, retries: int) -> None:
        """
        Flatten ``record`` and SET it under ``key``, trying up to ``retries`` times.

        Retries are immediate (no backoff): retry latency is part of what
        the benchmark measures.

        Raises:
            WriteError: Carrying the last failure once all attempts are used
            StoreValidationError: If the record cannot be flattened
        """
        self._validate_key(key)
        if retries < 1:
            raise StoreValidationError(f"retries must be at least 1, got {retries}", field="retries")

        value = build_stored_value(record, self.field_count, self._stashed_payload)
        if record:
            self._stashed_payload = first_payload(record)

        try:
            for attempt in Retrying(
                stop=stop_after_attempt(retries),
                wait=wait_none(),
                retry=retry_if_not_exception_type(StoreConfigurationError),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        self.metrics.record_retry()
                    self._set_once(key, value)
        except (StoreConfigurationError, StoreValidationError):
            raise
        except Exception as e:
            raise WriteError(
                f"Not possible to write the object {key}",
                original_error=e,
                key=key,
                attempts=retries
            ) from e

    def get_metrics(self) -> dict[str, Any]:
        """Snapshot of operation metrics."""
        return self.metrics.get_all_stats()

    def close(self) -> None:
        """Shut the connection down. The store cannot be used afterwards."""
        self.connection.shutdown()

    def __enter__(self) -> "RecordStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # Internals

    def _read_impl(self, key: str) -> bytes:
        try:
            value = self.connection.execute(lambda backend: backend.get(key))
        except StoreConfigurationError:
            raise
        except Exception as e:
            if self.config.invalidate_on_read_failure:
                self._reset()
            raise ReadError(f"Not possible to get the object {key}", original_error=e, key=key) from e

        if value is None:
            raise RecordNotFoundError(key)
        return value

    def _set_once(self, key: str, value: bytes) -> None:
        try:
            reply = self.connection.execute(lambda backend: backend.set(key, value))
            if reply is not True:
                raise UnexpectedReplyError(reply, key=key)
        except StoreConfigurationError:
            raise
        except Exception as e:
            logger.warning(f"Write attempt for '{key}' failed: {e}")
            self._reset()
            raise

    def _reset(self) -> None:
        self.connection.invalidate()
        self.metrics.record_reset()

    def _measure(self, operation: str, key: str, func: Callable[[], T]) -> T:
        perf = PerformanceLogger(operation, logger, key=key)
        try:
            with self.tracer.span(f"sion.{operation}", {"key": key}), perf:
                result = func()
        except SionStoreError as e:
            self.metrics.record_operation(
                operation, perf.duration_ms, success=False, error_type=type(e).__name__
            )
            raise
        self.metrics.record_operation(operation, perf.duration_ms)
        return result

    def _validate_key(self, key: str) -> None:
        if not isinstance(key, str):
            raise StoreValidationError(f"key must be a string, got {type(key).__name__}", field="key")
        if not key:
            raise StoreValidationError("key must not be empty", field="key")
