"""
Exception hierarchy for the Sion client binding.

Every error wraps the underlying driver exception (if any) and logs itself
with that context, so callers only need to decide what to do with it.
"""

import logging

logger = logging.getLogger(__name__)


class SionStoreError(Exception):
    """
    Base exception for Sion store errors.

    Wraps underlying redis/socket exceptions with additional context
    and ensures proper logging. Subclasses describing an outcome that a
    caller may still recover from lower ``log_level``.
    """

    log_level = logging.ERROR

    def __init__(self, message: str, original_error: Exception | None = None):
        """
        Initialize store error.

        Args:
            message: Human-readable error message
            original_error: Original exception that caused this error
        """
        super().__init__(message)
        self.original_error = original_error
        self.message = message

        if original_error:
            logger.log(
                self.log_level,
                f"{type(self).__name__}: {message}",
                extra={
                    "error_type": type(original_error).__name__,
                    "error_message": str(original_error)
                }
            )
        else:
            logger.log(self.log_level, f"{type(self).__name__}: {message}")

    def __str__(self) -> str:
        """Return formatted error message."""
        if self.original_error:
            return f"{self.message} (caused by {type(self.original_error).__name__}: {self.original_error})"
        return self.message

    def __repr__(self) -> str:
        """Return detailed error representation."""
        return f"{self.__class__.__name__}(message={self.message!r}, original_error={self.original_error!r})"


class StoreConnectionError(SionStoreError):
    """
    Raised when a backend handle cannot be established.

    Not retried by the connection manager itself; retrying is up to the
    write path of the record store.
    """

    log_level = logging.WARNING

    def __init__(self, message: str = "Failed to connect to Sion", original_error: Exception | None = None):
        super().__init__(message, original_error)


class ReadError(SionStoreError):
    """Raised when GET fails. Reads are attempted once."""

    def __init__(self, message: str, original_error: Exception | None = None, key: str | None = None):
        self.key = key
        super().__init__(message, original_error)


class RecordNotFoundError(ReadError):
    """Raised when GET succeeds but the backend holds no value for the key."""

    log_level = logging.DEBUG

    def __init__(self, key: str):
        super().__init__(f"No value stored for key '{key}'", key=key)


class WriteError(SionStoreError):
    """
    Raised when every write attempt has failed.

    The last observed failure is kept as ``original_error``.
    """

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        key: str | None = None,
        attempts: int = 0
    ):
        self.key = key
        self.attempts = attempts
        if attempts:
            message = f"{message} (attempts={attempts})"
        super().__init__(message, original_error)


class StoreValidationError(SionStoreError):
    """
    Raised when a record cannot be turned into a stored value.

    For example an empty record when no earlier payload is available,
    or a field payload that is not bytes.
    """

    def __init__(self, message: str, field: str | None = None, original_error: Exception | None = None):
        self.field = field
        if field:
            message = f"Validation error for '{field}': {message}"
        super().__init__(message, original_error)


class StoreConfigurationError(SionStoreError):
    """Raised when the store or connection manager is used outside its lifecycle."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message, original_error)


class UnexpectedReplyError(SionStoreError):
    """Raised when the backend answers a write with anything but an OK acknowledgement."""

    log_level = logging.WARNING

    def __init__(self, reply: object, key: str | None = None):
        self.reply = reply
        self.key = key
        super().__init__(f"Unexpected result {reply!r} for key '{key}'")
