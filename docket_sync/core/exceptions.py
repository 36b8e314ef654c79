"""
Errors raised by the sync engine and its drivers.
"""

__all__ = [
    "SyncError",
    "ConfigurationError",
    "SchemaError",
    "NetworkError",
    "RemoteError",
    "ConstraintError",
    "LogicError",
]


class SyncError(Exception):
    """
    Base class for errors raised while reconciling with the remote store.

    If `table` is set, it names the flat table being processed when the error
    occurred and is prefixed to the message.
    """

    table: str | None
    message: str

    def __init__(self, message: str, *, table: str | None = None):
        self.table = table
        self.message = message

        prefix = f"[{table}] " if table else ""
        super().__init__(f"{prefix}{message}")


class ConfigurationError(SyncError):
    """
    Raised when no remote store is configured. Not retryable until the
    remote store is set up.
    """


class SchemaError(SyncError):
    """
    Raised when an expected table or column is absent from the remote store.
    Not retryable until a migration is run.
    """


class NetworkError(SyncError):
    """
    Raised upon a transport failure. Transient; the sync may be retried.
    """


class RemoteError(SyncError):
    """
    Raised when the remote store returns an error which isn't otherwise
    classified.
    """


class ConstraintError(RemoteError):
    """
    Raised when the remote store rejects a write, e.g. a foreign key
    violation.
    """


class LogicError(SyncError):
    """
    Raised when local state is malformed, e.g. a record without an id.

    Callers processing many records skip the offending record rather than
    failing the whole operation.
    """


def _assert_logic(cond: bool, message: str):
    """
    Helper to raise a logic error if the condition is False.
    """
    if cond is not True:
        raise LogicError(message)
