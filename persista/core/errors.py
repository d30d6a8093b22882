"""
Exceptions raised by persista itself.

Store errors (a failed open, a failed statement, a failed transaction) are
never wrapped: callers receive the driver's own exception. The classes here
cover misuse of the shim and the optional timeouts.
"""


class PersistaError(Exception):
    """Base exception for persista errors."""


class NotConfiguredError(PersistaError):
    """Raised when a store is used before connection parameters are set."""


class AlreadyConnectedError(PersistaError):
    """Raised when connection parameters change after the connection opened."""


class ConnectionTimeoutError(PersistaError, TimeoutError):
    """Raised when waiting for the store connection exceeds connect_timeout."""

    def __init__(self, store: str, timeout: float):
        self.store = store
        self.timeout = timeout
        super().__init__(f"Opening {store} connection timed out after {timeout}s")


class ConnectionClosedError(PersistaError):
    """Raised to callers of an open that was superseded by close()."""

    def __init__(self, store: str):
        self.store = store
        super().__init__(f"{store} connection was closed while it was opening")


class StatementTimeoutError(PersistaError, TimeoutError):
    """Raised when a single statement exceeds statement_timeout."""

    def __init__(self, command: str, timeout: float):
        self.command = command
        self.timeout = timeout
        super().__init__(f"Statement '{command}' timed out after {timeout}s")


class UnsupportedStatementError(PersistaError):
    """Raised when a document-store statement names an unknown operation."""

    def __init__(self, command: str, supported: tuple[str, ...]):
        self.command = command
        super().__init__(
            f"Unsupported document operation '{command}'. "
            f"Expected one of: {', '.join(supported)}"
        )


class RecordNotFoundError(PersistaError):
    """Raised when an update by primary key matches no record."""

    def __init__(self, target: str, key: str, value: object):
        self.target = target
        self.key = key
        self.value = value
        super().__init__(f"No record in '{target}' with {key} = {value!r}")
