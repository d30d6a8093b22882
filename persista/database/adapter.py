"""
Store Driver Protocol

Defines the interface persista expects from a backing store. Each driver
handles store-specific connection setup, statement preparation and the
transaction session used by the transaction runner.
"""

from typing import Any, Protocol

from .statement import Statement


class StoreSession(Protocol):
    """
    A dedicated session used by exactly one transaction.

    The runner calls ``pause_flow_control`` once, then ``begin``, the
    statements, ``commit`` or ``rollback``, and finally
    ``resume_flow_control`` once on every exit path.
    """

    async def pause_flow_control(self) -> None:
        """Take exclusive hold of the session so no unrelated work interleaves."""
        ...

    async def resume_flow_control(self) -> None:
        """Give the session back; called exactly once per transaction."""
        ...

    async def begin(self) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None:
        """Roll back; must tolerate being called when BEGIN never succeeded."""
        ...

    async def execute(self, statement: Statement) -> Any: ...


class StoreDriver(Protocol):
    """
    Universal store driver interface.

    All drivers must implement these methods to provide consistent
    persistence across the relational and document stores.
    """

    name: str

    async def open(self) -> Any:
        """
        Open the process-wide connection, authenticating when configured.

        Returns:
            The connection handle shared by all later operations

        Raises:
            Exception: The store's own error if open or authentication fails
        """
        ...

    async def close(self, connection: Any) -> None:
        """Dispose a connection returned by ``open``."""
        ...

    def prepare(self, statement: Statement) -> Statement:
        """
        Normalize a statement's parameters for this store.

        Raises:
            UnsupportedStatementError: If the store cannot run the statement
        """
        ...

    async def execute(self, connection: Any, statement: Statement) -> Any:
        """Run one prepared statement outside any transaction."""
        ...

    async def open_session(self, connection: Any) -> StoreSession:
        """Create the dedicated session for one transaction."""
        ...

    async def health_check(self, connection: Any) -> bool:
        """
        Perform a health check on the connection.

        Returns:
            True if the store is healthy and responsive
        """
        ...

    async def get_connection_info(self, connection: Any) -> dict[str, Any]:
        """
        Get information about the connection.

        Returns:
            Dictionary with connection information (driver, version, etc.)
        """
        ...
