"""
Connection Gate - opens the shared store connection exactly once.

Callers that arrive while the connection is opening await the same in-flight
open task instead of polling, so every caller observes the same connection
(or the same error). A failed open leaves the gate closed and the next call
retries.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from persista.core.errors import ConnectionClosedError, ConnectionTimeoutError
from persista.core.logging.logger import get_logger

ConnT = TypeVar("ConnT")


def _consume_exception(task: asyncio.Task) -> None:
    # Waiters may all have timed out; mark a failed open as retrieved
    if not task.cancelled():
        task.exception()


class ConnectionGate(Generic[ConnT]):
    """
    Lazily opened, shared connection with a single-open guarantee.

    Lifecycle: uninitialized -> opening -> open. ``close()`` returns the gate
    to uninitialized.

    Example:
        gate = ConnectionGate(driver.open, name="postgresql", closer=driver.close)
        engine = await gate.acquire()
    """

    def __init__(
        self,
        opener: Callable[[], Awaitable[ConnT]],
        *,
        name: str = "store",
        timeout: float | None = None,
        closer: Callable[[ConnT], Awaitable[None]] | None = None,
    ):
        """
        Args:
            opener: Coroutine function that opens (and authenticates) the connection
            name: Store name used in log messages and timeout errors
            timeout: Seconds a caller waits for the open before giving up
            closer: Coroutine function disposing the connection on ``close()``
        """
        self._opener = opener
        self._closer = closer
        self._name = name
        self._timeout = timeout
        self._connection: ConnT | None = None
        self._opening: asyncio.Task[ConnT] | None = None
        # Bumped by close(); an open from an older generation is discarded
        self._generation = 0

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    @property
    def is_opening(self) -> bool:
        return self._opening is not None

    async def acquire(self) -> ConnT:
        """
        Return the shared connection, opening it on first use.

        Raises:
            ConnectionTimeoutError: If ``timeout`` elapses before the open completes
            ConnectionClosedError: If close() runs while the open is in flight
            Exception: The store's own error if the open fails, TimeoutError included
        """
        if self._connection is not None:
            return self._connection

        if self._opening is None:
            self._opening = asyncio.ensure_future(self._open(self._generation))
            self._opening.add_done_callback(_consume_exception)
        opening = self._opening

        # Shielded so one caller giving up does not cancel the open for the others
        try:
            async with asyncio.timeout(self._timeout) as deadline:
                return await asyncio.shield(opening)
        except TimeoutError:
            if deadline.expired():
                raise ConnectionTimeoutError(self._name, self._timeout) from None
            raise

    async def _open(self, generation: int) -> ConnT:
        logger = get_logger(__name__)
        logger.info(f"Opening {self._name} connection...")
        try:
            connection = await self._opener()
        except Exception as e:
            logger.error(f"Opening {self._name} connection failed: {e}")
            raise
        finally:
            if generation == self._generation:
                self._opening = None

        if generation != self._generation:
            # close() ran while this open was in flight
            logger.info(f"Discarding {self._name} connection opened before close()")
            if self._closer is not None:
                await self._closer(connection)
            raise ConnectionClosedError(self._name)

        self._connection = connection
        logger.info(f"{self._name} connection established")
        return connection

    async def close(self) -> None:
        """
        Dispose the connection if one is open.

        An open still in flight is abandoned: its callers receive
        ConnectionClosedError and the next acquire() opens a new connection.
        """
        self._generation += 1
        self._opening = None
        connection, self._connection = self._connection, None
        if connection is None:
            return
        if self._closer is not None:
            await self._closer(connection)
        get_logger(__name__).info(f"{self._name} connection closed")
