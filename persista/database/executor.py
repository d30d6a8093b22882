"""
Statement Executor - runs one statement against the shared connection.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Any, TypeVar

from persista.core.callbacks import Callback, with_callback
from persista.core.errors import StatementTimeoutError
from persista.core.logging.context import bound_context
from persista.core.logging.logger import get_logger

from .statement import Statement

if TYPE_CHECKING:
    from .adapter import StoreDriver
    from .gate import ConnectionGate

T = TypeVar("T")


async def bounded(awaitable: Awaitable[T], timeout: float | None, command: str) -> T:
    """
    Await a store call, raising StatementTimeoutError after ``timeout`` seconds.

    A TimeoutError raised by the store itself before the deadline propagates
    unchanged.
    """
    try:
        async with asyncio.timeout(timeout) as deadline:
            return await awaitable
    except TimeoutError:
        if deadline.expired():
            raise StatementTimeoutError(command, timeout) from None
        raise


class StatementExecutor:
    """
    Issues single statements outside any transaction.

    Parameters are normalized by the driver (composite literals for the
    relational store, ObjectId conversion for the document store). The raw
    store result is returned; store errors propagate unchanged.
    """

    def __init__(
        self,
        driver: StoreDriver,
        gate: ConnectionGate,
        *,
        timeout: float | None = None,
    ):
        self._driver = driver
        self._gate = gate
        self._timeout = timeout

    async def execute(
        self,
        statement: Statement | str | tuple,
        params: Any = None,
        callback: Callback | None = None,
    ) -> Any:
        """
        Execute one statement.

        Args:
            statement: Statement, command text or ``(text, params)`` pair
            params: Parameters replacing the statement's own when given
            callback: Optional ``callback(error, result)``

        Returns:
            The store's raw result
        """
        return await with_callback(self._execute(statement, params), callback)

    async def _execute(self, statement: Statement | str | tuple, params: Any) -> Any:
        statement = Statement.coerce(statement)
        if params is not None:
            statement = statement.with_params(params)
        prepared = self._driver.prepare(statement)

        with bound_context(store=self._driver.name):
            connection = await self._gate.acquire()
            get_logger(__name__).debug(f"Executing {prepared.command!r}")
            return await bounded(
                self._driver.execute(connection, prepared),
                self._timeout,
                prepared.command,
            )
