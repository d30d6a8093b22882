"""
Transaction Runner - BEGIN/COMMIT/ROLLBACK envelope around many statements.

Two modes share one protocol:

- ``run_all``: independent statements fired concurrently after BEGIN and
  awaited until every one settles.
- ``run_chain``: steps called in order, each with the previous result; a step
  returning a statement has it executed, any other value passes through.

Protocol: open a dedicated session, pause its flow control, BEGIN, run the
work, COMMIT. Any failure after the pause issues ROLLBACK and re-raises the
original error. Flow control is resumed exactly once on every exit path.
"""

from __future__ import annotations

import asyncio
import inspect
import uuid
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any

from persista.core.callbacks import Callback, with_callback
from persista.core.logging.context import bound_context
from persista.core.logging.logger import get_logger

from .executor import bounded
from .statement import Statement, is_statement

if TYPE_CHECKING:
    from .adapter import StoreDriver, StoreSession
    from .gate import ConnectionGate

Step = Callable[[Any], Any]


class TransactionRunner:
    """
    Runs groups of statements atomically on a private session.

    Example:
        await runner.run_all([
            ("UPDATE accounts SET balance = balance - $1 WHERE id = $2", [10, 1]),
            ("UPDATE accounts SET balance = balance + $1 WHERE id = $2", [10, 2]),
        ])

        order_id = await runner.run_chain([
            lambda _: ("INSERT INTO orders (total) VALUES ($1) RETURNING id", [99]),
            lambda result: result.rows[0]["id"],
        ])
    """

    def __init__(
        self,
        driver: StoreDriver,
        gate: ConnectionGate,
        *,
        statement_timeout: float | None = None,
    ):
        self._driver = driver
        self._gate = gate
        self._statement_timeout = statement_timeout

    async def run_all(
        self, statements: Iterable[Any], callback: Callback | None = None
    ) -> None:
        """
        Execute independent statements in one transaction.

        Effects are ordered only relative to BEGIN and COMMIT. When several
        statements fail, the caller receives the error of the earliest one in
        the given order.
        """
        prepared = [self._driver.prepare(Statement.coerce(s)) for s in statements]

        async def work(session: StoreSession) -> None:
            outcomes = await asyncio.gather(
                *(self._execute(session, statement) for statement in prepared),
                return_exceptions=True,
            )
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome

        return await with_callback(self._transact(work), callback)

    async def run_chain(
        self, steps: Iterable[Step], callback: Callback | None = None
    ) -> Any:
        """
        Execute data-dependent steps strictly in order in one transaction.

        Each step receives the previous step's result (the first receives
        None) and may be a plain or async function.

        Returns:
            The last step's result
        """
        steps = list(steps)

        async def work(session: StoreSession) -> Any:
            result = None
            for step in steps:
                value = step(result)
                if inspect.isawaitable(value):
                    value = await value
                if is_statement(value):
                    statement = self._driver.prepare(Statement.coerce(value))
                    result = await self._execute(session, statement)
                else:
                    result = value
            return result

        return await with_callback(self._transact(work), callback)

    async def _execute(self, session: StoreSession, statement: Statement) -> Any:
        return await bounded(
            session.execute(statement), self._statement_timeout, statement.command
        )

    async def _transact(self, work: Callable[[StoreSession], Awaitable[Any]]) -> Any:
        with bound_context(
            store=self._driver.name, transaction_id=uuid.uuid4().hex[:8]
        ):
            connection = await self._gate.acquire()
            session = await self._driver.open_session(connection)

            await session.pause_flow_control()
            try:
                result = await self._in_transaction(session, work)
            except BaseException:
                await self._resume(session, failing=True)
                raise
            await self._resume(session)
            return result

    async def _in_transaction(
        self, session: StoreSession, work: Callable[[StoreSession], Awaitable[Any]]
    ) -> Any:
        logger = get_logger(__name__)
        try:
            await session.begin()
            logger.debug("BEGIN")
            result = await work(session)
            await session.commit()
        except Exception as e:
            logger.warning(f"Transaction failed, rolling back: {e}")
            await self._rollback(session, e)
            raise
        logger.debug("COMMIT")
        return result

    async def _rollback(self, session: StoreSession, error: Exception) -> None:
        logger = get_logger(__name__)
        try:
            await session.rollback()
        except Exception as rollback_error:
            # The caller still receives the original error
            logger.error(f"ROLLBACK failed: {rollback_error}")
            error.add_note(f"ROLLBACK also failed: {rollback_error!r}")
        else:
            logger.debug("ROLLBACK")

    async def _resume(self, session: StoreSession, failing: bool = False) -> None:
        try:
            await session.resume_flow_control()
        except Exception as e:
            if not failing:
                raise
            get_logger(__name__).error(
                f"Resuming session after failed transaction raised: {e}"
            )
