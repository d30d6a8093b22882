"""
PostgreSQL Store Driver

Provides the relational store implementation on SQLAlchemy's async engine
using asyncpg as the async driver. Statements are raw SQL with ``$n``
placeholders, sent through ``exec_driver_sql``.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncTransaction,
    create_async_engine,
)

from persista.core.config.settings import PostgresConfig
from persista.core.logging.logger import get_logger

from ..encoding import array_placeholders, encode_params
from ..statement import Statement


@dataclass
class QueryResult:
    """Rows returned by a statement plus the affected row count."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    rowcount: int = -1

    def first(self) -> dict[str, Any] | None:
        return self.rows[0] if self.rows else None


def _to_result(result: CursorResult) -> QueryResult:
    rows = [dict(row) for row in result.mappings().all()] if result.returns_rows else []
    return QueryResult(rows=rows, rowcount=result.rowcount)


def _driver_params(statement: Statement) -> tuple[Any, ...] | None:
    return tuple(statement.params) if statement.params else None


class PostgreSQLSession:
    """
    Transaction session on a connection checked out from the engine.

    Pausing flow control checks a connection out and holds it for this
    transaction alone; resuming returns it to the pool. Statements issued
    concurrently are serialized, since asyncpg runs one operation per
    connection at a time.
    """

    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._connection: AsyncConnection | None = None
        self._transaction: AsyncTransaction | None = None
        self._lock = asyncio.Lock()

    def _require(self) -> AsyncConnection:
        if self._connection is None:
            raise RuntimeError("PostgreSQLSession used before pause_flow_control()")
        return self._connection

    async def pause_flow_control(self) -> None:
        self._connection = await self._engine.connect()

    async def resume_flow_control(self) -> None:
        connection, self._connection = self._connection, None
        self._transaction = None
        if connection is not None:
            await connection.close()

    async def begin(self) -> None:
        self._transaction = await self._require().begin()

    async def commit(self) -> None:
        if self._transaction is None:
            raise RuntimeError("COMMIT without BEGIN")
        transaction, self._transaction = self._transaction, None
        await transaction.commit()

    async def rollback(self) -> None:
        transaction, self._transaction = self._transaction, None
        if transaction is not None and transaction.is_active:
            await transaction.rollback()

    async def execute(self, statement: Statement) -> QueryResult:
        async with self._lock:
            result = await self._require().exec_driver_sql(
                statement.command, _driver_params(statement)
            )
        return _to_result(result)


class PostgreSQLDriver:
    """
    PostgreSQL driver for the persista core.

    The shared connection is an AsyncEngine; single statements borrow a pooled
    connection and commit, transactions hold one connection for their whole
    duration.
    """

    name = "postgresql"

    def __init__(self, config: PostgresConfig):
        self.config = config

    def _create_engine(self) -> AsyncEngine:
        """
        Create async engine with configured pool settings.

        Returns:
            Configured AsyncEngine instance
        """
        connect_args = {}
        if self.config.statement_cache_size is not None:
            connect_args["statement_cache_size"] = self.config.statement_cache_size

        return create_async_engine(
            self.config.url,
            pool_size=self.config.pool_size,
            max_overflow=self.config.max_overflow,
            pool_timeout=self.config.pool_timeout,
            pool_recycle=self.config.pool_recycle,
            pool_pre_ping=self.config.pool_pre_ping,
            echo=self.config.echo,
            connect_args=connect_args,
        )

    async def open(self) -> AsyncEngine:
        """
        Create the engine and validate it with SELECT 1.

        Credentials travel in the URL, so the validation query is also the
        authentication step.
        """
        engine = self._create_engine()
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception:
            await engine.dispose()
            raise
        return engine

    async def close(self, engine: AsyncEngine) -> None:
        await engine.dispose()

    def prepare(self, statement: Statement) -> Statement:
        """
        Encode sequence parameters as composite literals.

        A literal reaches PostgreSQL as text, so its placeholder needs a text
        cast before the array cast: ``WHERE id = ANY($1::text::int[])``. A
        placeholder cast directly to an array type (``ANY($1::int[])``) keeps
        its sequence, which asyncpg binds natively.
        """
        native = array_placeholders(statement.command)
        return statement.with_params(encode_params(statement.params, native))

    async def execute(self, engine: AsyncEngine, statement: Statement) -> QueryResult:
        async with engine.connect() as conn:
            result = _to_result(
                await conn.exec_driver_sql(statement.command, _driver_params(statement))
            )
            await conn.commit()
        return result

    async def open_session(self, engine: AsyncEngine) -> PostgreSQLSession:
        return PostgreSQLSession(engine)

    async def health_check(self, engine: AsyncEngine) -> bool:
        """
        Perform PostgreSQL health check.

        Returns:
            True if database is healthy and responsive
        """
        try:
            async with engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                return result.scalar() == 1
        except Exception as e:
            get_logger(__name__).error(f"Database health check failed: {e}")
            return False

    async def get_connection_info(self, engine: AsyncEngine) -> dict[str, Any]:
        """
        Get PostgreSQL connection information.

        Returns:
            Dictionary with PostgreSQL connection details
        """
        try:
            async with engine.connect() as conn:
                version_result = await conn.execute(text("SELECT version()"))
                version = version_result.scalar()

                return {
                    "driver": "asyncpg",
                    "database": "postgresql",
                    "version": version,
                    "pool_size": engine.pool.size(),
                    "pool_checked_in": engine.pool.checkedin(),
                    "pool_checked_out": engine.pool.checkedout(),
                }
        except Exception as e:
            return {
                "driver": "asyncpg",
                "database": "postgresql",
                "error": str(e),
                "healthy": False,
            }
