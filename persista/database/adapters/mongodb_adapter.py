"""
MongoDB Store Driver

Document store implementation on Motor. Statements name an operation
(``find``, ``find_one``, ``insert``, ``update``, ``remove``, ``count``) and
carry the target collection; string ``_id`` values that look like ObjectIds
are converted before they reach a filter.
"""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from bson import ObjectId
from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)

from persista.core.config.settings import MongoConfig
from persista.core.errors import UnsupportedStatementError
from persista.core.logging.logger import get_logger

from ..statement import Statement

DEFAULT_PK = "_id"

# Operations whose parameters are (filter, ...) and (filter, document)
_FILTER_OPERATIONS = ("find", "find_one", "update", "remove", "count")
OPERATIONS = ("find", "find_one", "insert", "update", "remove", "count")


def to_object_id(value: Any) -> Any:
    """Convert a 24-hex-digit string to ObjectId; anything else is returned as is."""
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def _with_object_id(document: Any) -> Any:
    if isinstance(document, Mapping) and isinstance(document.get(DEFAULT_PK), str):
        converted = dict(document)
        converted[DEFAULT_PK] = to_object_id(document[DEFAULT_PK])
        return converted
    return document


@dataclass(frozen=True)
class WriteAck:
    """Acknowledgment of an update or remove."""

    acknowledged: bool
    matched: int = 0
    modified: int = 0
    deleted: int = 0


@dataclass
class MongoConnection:
    """The shared Motor client and the configured database."""

    client: AsyncIOMotorClient
    database: AsyncIOMotorDatabase

    def collection(self, name: str) -> AsyncIOMotorCollection:
        return self.database[name]

    async def execute(
        self, statement: Statement, session: AsyncIOMotorClientSession | None = None
    ) -> Any:
        if not statement.target:
            raise ValueError(f"Document operation '{statement.command}' needs a collection")
        coll = self.collection(statement.target)
        params = list(statement.params)
        command = statement.command

        if command == "find":
            query, options = _filter_and_options(params)
            cursor = coll.find(query, session=session, **options)
            return await cursor.to_list(length=None)

        if command == "find_one":
            query, options = _filter_and_options(params)
            return await coll.find_one(query, session=session, **options)

        if command == "insert":
            result = await coll.insert_one(params[0], session=session)
            return result.inserted_id

        if command == "update":
            query, document = params[0], params[1]
            result = await coll.replace_one(query, document, session=session)
            return WriteAck(
                acknowledged=result.acknowledged,
                matched=result.matched_count,
                modified=result.modified_count,
            )

        if command == "remove":
            query = params[0] if params else {}
            result = await coll.delete_many(query, session=session)
            return WriteAck(acknowledged=result.acknowledged, deleted=result.deleted_count)

        if command == "count":
            query = params[0] if params else {}
            return await coll.count_documents(query, session=session)

        raise UnsupportedStatementError(command, OPERATIONS)


def _filter_and_options(params: list[Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    query = params[0] if params and params[0] is not None else {}
    options = params[1] if len(params) > 1 and params[1] is not None else {}
    return query, dict(options)


class MongoDBSession:
    """
    Transaction session backed by a Motor client session.

    Operations issued concurrently inside one transaction are serialized,
    since a client session must not be used by two operations at once.
    """

    def __init__(self, connection: MongoConnection):
        self._connection = connection
        self._session: AsyncIOMotorClientSession | None = None
        self._lock = asyncio.Lock()

    def _require(self) -> AsyncIOMotorClientSession:
        if self._session is None:
            raise RuntimeError("MongoDBSession used before pause_flow_control()")
        return self._session

    async def pause_flow_control(self) -> None:
        self._session = await self._connection.client.start_session()

    async def resume_flow_control(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.end_session()

    async def begin(self) -> None:
        self._require().start_transaction()

    async def commit(self) -> None:
        await self._require().commit_transaction()

    async def rollback(self) -> None:
        session = self._session
        if session is not None and session.in_transaction:
            await session.abort_transaction()

    async def execute(self, statement: Statement) -> Any:
        async with self._lock:
            return await self._connection.execute(statement, session=self._require())


class MongoDBDriver:
    """MongoDB driver for the persista core."""

    name = "mongodb"

    def __init__(self, config: MongoConfig):
        self.config = config

    def _create_client(self) -> AsyncIOMotorClient:
        kwargs: dict[str, Any] = {}
        if self.config.has_credentials:
            kwargs.update(
                username=self.config.user,
                password=self.config.password,
                authSource=self.config.database,
            )
        return AsyncIOMotorClient(self.config.host, self.config.port, **kwargs)

    async def open(self) -> MongoConnection:
        """
        Connect and ping the server.

        Motor connects lazily; the ping forces the handshake, which also
        authenticates when credentials are configured.
        """
        client = self._create_client()
        try:
            await client.admin.command("ping")
        except Exception:
            client.close()
            raise
        return MongoConnection(client=client, database=client[self.config.database])

    async def close(self, connection: MongoConnection) -> None:
        connection.client.close()

    def prepare(self, statement: Statement) -> Statement:
        if statement.command not in OPERATIONS:
            raise UnsupportedStatementError(statement.command, OPERATIONS)

        params = list(statement.params)
        if statement.command in _FILTER_OPERATIONS and params:
            params[0] = _with_object_id(params[0])
        if statement.command == "update" and len(params) > 1:
            params[1] = _with_object_id(params[1])
        if statement.command == "insert" and params:
            params[0] = _with_object_id(params[0])
        return statement.with_params(params)

    async def execute(self, connection: MongoConnection, statement: Statement) -> Any:
        return await connection.execute(statement)

    async def open_session(self, connection: MongoConnection) -> MongoDBSession:
        return MongoDBSession(connection)

    async def health_check(self, connection: MongoConnection) -> bool:
        try:
            result = await connection.client.admin.command("ping")
            return bool(result.get("ok"))
        except Exception as e:
            get_logger(__name__).error(f"MongoDB health check failed: {e}")
            return False

    async def get_connection_info(self, connection: MongoConnection) -> dict[str, Any]:
        try:
            info = await connection.client.server_info()
            return {
                "driver": "motor",
                "database": "mongodb",
                "name": connection.database.name,
                "version": info.get("version"),
            }
        except Exception as e:
            return {
                "driver": "motor",
                "database": "mongodb",
                "error": str(e),
                "healthy": False,
            }
