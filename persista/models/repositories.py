"""
Store repositories.

A repository turns the generic StoreContext operations into persistence
methods for one collection or table and maps raw records to model instances.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from bson import ObjectId

from persista.core.callbacks import Callback, with_callback
from persista.core.errors import RecordNotFoundError
from persista.database.adapters.mongodb_adapter import DEFAULT_PK, WriteAck, to_object_id
from persista.database.adapters.postgresql_adapter import QueryResult
from persista.database.statement import Statement, StatementBuilder
from persista.database.transaction import Step

from .capability import ModelCodec

if TYPE_CHECKING:
    from persista.core.context import StoreContext

M = TypeVar("M")


class MongoRepository(Generic[M]):
    """
    Document-store persistence for one collection.

    Example:
        users = MongoRepository(context, "users", model=User)
        ada = await users.find_one({"_id": "507f191e810c19729de860ea"})
    """

    def __init__(
        self,
        context: StoreContext,
        collection_name: str,
        model: type[M] | None = None,
        primary_key: str = DEFAULT_PK,
    ):
        self.context = context
        self.collection_name = collection_name
        self.primary_key = primary_key
        self.codec: ModelCodec[M] = ModelCodec(model)

    @staticmethod
    def to_id(id_as_string: str) -> ObjectId:
        """
        Convert a string id to an ObjectId.

        Raises:
            bson.errors.InvalidId: If the string is not a valid ObjectId
        """
        return ObjectId(id_as_string)

    def _statement(self, command: str, *params: Any) -> Statement:
        return Statement(command, params, target=self.collection_name)

    def _key_query(self, key: Any) -> dict[str, Any]:
        return {self.primary_key: to_object_id(key)}

    async def find_all(
        self,
        query: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
        callback: Callback | None = None,
    ) -> list[M]:
        """Return every matching document as a model instance."""

        async def _find_all() -> list[M]:
            documents = await self.context.execute(
                self._statement("find", dict(query or {}), dict(options or {}))
            )
            return [self.codec.construct(doc) for doc in documents]

        return await with_callback(_find_all(), callback)

    async def find_one(
        self,
        query: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
        callback: Callback | None = None,
    ) -> M | None:
        """Return the first matching document, or None when nothing matches."""

        async def _find_one() -> M | None:
            document = await self.context.execute(
                self._statement("find_one", dict(query or {}), dict(options or {}))
            )
            if document is None:
                return None
            return self.codec.construct(document)

        return await with_callback(_find_one(), callback)

    async def save(self, target: Any, callback: Callback | None = None) -> M | None:
        """
        Insert or replace a document.

        Without a primary key the document is inserted and a new model carrying
        the store-assigned id is returned. With one, the stored document is
        replaced and None is returned; the id is left untouched.
        """

        async def _save() -> M | None:
            document = self.codec.dump(target)
            key = document.get(self.primary_key)
            if key:
                key = to_object_id(key)
                document[self.primary_key] = key
                await self.context.execute(
                    self._statement("update", {self.primary_key: key}, document)
                )
                return None

            document.pop(self.primary_key, None)
            inserted_id = await self.context.execute(
                self._statement("insert", dict(document))
            )
            document[self.primary_key] = inserted_id
            return self.codec.construct(document)

        return await with_callback(_save(), callback)

    async def remove(self, key: Any, callback: Callback | None = None) -> WriteAck:
        """Remove the document with the given primary key."""
        return await self.context.execute(
            self._statement("remove", self._key_query(key)), callback=callback
        )


class PostgresRepository(Generic[M]):
    """
    Relational persistence for one table.

    Example:
        users = PostgresRepository(context, "users", model=User)
        new_id = await users.insert({"name": "Ada"})
        ada = await users.find_by_id(new_id)
    """

    def __init__(
        self,
        context: StoreContext,
        table_name: str,
        model: type[M] | None = None,
        primary_key: str = "id",
    ):
        self.context = context
        self.table_name = table_name
        self.primary_key = primary_key
        self.builder = StatementBuilder(table_name, primary_key)
        self.codec: ModelCodec[M] = ModelCodec(model)

    async def query(
        self, statement: Any, params: Any = None, callback: Callback | None = None
    ) -> QueryResult:
        return await self.context.execute(statement, params, callback)

    async def transaction(
        self, statements: Iterable[Any], callback: Callback | None = None
    ) -> None:
        return await self.context.run_all(statements, callback)

    async def step_transaction(
        self, steps: Iterable[Step], callback: Callback | None = None
    ) -> Any:
        return await self.context.run_chain(steps, callback)

    async def all(self, callback: Callback | None = None) -> list[M]:
        """Every row of the table ordered by primary key."""

        async def _all() -> list[M]:
            result = await self.context.execute(
                self.builder.select(order_by=self.primary_key)
            )
            return [self.codec.construct(row) for row in result.rows]

        return await with_callback(_all(), callback)

    async def find_by_id(self, key: Any, callback: Callback | None = None) -> M | None:
        async def _find_by_id() -> M | None:
            result = await self.context.execute(
                self.builder.select({self.primary_key: key})
            )
            row = result.first()
            return self.codec.construct(row) if row is not None else None

        return await with_callback(_find_by_id(), callback)

    def _values(self, target: Any) -> dict[str, Any]:
        values = self.codec.dump(target)
        if values.get(self.primary_key) is None:
            values.pop(self.primary_key, None)
        return values

    def insert_statement(self, target: Any) -> Statement:
        return self.builder.insert(self._values(target))

    async def insert(self, target: Any, callback: Callback | None = None) -> Any:
        """Insert a row and return its new primary key."""

        async def _insert() -> Any:
            result = await self.context.execute(self.insert_statement(target))
            return result.rows[0][self.primary_key]

        return await with_callback(_insert(), callback)

    def update_statement(self, target: Any) -> Statement:
        return self.builder.update(self._values(target))

    async def update(self, target: Any, callback: Callback | None = None) -> Any:
        """
        Update a row by primary key and return the key.

        Raises:
            RecordNotFoundError: If no row has that primary key
        """

        async def _update() -> Any:
            values = self._values(target)
            result = await self.context.execute(self.builder.update(values))
            row = result.first()
            if row is None:
                raise RecordNotFoundError(
                    self.table_name, self.primary_key, values.get(self.primary_key)
                )
            return row[self.primary_key]

        return await with_callback(_update(), callback)

    async def save(self, target: Any, callback: Callback | None = None) -> M | None:
        """
        Insert or update a row.

        Without a primary key the row is inserted and a new model built from
        the returned row is returned. With one, the row is updated and None
        is returned.
        """

        async def _save() -> M | None:
            values = self._values(target)
            if self.primary_key in values:
                await self.update(values)
                return None
            result = await self.context.execute(
                self.builder.insert(values, returning="*")
            )
            return self.codec.construct(result.rows[0])

        return await with_callback(_save(), callback)

    async def delete(self, key: Any, callback: Callback | None = None) -> QueryResult:
        return await self.context.execute(self.builder.delete(key), callback=callback)

    remove = delete

    def _fields(self) -> list[str]:
        model = self.codec.model
        if model is None or not hasattr(model, "fields"):
            raise TypeError(f"Model for {self.table_name} does not declare fields()")
        return list(model.fields())

    def namespace_fields(
        self, selector: str | None = None, added_fields: Sequence[str] | None = None
    ) -> list[str]:
        """
        Select-list entries aliasing each field with the table name.

        Example:
            users.namespace_fields("u")  # ["u.id AS users_id", "u.name AS users_name"]
        """
        selector = selector or self.table_name
        fields = self._fields() + list(added_fields or [])
        return [f"{selector}.{field} AS {self.table_name}_{field}" for field in fields]

    def parse_row(self, row: Mapping[str, Any]) -> M:
        """Build a model from a joined row produced with ``namespace_fields``."""
        fields = set(self._fields())
        namespace = re.compile(rf"^{re.escape(self.table_name)}_(\w+)$")
        record = {}
        for key, value in row.items():
            match = namespace.match(key)
            if match and match.group(1) in fields:
                record[match.group(1)] = value
        return self.codec.construct(record)
