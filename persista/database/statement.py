"""
Statements and the relational statement builder.

A Statement is the unit of work sent to a store: SQL text plus positional
parameters for the relational store, or an operation name plus arguments and
a target collection for the document store.
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


@dataclass(frozen=True)
class Statement:
    """
    Immutable (command, params) pair.

    Attributes:
        command: SQL text with ``$n`` placeholders, or a document operation name
        params: Ordered parameters
        target: Collection name for document operations
    """

    command: str
    params: tuple[Any, ...] = ()
    target: str | None = None

    def with_params(self, params: Any) -> "Statement":
        """Return a copy carrying ``params``; a single mapping becomes one parameter."""
        if params is None:
            return replace(self, params=())
        if isinstance(params, Mapping):
            return replace(self, params=(params,))
        return replace(self, params=tuple(params))

    @classmethod
    def coerce(cls, value: Any) -> "Statement":
        """
        Accept a Statement, bare command text or a ``(text, params)`` pair.

        Raises:
            TypeError: If the value cannot describe a statement
        """
        if isinstance(value, Statement):
            return value
        if isinstance(value, str):
            return cls(value)
        if is_statement(value):
            command, params = value
            return cls(command).with_params(params)
        raise TypeError(f"Cannot build a statement from {type(value).__name__}")


def is_statement(value: Any) -> bool:
    """Whether a value describes a statement (used by chained transactions)."""
    if isinstance(value, Statement):
        return True
    return (
        isinstance(value, (tuple, list))
        and len(value) == 2
        and isinstance(value[0], str)
        and (value[1] is None or isinstance(value[1], (Sequence, Mapping)))
        and not isinstance(value[1], str)
    )


def _identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


class StatementBuilder:
    """
    Builds parameterized SQL for one table.

    Column names are validated as plain identifiers; values always travel as
    ``$n`` parameters in a parallel list.

    Example:
        builder = StatementBuilder("users", primary_key="id")
        builder.insert({"name": "Ada"})
        # Statement("INSERT INTO users (name) VALUES ($1) RETURNING id", ("Ada",))
    """

    def __init__(self, table: str, primary_key: str | None = "id"):
        self.table = _identifier(table)
        self.primary_key = _identifier(primary_key) if primary_key else None

    def select(
        self,
        where: Mapping[str, Any] | None = None,
        *,
        columns: Sequence[str] | None = None,
        order_by: str | None = None,
    ) -> Statement:
        column_sql = ", ".join(_identifier(c) for c in columns) if columns else "*"
        sql = f"SELECT {column_sql} FROM {self.table}"
        params: list[Any] = []
        if where:
            clauses = []
            for column, value in where.items():
                params.append(value)
                clauses.append(f"{_identifier(column)} = ${len(params)}")
            sql += " WHERE " + " AND ".join(clauses)
        if order_by:
            sql += f" ORDER BY {_identifier(order_by)}"
        return Statement(sql, tuple(params))

    def insert(self, values: Mapping[str, Any], *, returning: str | None = None) -> Statement:
        """INSERT returning the primary key, or ``returning`` ("*" for the whole row)."""
        if values:
            columns = ", ".join(_identifier(c) for c in values)
            placeholders = ", ".join(f"${i}" for i in range(1, len(values) + 1))
            sql = f"INSERT INTO {self.table} ({columns}) VALUES ({placeholders})"
        else:
            sql = f"INSERT INTO {self.table} DEFAULT VALUES"
        sql += self._returning(returning)
        return Statement(sql, tuple(values.values()))

    def update(self, values: Mapping[str, Any], *, returning: str | None = None) -> Statement:
        """UPDATE the row whose primary key is ``values[primary_key]``."""
        if not self.primary_key:
            raise ValueError(f"Table {self.table} has no primary key to update by")
        if values.get(self.primary_key) is None:
            raise ValueError(f"Update requires a value for {self.primary_key}")

        params: list[Any] = []
        assignments = []
        for column, value in values.items():
            if column == self.primary_key:
                continue
            params.append(value)
            assignments.append(f"{_identifier(column)} = ${len(params)}")
        if not assignments:
            raise ValueError(f"Nothing to update in {self.table}")

        params.append(values[self.primary_key])
        sql = (
            f"UPDATE {self.table} SET {', '.join(assignments)}"
            f" WHERE {self.primary_key} = ${len(params)}"
        )
        sql += self._returning(returning)
        return Statement(sql, tuple(params))

    def delete(self, key: Any) -> Statement:
        if not self.primary_key:
            raise ValueError(f"Table {self.table} has no primary key to delete by")
        return Statement(f"DELETE FROM {self.table} WHERE {self.primary_key} = $1", (key,))

    def _returning(self, returning: str | None) -> str:
        column = returning or self.primary_key
        if not column:
            return ""
        if column != "*":
            _identifier(column)
        return f" RETURNING {column}"
