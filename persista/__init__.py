"""
persista - async persistence shim for application models

Attaches find/save/remove/transaction operations to model classes, backed by
MongoDB (Motor) or PostgreSQL (SQLAlchemy asyncio + asyncpg).

Clean Import Interface:
- init() / StoreContext own the connection for one store
- Repositories and bind() wire models to a store
- Lower-level pieces live under persista.database
"""

from .core.config.settings import MongoConfig, PostgresConfig, settings
from .core.context import StoreContext, init
from .core.errors import (
    AlreadyConnectedError,
    ConnectionClosedError,
    ConnectionTimeoutError,
    NotConfiguredError,
    PersistaError,
    RecordNotFoundError,
    StatementTimeoutError,
    UnsupportedStatementError,
)
from .database.statement import Statement, StatementBuilder
from .models import MongoRepository, PostgresRepository, RecordModel, bind

__version__ = settings.version

__all__ = [
    # Store context
    "init",
    "StoreContext",
    "MongoConfig",
    "PostgresConfig",
    # Statements
    "Statement",
    "StatementBuilder",
    # Models
    "bind",
    "RecordModel",
    "MongoRepository",
    "PostgresRepository",
    # Errors
    "PersistaError",
    "NotConfiguredError",
    "AlreadyConnectedError",
    "ConnectionClosedError",
    "ConnectionTimeoutError",
    "StatementTimeoutError",
    "UnsupportedStatementError",
    "RecordNotFoundError",
]
