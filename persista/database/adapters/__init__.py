"""
Store drivers.

- PostgreSQLDriver: relational store on SQLAlchemy asyncio + asyncpg
- MongoDBDriver: document store on Motor
"""

from .mongodb_adapter import MongoConnection, MongoDBDriver, MongoDBSession, WriteAck
from .postgresql_adapter import PostgreSQLDriver, PostgreSQLSession, QueryResult

__all__ = [
    "MongoConnection",
    "MongoDBDriver",
    "MongoDBSession",
    "PostgreSQLDriver",
    "PostgreSQLSession",
    "QueryResult",
    "WriteAck",
]
