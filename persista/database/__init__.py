"""
persista Database Components

Connection acquisition, statement execution and transactions shared by the
relational and document stores.

Usage:
    from persista.database import ConnectionGate, StatementExecutor, TransactionRunner
    from persista.database import Statement, StatementBuilder
"""

from .adapter import StoreDriver, StoreSession
from .encoding import (
    array_placeholders,
    decode_composite,
    encode_param,
    encode_params,
)
from .executor import StatementExecutor
from .gate import ConnectionGate
from .statement import Statement, StatementBuilder, is_statement
from .transaction import TransactionRunner

__all__ = [
    # Protocols
    "StoreDriver",
    "StoreSession",
    # Core
    "ConnectionGate",
    "StatementExecutor",
    "TransactionRunner",
    # Statements
    "Statement",
    "StatementBuilder",
    "is_statement",
    "encode_param",
    "encode_params",
    "array_placeholders",
    "decode_composite",
]
