"""
Store and transaction context using contextvars for automatic propagation.

The transaction runner binds a transaction id for the duration of a
transaction; every log line emitted from inside it (including from the store
drivers) picks the id up without parameter passing.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_store_context: ContextVar[str | None] = ContextVar("store", default=None)
_transaction_context: ContextVar[str | None] = ContextVar(
    "transaction_id", default=None
)


@contextmanager
def bound_context(
    store: str | None = None, transaction_id: str | None = None
) -> Iterator[None]:
    """
    Bind store and/or transaction id for the duration of a block.

    Usage::

        with bound_context(store="postgresql", transaction_id="1a2b3c4d"):
            logger.info("BEGIN")  # [S:postgresql][TX:1a2b3c4d] BEGIN
    """
    tokens = []
    if store is not None:
        tokens.append((_store_context, _store_context.set(store)))
    if transaction_id is not None:
        tokens.append((_transaction_context, _transaction_context.set(transaction_id)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def get_current_store_context() -> str | None:
    """
    Get the current store name from context variables.

    Returns:
        Current store name, or None if not set
    """
    return _store_context.get()


def get_current_transaction_context() -> str | None:
    """
    Get the current transaction id from context variables.

    Returns:
        Current transaction id, or None outside a transaction
    """
    return _transaction_context.get()


def clear_context() -> None:
    """
    Clear the store and transaction context.

    Context is isolated per task already; this is mostly useful in tests.
    """
    _store_context.set(None)
    _transaction_context.set(None)


def get_context_info() -> dict[str, str | None]:
    """Get current context information for debugging."""
    return {
        "store": get_current_store_context(),
        "transaction_id": get_current_transaction_context(),
    }
