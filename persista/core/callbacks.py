"""
Callback bridging for awaitable operations.

Every public operation is a coroutine. Callers that prefer completion
callbacks pass ``callback(error, result)``; the error is then delivered to the
callback instead of being raised.
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

T = TypeVar("T")

Callback = Callable[[BaseException | None, Any], Any]


async def with_callback(
    awaitable: Awaitable[T], callback: Callback | None = None
) -> T | None:
    """
    Await an operation and optionally report its outcome to a callback.

    Args:
        awaitable: The operation to run
        callback: Optional ``callback(error, result)``

    Returns:
        The operation result, or None when it failed and a callback took the error

    Raises:
        Exception: The operation's error when no callback is given
    """
    if callback is None:
        return await awaitable

    try:
        result = await awaitable
    except Exception as exc:
        callback(exc, None)
        return None

    callback(None, result)
    return result
