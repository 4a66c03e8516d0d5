"""
Timeout wrapper for data-layer calls.

Every query and mutation runs exactly once; there is no retry. A call that
exceeds its budget triggers the abandon callback (rolling back the open
transaction) and surfaces a TIMEOUT error.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from schemamcp.core.errors import OperationTimeoutError
from schemamcp.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_MS = 10_000


async def with_timeout(
    operation: Awaitable[T],
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    *,
    label: str = "Operation",
    on_timeout: Callable[[], Awaitable[None]] | None = None,
) -> T:
    """
    Await ``operation`` for at most ``timeout_ms`` milliseconds.

    Args:
        operation: The awaitable to run
        timeout_ms: Budget in milliseconds
        label: Name used in the error message
        on_timeout: Async callback run before the error is raised

    Raises:
        OperationTimeoutError: The budget was exceeded
    """
    try:
        return await asyncio.wait_for(operation, timeout=timeout_ms / 1000)
    except asyncio.TimeoutError:
        logger.warning("Call timed out", label=label, timeout_ms=timeout_ms)
        if on_timeout is not None:
            try:
                await on_timeout()
            except Exception:
                logger.exception("Abandon callback failed", label=label)
        raise OperationTimeoutError(label, timeout_ms) from None
