"""Bounded invocation of units of work.

Provides timeout protection with:
- A worker thread for synchronous callables
- asyncio.wait_for for coroutine functions
- A single timeout error type for both
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class ServiceTimeoutError(Exception):
    """Raised when a unit of work exceeds its timeout."""

    def __init__(self, message: str = "", timeout: float = 0.0):
        super().__init__(message)
        self.timeout = timeout


def run_with_timeout(
    func: Callable[[], Any],
    timeout_seconds: float,
    name: str = "operation",
) -> Any:
    """Run a synchronous callable, giving up after timeout_seconds.

    The callable runs on a dedicated worker thread. On timeout the caller
    returns immediately; work that ignores cancellation keeps running in
    the background until it finishes on its own.

    Args:
        func: Zero-argument callable
        timeout_seconds: Timeout in seconds
        name: Label used in the error message

    Returns:
        The callable's result

    Raises:
        ServiceTimeoutError: If timeout is exceeded
        Exception: Whatever the callable raised
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="meshguard-call")
    future = executor.submit(func)
    try:
        return future.result(timeout=timeout_seconds)
    except FuturesTimeoutError:
        future.cancel()
        logger.warning(f"Timeout after {timeout_seconds}s in {name}")
        raise ServiceTimeoutError(
            f"{name} timed out after {timeout_seconds}s",
            timeout_seconds,
        ) from None
    finally:
        executor.shutdown(wait=False)


async def run_with_async_timeout(
    func: Callable[[], Awaitable[Any]],
    timeout_seconds: float,
    name: str = "operation",
) -> Any:
    """Await a coroutine function, cancelling it after timeout_seconds.

    Raises:
        ServiceTimeoutError: If timeout is exceeded
    """
    try:
        return await asyncio.wait_for(func(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning(f"Timeout after {timeout_seconds}s in {name}")
        raise ServiceTimeoutError(
            f"{name} timed out after {timeout_seconds}s",
            timeout_seconds,
        ) from None
