"""
Asyncio helpers used by the provisioning backends.

- ``run_in_executor`` moves blocking SDK calls (boto3) off the event loop
- ``timeout_wrapper`` bounds input waits and backend operations
"""

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_in_executor(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """
    Run a blocking callable in the loop's default thread pool.

    Example:
        cluster = await run_in_executor(self._create_cluster, name, inputs)
    """
    call = functools.partial(func, *args, **kwargs)
    return await asyncio.get_running_loop().run_in_executor(None, call)


async def timeout_wrapper(coro: Awaitable[T], timeout_seconds: float = 30) -> T:
    """
    Await ``coro``, cancelling it after ``timeout_seconds``.

    Raises:
        asyncio.TimeoutError: If the deadline passes first
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.error(f"Operation did not finish within {timeout_seconds} seconds")
        raise
