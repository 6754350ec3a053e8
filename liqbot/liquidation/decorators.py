"""
Decorators for RPC calls.
"""

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, Tuple, Type

from web3.exceptions import Web3Exception

RETRYABLE_ERRORS: Tuple[Type[BaseException], ...] = (Web3Exception, OSError, asyncio.TimeoutError)


def retry_rpc(logger: logging.Logger, max_retries: int = 3, delay: float = 2) -> Callable:
    """
    Decorator to retry a coroutine on transient RPC errors.

    Args:
        logger: Logger instance for retry logging.
        max_retries: Maximum number of retry attempts.
        delay: Delay between retries in seconds.

    Returns:
        Decorated coroutine function with retry logic. The last error is re-raised
        once all attempts are used up.
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(1, max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except RETRYABLE_ERRORS as e:
                    if attempt == max_retries:
                        logger.error("RPC call %s failed after %s attempts.", func.__name__, max_retries)
                        raise

                    logger.warning(
                        "Error in RPC call %s, waiting %s seconds before retrying. Attempt %s/%s: %s",
                        func.__name__, delay, attempt, max_retries, e,
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
