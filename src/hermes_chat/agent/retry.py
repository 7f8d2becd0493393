"""Bounded fixed-delay retry for provider calls."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from hermes_chat.errors import ConfigurationError

T = TypeVar("T")

# Retrying cannot fix these
NON_RETRYABLE: tuple[type[BaseException], ...] = (ConfigurationError,)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 2,
    delay: float = 1.0,
    on_retry: Callable[[int, int, Exception], None] | None = None,
) -> T:
    """Run ``operation``, retrying up to ``max_retries`` times on failure.

    Args:
        operation: Coroutine factory, called once per attempt
        max_retries: Retries after the first attempt
        delay: Seconds to wait before each retry
        on_retry: Called as on_retry(attempt, max_retries, error) before
                  each retry, with attempt counting from 1

    Returns:
        The operation's result

    Raises:
        Exception: The last error once retries are exhausted
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except NON_RETRYABLE:
            raise
        except Exception as e:
            if attempt >= max_retries:
                raise
            attempt += 1
            if on_retry is not None:
                on_retry(attempt, max_retries, e)
            await asyncio.sleep(delay)
