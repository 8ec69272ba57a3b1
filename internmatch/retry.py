"""
Retry logic with exponential backoff for handling transient failures.

Wraps calls to the persistence collaborators, which may fail while a
store is briefly unavailable. Works for plain functions and coroutines.
"""

import asyncio
import functools
import time
from typing import Callable, Optional, Tuple, Type


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


def _delays(max_retries: int, base_delay: float, max_delay: float, exponential_base: float):
    delay = base_delay
    for _ in range(max_retries):
        yield min(delay, max_delay)
        delay *= exponential_base


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
):
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts (0 = no retries)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential calculation (delay *= base)
        exceptions: Tuple of exceptions to catch and retry
        on_retry: Optional callback function(attempt, exception, delay)

    Coroutine functions are awaited and back off with asyncio.sleep, so a
    retrying load never blocks the event loop.

    Example:
        @exponential_backoff(max_retries=3, base_delay=0.5, exceptions=(StoreUnavailableError,))
        async def load_candidate(candidate_id):
            return await store.load_candidate(candidate_id)
    """
    def decorator(func: Callable) -> Callable:
        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                delays = _delays(max_retries, base_delay, max_delay, exponential_base)
                attempt = 0
                while True:
                    try:
                        return await func(*args, **kwargs)
                    except exceptions as e:
                        attempt += 1
                        current_delay = next(delays, None)
                        if current_delay is None:
                            raise RetryError(
                                f"Failed after {max_retries + 1} attempts: {str(e)}"
                            ) from e
                        if on_retry:
                            on_retry(attempt, e, current_delay)
                        await asyncio.sleep(current_delay)

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delays = _delays(max_retries, base_delay, max_delay, exponential_base)
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    attempt += 1
                    current_delay = next(delays, None)
                    if current_delay is None:
                        raise RetryError(
                            f"Failed after {max_retries + 1} attempts: {str(e)}"
                        ) from e
                    if on_retry:
                        on_retry(attempt, e, current_delay)
                    time.sleep(current_delay)

        return wrapper
    return decorator
