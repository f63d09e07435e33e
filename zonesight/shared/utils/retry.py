"""
Shared retry and fallback logic for external calls.

Provides an exponential-backoff wrapper for async operations (AI calls,
chart captures) and a sibling wrapper that substitutes a deterministic
local result when the primary operation is unavailable.
"""

import asyncio
import random
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from loguru import logger


# Default configuration
DEFAULT_RETRIES = 3
DEFAULT_MIN_DELAY = 2.0
DEFAULT_FACTOR = 2.0
DEFAULT_JITTER_PCT = 0.0


T = TypeVar('T')
F = TypeVar('F', bound=Callable[..., Awaitable[Any]])

FailedAttemptHook = Callable[[int, int, BaseException], None]


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    retries: int = DEFAULT_RETRIES,
    min_delay: float = DEFAULT_MIN_DELAY,
    factor: float = DEFAULT_FACTOR,
    jitter_pct: float = DEFAULT_JITTER_PCT,
    operation_name: str = "operation",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    on_failed_attempt: Optional[FailedAttemptHook] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run an async operation, retrying failures with exponential backoff.

    `retries` is the total number of attempts. After the n-th failed attempt
    (n < retries) the failure is reported and the wrapper sleeps
    min_delay * factor ** (n - 1) seconds. Once all attempts have failed the
    last error is re-raised unchanged.

    Args:
        operation: Zero-argument coroutine factory
        retries: Total attempts allowed (values below 1 are treated as 1)
        min_delay: Delay in seconds after the first failure
        factor: Backoff multiplier applied per further failure
        jitter_pct: Random jitter percentage (0-1) added to each delay
        operation_name: Name used in log lines
        retry_on: Exception types that trigger a retry; others propagate at once
        on_failed_attempt: Optional hook(attempt, retries, error) called before sleeping
        sleep: Awaitable sleep function (injectable for tests)

    Returns:
        The operation's result

    Example:
        result = await with_retry(lambda: provider.analyze(capture, prompt),
                                  retries=3, min_delay=2.0)
    """
    attempts = max(1, int(retries))
    attempt = 0

    while True:
        attempt += 1
        try:
            return await operation()
        except retry_on as e:
            if attempt >= attempts:
                logger.error(f"{operation_name} failed after {attempts} attempt(s): {e}")
                raise

            delay = min_delay * (factor ** (attempt - 1))
            if jitter_pct:
                delay += delay * jitter_pct * random.random()

            logger.warning(
                f"{operation_name} failed, retrying in {delay:.2f}s "
                f"(attempt {attempt}/{attempts}): {e}"
            )
            if on_failed_attempt is not None:
                on_failed_attempt(attempt, attempts, e)
            await sleep(delay)


def retry_async(
    retries: int = DEFAULT_RETRIES,
    min_delay: float = DEFAULT_MIN_DELAY,
    factor: float = DEFAULT_FACTOR,
    jitter_pct: float = DEFAULT_JITTER_PCT,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> Callable[[F], F]:
    """
    Decorator form of with_retry for async functions.

    Example:
        @retry_async(retries=5, min_delay=1.0)
        async def fetch_chart():
            ...
    """
    def decorator(func: F) -> F:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            return await with_retry(
                lambda: func(*args, **kwargs),
                retries=retries,
                min_delay=min_delay,
                factor=factor,
                jitter_pct=jitter_pct,
                operation_name=func.__qualname__,
                retry_on=retry_on,
            )

        return wrapper  # type: ignore
    return decorator


async def with_fallback(
    primary: Callable[[], Awaitable[T]],
    fallback: Callable[[], Awaitable[T]],
    enabled: bool,
    operation_name: str = "operation",
) -> T:
    """
    Run the primary operation, substituting the fallback result on failure.

    When `enabled` is False the primary error propagates. When the fallback
    itself fails, the fallback's error propagates.
    """
    try:
        return await primary()
    except Exception as e:
        if not enabled:
            raise
        logger.warning(f"{operation_name} unavailable ({e}), using local fallback")

    result = await fallback()
    logger.info(f"{operation_name} fallback completed")
    return result
