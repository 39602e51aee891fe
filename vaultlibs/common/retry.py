"""Exponential backoff for async calls to flaky collaborators."""

import asyncio
from typing import Any, Awaitable, Callable, Tuple, Type

import structlog

from .circuit_breaker import CircuitBreakerError

logger = structlog.get_logger("retry")


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry number ``attempt`` (1-based), doubling up to ``max_delay``."""
    return min(base_delay * 2 ** (attempt - 1), max_delay)


async def call_with_retry(
    func: Callable[[], Awaitable[Any]],
    operation_name: str,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 8.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)
) -> Any:
    """Await ``func()`` until it succeeds, retrying errors listed in ``retry_on``.

    ``CircuitBreakerError`` is never retried. The last error is re-raised
    once ``max_attempts`` calls have failed.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 0
    while True:
        attempt += 1
        try:
            return await func()
        except CircuitBreakerError:
            logger.warning("Circuit open, not retrying", operation=operation_name, attempt=attempt)
            raise
        except retry_on as exc:
            if attempt >= max_attempts:
                logger.error("Retries exhausted", operation=operation_name, attempts=attempt, error=str(exc))
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                "Retrying after failure",
                operation=operation_name,
                attempt=attempt,
                delay_seconds=delay,
                error=str(exc)
            )
            await asyncio.sleep(delay)
