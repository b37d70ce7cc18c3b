"""Bounded exponential backoff for transient store errors."""

import asyncio
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError

from ..errors import PersistenceFailure
from .logging import get_logger

logger = get_logger("utils.retry")

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    """True for errors worth retrying: lost connections, locked databases, timeouts."""
    if isinstance(exc, OperationalError):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return isinstance(exc, (ConnectionError, TimeoutError, asyncio.TimeoutError))


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    name: str,
    max_attempts: int = 3,
    backoff_base: float = 0.05,
) -> T:
    """Run ``operation`` and retry transient failures.

    Waits ``backoff_base * 2**n`` between attempts. Non-transient exceptions
    propagate untouched; a transient failure on the last attempt is raised as
    ``PersistenceFailure``.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as e:
            if not is_transient(e):
                raise
            if attempt >= max_attempts:
                logger.error("persistence_retries_exhausted", operation=name, attempts=attempt, error=str(e))
                raise PersistenceFailure(name, attempt, str(e)) from e
            delay = backoff_base * (2 ** (attempt - 1))
            logger.warning("persistence_retry", operation=name, attempt=attempt, delay=delay, error=str(e))
            await asyncio.sleep(delay)
