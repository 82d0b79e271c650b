import asyncio
import logging
from functools import wraps

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from app.core.config import settings
from app.core.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)


# Postgres deadlock_detected / serialization_failure: the losing
# transaction is rolled back by the server and can simply be run again
RETRYABLE_SQLSTATES = {"40P01", "40001"}


def sqlstate(exc: DBAPIError) -> str | None:
    # asyncpg's adapted errors expose `sqlstate`, psycopg's expose `pgcode`
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_unavailable(exc: Exception) -> bool:
    """Connectivity failures and lock conflicts the caller may retry. Constraint errors are not."""
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    if not isinstance(exc, DBAPIError):
        return False
    return bool(exc.connection_invalidated) or sqlstate(exc) in RETRYABLE_SQLSTATES


async def guarded(awaitable, timeout: float | None = None):
    """
    Await a storage call with a bounded timeout.

    Timeouts and connection errors surface as StorageUnavailableError.
    """
    timeout = settings.storage_timeout_seconds if timeout is None else timeout
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise StorageUnavailableError(f"Storage call timed out after {timeout}s") from e
    except DBAPIError as e:
        if is_unavailable(e):
            raise StorageUnavailableError(f"Storage unavailable: {e.orig}") from e
        raise


def retry_on_unavailable(max_attempts: int | None = None, backoff: float | None = None):
    """
    Retry a service coroutine on StorageUnavailableError.

    Only for methods of objects holding a `session`: the session is rolled
    back between attempts so every attempt starts a clean transaction.
    """
    def deco(fn):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            attempts = max_attempts or settings.storage_retry_attempts
            delay = settings.storage_retry_backoff_seconds if backoff is None else backoff
            attempt = 0
            while True:
                attempt += 1
                try:
                    return await fn(self, *args, **kwargs)
                except StorageUnavailableError as e:
                    await self.session.rollback()
                    if attempt >= attempts:
                        logger.error(f"{fn.__qualname__} gave up after {attempt} attempts: {e}")
                        raise
                    logger.warning(f"{fn.__qualname__} attempt {attempt} failed, retrying: {e}")
                    await asyncio.sleep(delay * attempt)
        return wrapper
    return deco
