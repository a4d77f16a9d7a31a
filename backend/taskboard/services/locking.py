"""
Serialization point for dependency graph mutations.

A cycle check and the insert that follows it must not interleave with
another mutation, otherwise two individually safe edges (X -> Y and
Y -> X) can both pass their checks. Every edge write therefore runs
inside ``graph_mutation``:

- an ``asyncio.Lock`` serializes mutations within this process
- on PostgreSQL, ``pg_advisory_xact_lock`` serializes across processes;
  it is released when the surrounding transaction commits or rolls back,
  and its wait is capped through a transaction-local ``lock_timeout``

Callers must commit before leaving the block so the next holder sees the
write.
"""

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.config import get_settings
from taskboard.exceptions import StoreFailureError
from taskboard.logging_config import get_logger

logger = get_logger(__name__)

# One lock per event loop; asyncio locks cannot be shared across loops
_graph_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock]" = weakref.WeakKeyDictionary()


def get_graph_lock() -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    lock = _graph_locks.get(loop)
    if lock is None:
        lock = _graph_locks[loop] = asyncio.Lock()
    return lock


@asynccontextmanager
async def graph_mutation(
    session: AsyncSession,
    operation: str,
    context: dict[str, Any] | None = None,
) -> AsyncIterator[None]:
    """
    Hold the graph mutation lock for the duration of the block.

    Both waits, for the in-process lock and for the PostgreSQL advisory
    lock, are bounded by ``graph_lock_timeout_seconds``.

    Raises:
        StoreFailureError: either lock could not be acquired in time, or
            the advisory lock statement failed.
    """
    settings = get_settings()
    timeout = settings.graph_lock_timeout_seconds
    log_context = {"operation": operation, **(context or {})}
    lock = get_graph_lock()

    try:
        await asyncio.wait_for(lock.acquire(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.error(
            f"Timed out waiting for the dependency graph lock after {timeout}s",
            extra=log_context,
        )
        raise StoreFailureError(operation) from exc

    try:
        if session.get_bind().dialect.name == "postgresql":
            await _acquire_advisory_lock(session, operation, timeout, log_context)
        yield
    finally:
        lock.release()


async def _acquire_advisory_lock(
    session: AsyncSession,
    operation: str,
    timeout: float,
    log_context: dict[str, Any],
) -> None:
    """Take the transaction-scoped advisory lock, waiting at most ``timeout``."""
    settings = get_settings()
    try:
        # Transaction-local; lock_timeout caps advisory lock waits too
        await session.execute(
            text("SELECT set_config('lock_timeout', :timeout, true)"),
            {"timeout": f"{max(1, int(timeout * 1000))}ms"},
        )
        await session.execute(
            text("SELECT pg_advisory_xact_lock(:key)"),
            {"key": settings.advisory_lock_key},
        )
    except (SQLAlchemyError, OSError) as exc:
        await session.rollback()
        logger.error(
            f"Could not acquire the dependency graph advisory lock: {exc!r}",
            extra=log_context,
            exc_info=True,
        )
        raise StoreFailureError(operation) from exc
