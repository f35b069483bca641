"""
Transaction boundary for block graph operations.

The engine's check-then-write sequences (existence, uniqueness, cycle walk,
insert) must see one consistent snapshot. Each operation runs inside a single
transaction (SERIALIZABLE on PostgreSQL, see `erblocks.db.session`); when the
database aborts it as a serialization failure the whole operation is re-run
from scratch. The unique index on (parent_diagram_id, parent_entity_key)
remains the final backstop.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import async_sessionmaker

from erblocks.config import BLOCK_TX_BACKOFF_SECONDS, BLOCK_TX_RETRIES
from erblocks.graph.store import BlockStore, SqlAlchemyBlockStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}


def is_retryable(exc: DBAPIError) -> bool:
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True
    return isinstance(exc, OperationalError) and "database is locked" in str(exc)


async def run_in_transaction(
    sessionmaker: async_sessionmaker,
    operation: Callable[[BlockStore], Awaitable[T]],
    retries: int = BLOCK_TX_RETRIES,
) -> T:
    """Run `operation(store)` in one transaction, retrying serialization failures."""
    attempt = 0
    while True:
        try:
            async with sessionmaker() as session:
                async with session.begin():
                    return await operation(SqlAlchemyBlockStore(session))
        except DBAPIError as e:
            if not is_retryable(e) or attempt >= retries:
                raise
            attempt += 1
            logger.warning(
                "Block transaction conflict, retrying (%d/%d): %s", attempt, retries, e.orig
            )
            await asyncio.sleep(BLOCK_TX_BACKOFF_SECONDS * attempt)
