"""
Reliability utilities for ledger writes.

Every balance-affecting operation runs as one atomic unit: read the balance,
compute the new value, write the balance and its history entry, commit.
Units touching the same client are serialized in-process by a per-client
lock; across processes the client row lock and the optimistic version
counter on Client take over, and a stale write is retried from scratch.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Iterable, List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from backend.app.core.config import settings
from backend.app.core.exceptions import ConcurrentUpdateError

logger = logging.getLogger(__name__)


class ClientLockRegistry:
    """
    Per-client asyncio locks.

    Entries are reference counted and dropped once nobody holds or waits on
    them, so the registry never grows with the number of clients and never
    keeps a lock bound to a finished event loop.
    """

    def __init__(self):
        self._locks: Dict[int, List[Any]] = {}  # client_id -> [lock, refs]

    def _retain(self, client_id: int) -> asyncio.Lock:
        entry = self._locks.get(client_id)
        if entry is None:
            entry = [asyncio.Lock(), 0]
            self._locks[client_id] = entry
        entry[1] += 1
        return entry[0]

    def _release_ref(self, client_id: int) -> None:
        entry = self._locks[client_id]
        entry[1] -= 1
        if entry[1] == 0:
            del self._locks[client_id]

    @asynccontextmanager
    async def hold(self, *client_ids: int):
        """Acquire the locks of all given clients in ascending id order."""
        ordered = sorted({cid for cid in client_ids if cid is not None})
        acquired: List[int] = []
        try:
            for client_id in ordered:
                lock = self._retain(client_id)
                try:
                    await lock.acquire()
                except BaseException:
                    self._release_ref(client_id)
                    raise
                acquired.append(client_id)
            yield
        finally:
            for client_id in reversed(acquired):
                self._locks[client_id][0].release()
                self._release_ref(client_id)

    def is_locked(self, client_id: int) -> bool:
        entry = self._locks.get(client_id)
        return entry is not None and entry[0].locked()


# Process-wide registry used by all ledger writes
client_locks = ClientLockRegistry()


async def run_atomic(
    db: AsyncSession,
    unit: Callable[[], Awaitable[Any]],
    client_ids: Iterable[int],
    max_attempts: int = None,
) -> Any:
    """
    Run a ledger unit of work and commit it, or roll it back entirely.

    The unit must re-read everything it depends on, because a stale version
    conflict rolls the session back and calls it again.

    Args:
        db: Database session (the unit must only use this session)
        unit: Coroutine function performing the reads and writes
        client_ids: Clients whose balance the unit may write
        max_attempts: Override for settings.ledger_max_retries

    Returns:
        Whatever the unit returned on the committed attempt

    Raises:
        ConcurrentUpdateError: If every attempt hit a stale client version
    """
    client_ids = list(client_ids)
    attempts = max_attempts or settings.ledger_max_retries

    async with client_locks.hold(*client_ids):
        for attempt in range(1, attempts + 1):
            try:
                result = await unit()
                await db.commit()
                return result
            except StaleDataError:
                await db.rollback()
                logger.warning(
                    "Stale client version, retrying ledger unit",
                    extra={"client_ids": client_ids, "attempt": attempt}
                )
            except Exception:
                await db.rollback()
                raise

    logger.error(
        "Ledger unit abandoned after repeated version conflicts",
        extra={"client_ids": client_ids, "attempts": attempts}
    )
    raise ConcurrentUpdateError(client_ids[0] if len(client_ids) == 1 else client_ids, attempts)
