"""
Concurrency Tests.

Validates that concurrent balance writes never lose an update.
"""

import pytest
import asyncio
from datetime import date
from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from backend.app.core.exceptions import ConcurrentUpdateError
from backend.app.core.reliability import ClientLockRegistry, run_atomic
from backend.app.domain.ledger.projection import BalanceProjectionEngine
from backend.app.models.balance_history import BalanceHistoryEntry
from backend.app.models.client import Client
from backend.app.schemas.work import WorkCreate
from backend.app.services import client_service, work_store


def _work(client_id, total_price):
    return WorkCreate(
        client_id=client_id,
        total_price=total_price,
        work_types=["health-insurance"],
        description="Health policy renewal",
        transaction_date=date(2025, 4, 1),
    )


@pytest.mark.asyncio
async def test_concurrent_creates_do_not_lose_updates(db_session, session_factory, make_client):
    """+500 and +300 recorded at the same time leave the balance +800 higher."""
    client = await make_client()

    async def create(amount):
        async with session_factory() as session:
            return await work_store.create_work(session, _work(client.id, amount))

    await asyncio.gather(create(500), create(300))

    client = await client_service.get_client(db_session, client.id)
    assert client.balance == 800

    result = await db_session.execute(
        select(BalanceHistoryEntry).where(BalanceHistoryEntry.client_id == client.id)
    )
    entries = result.scalars().all()
    assert len(entries) == 2
    assert sum(e.balance_change for e in entries) == 800


@pytest.mark.asyncio
async def test_concurrent_adjustments_keep_history_chain(db_session, session_factory, make_client):
    client = await make_client()

    async def adjust(amount):
        async with session_factory() as session:
            await BalanceProjectionEngine.manual_adjustment(session, client.id, amount, "Batch import")

    await asyncio.gather(*(adjust(amount) for amount in (100, -40, 25, 60, -5)))

    result = await db_session.execute(
        select(BalanceHistoryEntry)
        .where(BalanceHistoryEntry.client_id == client.id)
        .order_by(BalanceHistoryEntry.created_at, BalanceHistoryEntry.id)
    )
    entries = result.scalars().all()
    assert entries[-1].new_balance == 140
    for earlier, later in zip(entries, entries[1:]):
        assert earlier.new_balance == later.previous_balance


@pytest.mark.asyncio
async def test_stale_client_version_is_detected(session_factory, make_client):
    """A writer holding an outdated client row must not overwrite a newer balance."""
    client = await make_client()

    async with session_factory() as stale, session_factory() as fresh:
        stale_client = await stale.get(Client, client.id)

        await BalanceProjectionEngine.manual_adjustment(fresh, client.id, 100, "Opening balance")

        stale_client.balance = stale_client.balance + 999
        with pytest.raises(StaleDataError):
            await stale.flush()
        await stale.rollback()


@pytest.mark.asyncio
async def test_run_atomic_retries_stale_units(db_session):
    calls = []

    async def unit():
        calls.append(1)
        if len(calls) < 3:
            raise StaleDataError("version mismatch")
        return "done"

    assert await run_atomic(db_session, unit, [1], max_attempts=3) == "done"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_run_atomic_gives_up_after_max_attempts(db_session):
    async def unit():
        raise StaleDataError("version mismatch")

    with pytest.raises(ConcurrentUpdateError) as exc_info:
        await run_atomic(db_session, unit, [7], max_attempts=2)
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_lock_registry_serializes_and_cleans_up():
    registry = ClientLockRegistry()
    order = []

    async def worker(name, delay):
        async with registry.hold(2, 1):
            order.append(f"{name}-start")
            await asyncio.sleep(delay)
            order.append(f"{name}-end")

    await asyncio.gather(worker("a", 0.01), worker("b", 0))

    assert order == ["a-start", "a-end", "b-start", "b-end"]
    assert not registry.is_locked(1)
    assert registry._locks == {}
