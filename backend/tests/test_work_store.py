"""
Transaction store tests.

Every write must keep the client balance equal to the sum of its work
contributions and leave one history entry per balance write.
"""

import pytest
from datetime import date
from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from backend.app.core.exceptions import ResourceNotFoundError, InputValidationError
from backend.app.domain.ledger.projection import BalanceProjectionEngine
from backend.app.domain.ledger.reconciliation import BalanceReconciler
from backend.app.models.balance_history import BalanceHistoryEntry
from backend.app.models.ledger_enums import BalanceChangeType, PaymentStatus, WorkType
from backend.app.schemas.work import WorkCreate, WorkUpdate
from backend.app.services import client_service, work_store


async def _history(db_session, client_id):
    result = await db_session.execute(
        select(BalanceHistoryEntry)
        .where(BalanceHistoryEntry.client_id == client_id)
        .order_by(BalanceHistoryEntry.id)
    )
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_create_work_moves_balance(db_session, make_client, make_work):
    client = await make_client()

    work = await make_work(client.id, 1000, 200)

    assert work.payment_status == PaymentStatus.PARTIAL
    assert work.balance_contribution == 800

    client = await client_service.get_client(db_session, client.id)
    assert client.balance == 800

    entries = await _history(db_session, client.id)
    assert len(entries) == 1
    assert entries[0].change_type == BalanceChangeType.WORK_CREATED
    assert entries[0].previous_balance == 0
    assert entries[0].balance_change == 800
    assert entries[0].new_balance == 800
    assert entries[0].work_id == work.id
    assert entries[0].work_snapshot["total_price"] == 1000


@pytest.mark.asyncio
async def test_create_work_unknown_client(db_session):
    data = WorkCreate(
        client_id=999,
        total_price=500,
        work_types=["p-tax"],
        description="Professional tax filing",
        transaction_date=date(2025, 1, 10),
    )
    with pytest.raises(ResourceNotFoundError):
        await work_store.create_work(db_session, data)


@pytest.mark.asyncio
async def test_edit_to_fully_paid_changes_balance_by_delta(db_session, make_client, make_work):
    """1000/200 -> 1000/1000 moves the balance by -800 with one work_updated entry."""
    client = await make_client()
    work = await make_work(client.id, 1000, 200)

    updated = await work_store.update_work(db_session, work.id, WorkUpdate(paid_amount=1000))

    assert updated.payment_status == PaymentStatus.PAID
    client = await client_service.get_client(db_session, client.id)
    assert client.balance == 0

    entries = await _history(db_session, client.id)
    assert [e.change_type for e in entries] == [
        BalanceChangeType.WORK_CREATED, BalanceChangeType.WORK_UPDATED
    ]
    assert entries[1].balance_change == -800
    assert entries[1].work_snapshot["previous"]["paid_amount"] == 200
    assert entries[1].work_snapshot["paid_amount"] == 1000


@pytest.mark.asyncio
async def test_description_only_edit_writes_zero_delta_entry(db_session, make_client, make_work):
    client = await make_client()
    work = await make_work(client.id, 300)

    await work_store.update_work(db_session, work.id, WorkUpdate(description="Updated ITR filing note"))

    entries = await _history(db_session, client.id)
    assert len(entries) == 2
    assert entries[1].balance_change == 0
    assert entries[1].previous_balance == entries[1].new_balance == 300


@pytest.mark.asyncio
async def test_move_work_between_clients(db_session, make_client, make_work):
    first = await make_client("Ramesh Ghosh")
    second = await make_client("Sunita Das")
    work = await make_work(first.id, 700, 100)

    await work_store.update_work(db_session, work.id, WorkUpdate(client_id=second.id, paid_amount=200))

    first = await client_service.get_client(db_session, first.id)
    second = await client_service.get_client(db_session, second.id)
    assert first.balance == 0
    assert second.balance == 500

    first_entries = await _history(db_session, first.id)
    second_entries = await _history(db_session, second.id)
    assert first_entries[-1].change_type == BalanceChangeType.WORK_UPDATED
    assert first_entries[-1].balance_change == -600
    assert len(second_entries) == 1
    assert second_entries[0].balance_change == 500


@pytest.mark.asyncio
async def test_update_rejects_empty_and_nulled_fields(db_session, make_client, make_work):
    client = await make_client()
    work = await make_work(client.id, 300)

    with pytest.raises(InputValidationError):
        await work_store.update_work(db_session, work.id, WorkUpdate())

    with pytest.raises(InputValidationError) as exc_info:
        await work_store.update_work(db_session, work.id, WorkUpdate(total_price=None))
    assert "total_price" in exc_info.value.details["errors"]


@pytest.mark.asyncio
async def test_delete_work_reverses_contribution(db_session, make_client, make_work):
    client = await make_client()
    work = await make_work(client.id, 400, 50)
    work_id = work.id

    await work_store.delete_work(db_session, work_id)

    client = await client_service.get_client(db_session, client.id)
    assert client.balance == 0

    entries = await _history(db_session, client.id)
    assert entries[-1].change_type == BalanceChangeType.WORK_DELETED
    assert entries[-1].balance_change == -350
    assert entries[-1].work_id == work_id
    assert entries[-1].work_snapshot["description"] == "ITR filing for AY 2025-26"

    with pytest.raises(ResourceNotFoundError):
        await work_store.get_work(db_session, work_id)


@pytest.mark.asyncio
async def test_sum_invariant_after_mixed_writes(db_session, make_client, make_work):
    client = await make_client()
    a = await make_work(client.id, 1000, 0)
    b = await make_work(client.id, 250, 300)
    c = await make_work(client.id, 5000, 1200)

    await work_store.update_work(db_session, a.id, WorkUpdate(paid_amount=400))
    await work_store.update_work(db_session, c.id, WorkUpdate(total_price=4500))
    await work_store.delete_work(db_session, b.id)
    await make_work(client.id, 90, 90)

    validation = await BalanceReconciler.validate_balance(db_session, client.id)
    assert validation.is_consistent
    assert validation.stored_balance == 600 + 3300


@pytest.mark.asyncio
async def test_list_works_filters(db_session, make_client, make_work):
    client = await make_client()
    other = await make_client("Sunita Das")
    await make_work(client.id, 1000, 1000, work_types=["mutual-funds"])
    await make_work(client.id, 1000, 0, transaction_date=date(2024, 3, 1))
    await make_work(other.id, 500, 100)

    works, total = await work_store.list_works(db_session, client_id=client.id)
    assert total == 2

    works, total = await work_store.list_works(db_session, payment_status=PaymentStatus.PAID)
    assert total == 1
    assert works[0].work_types == ["mutual-funds"]

    works, total = await work_store.list_works(db_session, work_type=WorkType.INCOME_TAX)
    assert total == 2

    works, total = await work_store.list_works(db_session, date_to=date(2024, 12, 31))
    assert total == 1

    works, total = await work_store.list_works(db_session, page=2, page_size=2)
    assert total == 3
    assert len(works) == 1


@pytest.mark.asyncio
async def test_list_by_client_unknown(db_session):
    with pytest.raises(ResourceNotFoundError):
        await work_store.list_by_client(db_session, 404)


@pytest.mark.asyncio
async def test_move_locks_clients_in_id_order(db_session, make_client, make_work, mocker):
    """Moving a work to a lower client id still locks the lower id first."""
    first = await make_client("Ramesh Ghosh")
    second = await make_client("Sunita Das")
    work = await make_work(second.id, 400)

    spy = mocker.spy(BalanceProjectionEngine, "load_client_for_update")
    await work_store.update_work(db_session, work.id, WorkUpdate(client_id=first.id))

    assert [call.args[1] for call in spy.call_args_list] == [first.id, second.id]


@pytest.mark.asyncio
async def test_work_type_filter_paginates_in_sql(db_session, make_client, make_work):
    client = await make_client()
    for _ in range(3):
        await make_work(client.id, 100, work_types=["income-tax", "p-tax"])
    await make_work(client.id, 100, work_types=["mutual-funds"])

    works, total = await work_store.list_works(db_session, work_type=WorkType.P_TAX, page=2, page_size=2)

    assert total == 3
    assert len(works) == 1
    assert "p-tax" in works[0].work_types


def test_work_type_condition_uses_jsonb_containment_on_postgres():
    condition = work_store.work_type_condition("postgresql", WorkType.P_TAX)

    assert "@>" in str(condition.compile(dialect=postgresql.dialect()))
