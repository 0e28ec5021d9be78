"""
Consistency validation and repair tests.
"""

import pytest

from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.domain.ledger.projection import BalanceProjectionEngine
from backend.app.domain.ledger.reconciliation import BalanceReconciler
from backend.app.models.balance_history import BalanceHistoryEntry
from backend.app.models.ledger_enums import BalanceChangeType


@pytest.mark.asyncio
async def test_validate_consistent_balance(db_session, make_client, make_work):
    client = await make_client()
    await make_work(client.id, 1500, 500)

    result = await BalanceReconciler.validate_balance(db_session, client.id)

    assert result.is_consistent
    assert result.stored_balance == result.calculated_balance == 1000
    assert result.difference == 0


@pytest.mark.asyncio
async def test_manual_adjustment_shows_up_as_drift(db_session, make_client, make_work):
    client = await make_client()
    await make_work(client.id, 1500, 500)
    await BalanceProjectionEngine.manual_adjustment(db_session, client.id, 200, "Late fee")

    result = await BalanceReconciler.validate_balance(db_session, client.id)

    assert not result.is_consistent
    assert result.stored_balance == 1200
    assert result.calculated_balance == 1000
    assert result.difference == 200


@pytest.mark.asyncio
async def test_repair_is_idempotent(db_session, make_client, make_work):
    client = await make_client()
    await make_work(client.id, 1500, 500)
    await BalanceProjectionEngine.manual_adjustment(db_session, client.id, 200, "Late fee")

    correction = await BalanceReconciler.repair_balance(db_session, client.id)

    assert correction is not None
    assert correction.old_balance == 1200
    assert correction.new_balance == 1000
    assert correction.difference == -200

    entry = await db_session.get(BalanceHistoryEntry, correction.history_entry_id)
    assert entry.change_type == BalanceChangeType.BALANCE_CORRECTION
    assert entry.balance_change == -200

    assert await BalanceReconciler.repair_balance(db_session, client.id) is None
    assert (await BalanceReconciler.validate_balance(db_session, client.id)).is_consistent


@pytest.mark.asyncio
async def test_validate_unknown_client(db_session):
    with pytest.raises(ResourceNotFoundError):
        await BalanceReconciler.validate_balance(db_session, 42)


@pytest.mark.asyncio
async def test_repair_all_reports_corrections(db_session, session_factory, make_client, make_work):
    drifted = await make_client("Ramesh Ghosh")
    clean = await make_client("Sunita Das")
    await make_work(drifted.id, 800)
    await make_work(clean.id, 300)
    await BalanceProjectionEngine.manual_adjustment(db_session, drifted.id, -100, "Goodwill waiver")

    report = await BalanceReconciler.repair_all_balances(session_factory)

    assert report.clients_processed == 2
    assert [c.client_id for c in report.corrections] == [drifted.id]
    assert report.corrections[0].new_balance == 800
    assert report.failures == []


@pytest.mark.asyncio
async def test_repair_all_isolates_failures(db_session, session_factory, make_client, make_work, mocker):
    broken = await make_client("Ramesh Ghosh")
    drifted = await make_client("Sunita Das")
    await make_work(drifted.id, 800)
    await BalanceProjectionEngine.manual_adjustment(db_session, drifted.id, 50, "Courier charge")

    original = BalanceReconciler.calculate_balance

    async def flaky_calculate(db, client_id):
        if client_id == broken.id:
            raise RuntimeError("aggregate query failed")
        return await original(db, client_id)

    mocker.patch.object(BalanceReconciler, "calculate_balance", side_effect=flaky_calculate)

    report = await BalanceReconciler.repair_all_balances(session_factory)

    assert report.clients_processed == 2
    assert [f.client_id for f in report.failures] == [broken.id]
    assert "aggregate query failed" in report.failures[0].error
    assert [c.client_id for c in report.corrections] == [drifted.id]
