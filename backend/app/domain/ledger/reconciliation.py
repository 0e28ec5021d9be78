"""
Balance Consistency Validator & Repair (Domain Logic).

The authoritative balance is the sum of (total_price - paid_amount) over a
client's work transactions; Client.balance is a cache of it. Validation is a
pure read. Repair is explicit and leaves a balance_correction entry; drift is
never corrected silently.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select, func

from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.core.reliability import run_atomic
from backend.app.domain.ledger.projection import BalanceProjectionEngine
from backend.app.models.client import Client
from backend.app.models.work_transaction import WorkTransaction
from backend.app.models.ledger_enums import BalanceChangeType
from backend.app.schemas.balance import (
    BalanceValidationResult, BalanceCorrection, RepairFailure, RepairAllResponse
)

logger = logging.getLogger(__name__)


class BalanceReconciler:

    @staticmethod
    async def calculate_balance(db: AsyncSession, client_id: int) -> int:
        """Recompute a client's balance from its work transactions."""
        result = await db.execute(
            select(
                func.coalesce(
                    func.sum(WorkTransaction.total_price - WorkTransaction.paid_amount), 0
                )
            ).where(WorkTransaction.client_id == client_id)
        )
        return int(result.scalar())

    @staticmethod
    async def validate_balance(db: AsyncSession, client_id: int) -> BalanceValidationResult:
        """
        Compare the stored balance with the recomputed one.

        Read only; drift is reported, not raised.

        Raises:
            ResourceNotFoundError: If the client does not exist
        """
        result = await db.execute(
            select(Client.balance).where(Client.id == client_id)
        )
        stored = result.scalar_one_or_none()
        if stored is None:
            raise ResourceNotFoundError("Client", client_id)

        calculated = await BalanceReconciler.calculate_balance(db, client_id)
        validation = BalanceValidationResult(
            client_id=client_id,
            stored_balance=stored,
            calculated_balance=calculated,
            is_consistent=stored == calculated,
            difference=stored - calculated,
        )

        if not validation.is_consistent:
            logger.warning(
                "Balance drift detected",
                extra={
                    "client_id": client_id,
                    "stored_balance": stored,
                    "calculated_balance": calculated,
                }
            )
        return validation

    @staticmethod
    async def repair_balance(db: AsyncSession, client_id: int) -> Optional[BalanceCorrection]:
        """
        Reset a drifted balance to the recomputed value.

        Returns:
            The correction applied, or None if the balance was already consistent

        Raises:
            ResourceNotFoundError: If the client does not exist
        """

        async def unit():
            client = await BalanceProjectionEngine.load_client_for_update(db, client_id)
            stored = client.balance
            calculated = await BalanceReconciler.calculate_balance(db, client_id)
            if stored == calculated:
                return None

            entry = await BalanceProjectionEngine.record_change(
                db,
                client,
                calculated - stored,
                BalanceChangeType.BALANCE_CORRECTION,
                f"Balance corrected from {stored} to {calculated} to match work transactions",
            )
            return BalanceCorrection(
                client_id=client_id,
                old_balance=stored,
                new_balance=calculated,
                difference=calculated - stored,
                history_entry_id=entry.id,
            )

        correction = await run_atomic(db, unit, [client_id])
        if correction:
            logger.warning(
                "Balance repaired",
                extra={
                    "client_id": client_id,
                    "old_balance": correction.old_balance,
                    "new_balance": correction.new_balance,
                }
            )
        return correction

    @staticmethod
    async def repair_all_balances(session_factory: async_sessionmaker) -> RepairAllResponse:
        """
        Repair every client, each in its own session and transaction.

        A client that fails is reported in `failures`; the run carries on
        with the remaining clients.
        """
        async with session_factory() as db:
            result = await db.execute(select(Client.id).order_by(Client.id))
            client_ids = list(result.scalars().all())

        corrections = []
        failures = []
        for client_id in client_ids:
            async with session_factory() as db:
                try:
                    correction = await BalanceReconciler.repair_balance(db, client_id)
                except ResourceNotFoundError:
                    # Deleted since the id list was read
                    continue
                except Exception as exc:
                    logger.exception("Balance repair failed", extra={"client_id": client_id})
                    failures.append(RepairFailure(client_id=client_id, error=str(exc)))
                    continue
            if correction:
                corrections.append(correction)

        logger.info(
            "Balance reconciliation finished",
            extra={
                "clients_processed": len(client_ids),
                "corrections": len(corrections),
                "failures": len(failures),
            }
        )
        return RepairAllResponse(
            clients_processed=len(client_ids),
            corrections=corrections,
            failures=failures,
        )
