"""
Balance Projection Engine (Domain Logic).

Keeps Client.balance equal to the running sum of work contributions by
applying deltas, and writes exactly one balance history entry per balance
write. Recomputing from scratch is left to reconciliation.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from backend.app.core.exceptions import ResourceNotFoundError, InputValidationError
from backend.app.core.reliability import run_atomic
from backend.app.models.client import Client
from backend.app.models.balance_history import BalanceHistoryEntry
from backend.app.models.ledger_enums import BalanceChangeType

logger = logging.getLogger(__name__)

DESCRIPTION_MAX_LENGTH = 500


class BalanceProjectionEngine:

    @staticmethod
    async def load_client_for_update(db: AsyncSession, client_id: int) -> Client:
        """
        Load a client with a fresh balance, row-locked where the backend supports it.

        Raises:
            ResourceNotFoundError: If the client does not exist
        """
        result = await db.execute(
            select(Client)
            .where(Client.id == client_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        client = result.scalar_one_or_none()
        if not client:
            raise ResourceNotFoundError("Client", client_id)
        return client

    @staticmethod
    async def _next_entry_timestamp(db: AsyncSession, client_id: int) -> datetime:
        """Current UTC time, never earlier than the client's latest entry."""
        now = datetime.now(timezone.utc)
        result = await db.execute(
            select(func.max(BalanceHistoryEntry.created_at)).where(
                BalanceHistoryEntry.client_id == client_id
            )
        )
        latest = result.scalar()
        if latest is None:
            return now
        if latest.tzinfo is None:
            # SQLite hands back naive datetimes; they were written as UTC
            latest = latest.replace(tzinfo=timezone.utc)
        return max(now, latest)

    @staticmethod
    async def record_change(
        db: AsyncSession,
        client: Client,
        delta: int,
        change_type: BalanceChangeType,
        description: str,
        work_id: Optional[int] = None,
        work_snapshot: Optional[Dict[str, Any]] = None,
    ) -> BalanceHistoryEntry:
        """
        Patch the balance of an already locked client and append its history entry.

        Flushes but does not commit: the caller's atomic unit commits the
        balance and the entry together.
        """
        previous_balance = client.balance
        new_balance = previous_balance + delta

        client.balance = new_balance

        entry = BalanceHistoryEntry(
            client_id=client.id,
            work_id=work_id,
            change_type=change_type,
            previous_balance=previous_balance,
            balance_change=delta,
            new_balance=new_balance,
            description=description[:DESCRIPTION_MAX_LENGTH],
            work_snapshot=work_snapshot,
            created_at=await BalanceProjectionEngine._next_entry_timestamp(db, client.id),
        )
        db.add(entry)

        # Raises StaleDataError if another writer bumped the client version
        await db.flush()

        logger.info(
            "Balance changed",
            extra={
                "client_id": client.id,
                "change_type": change_type.value,
                "previous_balance": previous_balance,
                "delta": delta,
                "new_balance": new_balance,
                "work_id": work_id,
            }
        )
        return entry

    @staticmethod
    async def apply_delta(
        db: AsyncSession,
        client_id: int,
        delta: int,
        change_type: BalanceChangeType,
        description: str,
        work_id: Optional[int] = None,
        work_snapshot: Optional[Dict[str, Any]] = None,
    ) -> BalanceHistoryEntry:
        """
        Add delta to a client's balance and record it.

        Must run inside an atomic unit (see run_atomic).

        Args:
            db: Database session
            client_id: Client whose balance changes
            delta: Signed change in minor units
            change_type: Reason for the change
            description: Human readable explanation
            work_id: Work transaction that caused the change, if any
            work_snapshot: Copy of that work's fields

        Returns:
            The appended BalanceHistoryEntry
        """
        client = await BalanceProjectionEngine.load_client_for_update(db, client_id)
        return await BalanceProjectionEngine.record_change(
            db, client, delta, change_type, description, work_id, work_snapshot
        )

    @staticmethod
    async def manual_adjustment(
        db: AsyncSession,
        client_id: int,
        amount: int,
        reason: str,
    ) -> BalanceHistoryEntry:
        """
        Adjust a client's balance by hand, outside any work transaction.

        The adjustment is not backed by work rows, so a later validation
        reports it as drift.

        Raises:
            InputValidationError: If amount is zero or reason is blank
            ResourceNotFoundError: If the client does not exist
        """
        errors = {}
        if amount == 0:
            errors["amount"] = "Adjustment amount must be non-zero"
        if not reason or not reason.strip():
            errors["reason"] = "A reason is required for manual adjustments"
        if errors:
            raise InputValidationError("Invalid manual adjustment", errors)

        async def unit():
            return await BalanceProjectionEngine.apply_delta(
                db,
                client_id,
                amount,
                BalanceChangeType.MANUAL_ADJUSTMENT,
                f"Manual adjustment: {reason.strip()}",
            )

        return await run_atomic(db, unit, [client_id])
