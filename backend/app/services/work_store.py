"""
Transaction Store for work transactions.

CRUD for work rows. Every successful write moves the owning client's balance
by the change in contribution and appends a history entry, all in one
atomic unit.
"""

import logging
from datetime import date
from typing import Optional, List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, cast, String
from sqlalchemy.dialects.postgresql import JSONB

from backend.app.core.exceptions import ResourceNotFoundError, InputValidationError
from backend.app.core.reliability import run_atomic
from backend.app.domain.ledger.payment_classifier import classify_payment
from backend.app.domain.ledger.projection import BalanceProjectionEngine
from backend.app.models.client import Client
from backend.app.models.work_transaction import WorkTransaction
from backend.app.models.ledger_enums import BalanceChangeType, PaymentStatus, WorkType
from backend.app.schemas.work import WorkCreate, WorkUpdate

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("client_id", "total_price", "paid_amount", "work_types", "description", "transaction_date")


async def _get_work_client_id(db: AsyncSession, work_id: int) -> int:
    result = await db.execute(
        select(WorkTransaction.client_id).where(WorkTransaction.id == work_id)
    )
    client_id = result.scalar_one_or_none()
    if client_id is None:
        raise ResourceNotFoundError("Work", work_id)
    return client_id


async def _load_work(db: AsyncSession, work_id: int) -> WorkTransaction:
    result = await db.execute(
        select(WorkTransaction)
        .where(WorkTransaction.id == work_id)
        .execution_options(populate_existing=True)
    )
    work = result.scalar_one_or_none()
    if not work:
        raise ResourceNotFoundError("Work", work_id)
    return work


def work_type_condition(dialect_name: str, work_type: WorkType):
    """SQL predicate: the work is tagged with work_type."""
    value = WorkType(work_type).value
    if dialect_name == "postgresql":
        return cast(WorkTransaction.work_types, JSONB).contains([value])
    # Tags are serialized as a JSON array of quoted, distinct enum values
    return cast(WorkTransaction.work_types, String).like(f'%"{value}"%')


async def create_work(db: AsyncSession, data: WorkCreate) -> WorkTransaction:
    """
    Record a new work transaction.

    The client's balance grows by total_price - paid_amount and a
    work_created entry is appended.

    Args:
        db: Database session
        data: Validated work fields

    Returns:
        Created WorkTransaction

    Raises:
        ResourceNotFoundError: If the client does not exist
    """

    async def unit():
        client = await BalanceProjectionEngine.load_client_for_update(db, data.client_id)

        work = WorkTransaction(
            client_id=data.client_id,
            total_price=data.total_price,
            paid_amount=data.paid_amount,
            payment_status=classify_payment(data.total_price, data.paid_amount),
            work_types=[WorkType(wt).value for wt in data.work_types],
            transaction_date=data.transaction_date,
            description=data.description,
        )
        db.add(work)
        await db.flush()  # To get work.id

        await BalanceProjectionEngine.record_change(
            db,
            client,
            work.balance_contribution,
            BalanceChangeType.WORK_CREATED,
            f"Work created: {work.description}",
            work_id=work.id,
            work_snapshot=work.snapshot(),
        )
        return work

    work = await run_atomic(db, unit, [data.client_id])
    await db.refresh(work)

    logger.info("Work created", extra={"work_id": work.id, "client_id": work.client_id})
    return work


async def update_work(db: AsyncSession, work_id: int, data: WorkUpdate) -> WorkTransaction:
    """
    Update a work transaction, keeping unset fields.

    The balance moves by new contribution - old contribution. If the work is
    moved to another client, the old client loses the old contribution and
    the new client gains the new one, each with its own work_updated entry.

    Raises:
        ResourceNotFoundError: If the work or the target client does not exist
        InputValidationError: If nothing is updated or a required field is nulled
    """
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise InputValidationError(
            "Nothing to update",
            {"body": "At least one field must be provided"}
        )
    nulled = {field: "Field cannot be null" for field, value in changes.items() if value is None and field in REQUIRED_FIELDS}
    if nulled:
        raise InputValidationError("Invalid work update", nulled)

    current_client_id = await _get_work_client_id(db, work_id)
    target_client_id = changes.get("client_id", current_client_id)

    async def unit():
        work = await _load_work(db, work_id)
        old_client_id = work.client_id
        old_contribution = work.balance_contribution
        previous = work.snapshot()

        new_client_id = changes.get("client_id", old_client_id)

        # Row locks in ascending id order, matching the in-process locks
        clients = {}
        for client_id in sorted({old_client_id, new_client_id}):
            clients[client_id] = await BalanceProjectionEngine.load_client_for_update(db, client_id)
        new_client = clients[new_client_id]

        for field, value in changes.items():
            if field == "work_types":
                value = [WorkType(wt).value for wt in value]
            setattr(work, field, value)
        work.payment_status = classify_payment(work.total_price, work.paid_amount)
        await db.flush()

        snapshot = work.snapshot()
        snapshot["previous"] = previous

        if new_client_id != old_client_id:
            await BalanceProjectionEngine.record_change(
                db,
                clients[old_client_id],
                -old_contribution,
                BalanceChangeType.WORK_UPDATED,
                f"Work moved to client {new_client_id}: {work.description}",
                work_id=work.id,
                work_snapshot=snapshot,
            )
            await BalanceProjectionEngine.record_change(
                db,
                new_client,
                work.balance_contribution,
                BalanceChangeType.WORK_UPDATED,
                f"Work moved from client {old_client_id}: {work.description}",
                work_id=work.id,
                work_snapshot=snapshot,
            )
        else:
            await BalanceProjectionEngine.record_change(
                db,
                new_client,
                work.balance_contribution - old_contribution,
                BalanceChangeType.WORK_UPDATED,
                f"Work updated: {work.description}",
                work_id=work.id,
                work_snapshot=snapshot,
            )
        return work

    work = await run_atomic(db, unit, [current_client_id, target_client_id])
    await db.refresh(work)

    logger.info(
        "Work updated",
        extra={"work_id": work.id, "client_id": work.client_id, "updated_fields": list(changes.keys())}
    )
    return work


async def delete_work(db: AsyncSession, work_id: int) -> None:
    """
    Delete a work transaction.

    The client's balance drops by the work's contribution and a
    work_deleted entry keeps a snapshot of the removed row.

    Raises:
        ResourceNotFoundError: If the work does not exist
    """
    client_id = await _get_work_client_id(db, work_id)

    async def unit():
        work = await _load_work(db, work_id)
        client = await BalanceProjectionEngine.load_client_for_update(db, work.client_id)
        snapshot = work.snapshot()
        contribution = work.balance_contribution
        description = work.description

        await db.delete(work)
        await db.flush()

        await BalanceProjectionEngine.record_change(
            db,
            client,
            -contribution,
            BalanceChangeType.WORK_DELETED,
            f"Work deleted: {description}",
            work_id=work_id,
            work_snapshot=snapshot,
        )

    await run_atomic(db, unit, [client_id])
    logger.info("Work deleted", extra={"work_id": work_id, "client_id": client_id})


async def get_work(db: AsyncSession, work_id: int) -> WorkTransaction:
    """Get a single work transaction."""
    return await _load_work(db, work_id)


async def list_by_client(db: AsyncSession, client_id: int) -> List[WorkTransaction]:
    """
    List all work transactions of a client, newest first.

    Raises:
        ResourceNotFoundError: If the client does not exist
    """
    client = await db.get(Client, client_id)
    if not client:
        raise ResourceNotFoundError("Client", client_id)

    result = await db.execute(
        select(WorkTransaction)
        .where(WorkTransaction.client_id == client_id)
        .order_by(WorkTransaction.created_at.desc(), WorkTransaction.id.desc())
    )
    return list(result.scalars().all())


async def list_works(
    db: AsyncSession,
    client_id: Optional[int] = None,
    work_type: Optional[WorkType] = None,
    payment_status: Optional[PaymentStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[WorkTransaction], int]:
    """
    List work transactions with optional filtering, newest first.

    Returns:
        (works on the requested page, total matching count)
    """
    conditions = []
    if client_id is not None:
        conditions.append(WorkTransaction.client_id == client_id)
    if payment_status is not None:
        conditions.append(WorkTransaction.payment_status == payment_status)
    if date_from is not None:
        conditions.append(WorkTransaction.transaction_date >= date_from)
    if date_to is not None:
        conditions.append(WorkTransaction.transaction_date <= date_to)
    if work_type is not None:
        conditions.append(work_type_condition(db.get_bind().dialect.name, work_type))

    query = select(WorkTransaction).where(*conditions).order_by(
        WorkTransaction.created_at.desc(), WorkTransaction.id.desc()
    )

    count_query = select(func.count(WorkTransaction.id)).where(*conditions)
    total = (await db.execute(count_query)).scalar() or 0

    offset = (page - 1) * page_size
    result = await db.execute(query.offset(offset).limit(page_size))
    return list(result.scalars().all()), total
