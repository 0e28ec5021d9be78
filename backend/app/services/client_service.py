"""
Client registration and lookup.

Clients start with a zero balance; only the ledger moves it afterwards.
"""

import logging
from typing import Optional, List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from backend.app.core.exceptions import ResourceNotFoundError, ConflictError, InputValidationError
from backend.app.core.reliability import run_atomic
from backend.app.models.client import Client
from backend.app.models.work_transaction import WorkTransaction
from backend.app.models.ledger_enums import BalanceType, WorkType
from backend.app.schemas.client import ClientCreate, ClientUpdate

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "phone", "address", "usual_work_types")


def balance_type_of(balance: int) -> BalanceType:
    if balance > 0:
        return BalanceType.POSITIVE
    if balance < 0:
        return BalanceType.NEGATIVE
    return BalanceType.ZERO


async def _ensure_unique_phone(db: AsyncSession, phone: str, exclude_id: Optional[int] = None) -> None:
    query = select(Client.id).where(Client.phone == phone)
    if exclude_id is not None:
        query = query.where(Client.id != exclude_id)
    result = await db.execute(query.limit(1))
    if result.scalar_one_or_none() is not None:
        raise ConflictError(
            "A client with this phone number already exists",
            details={"phone": phone}
        )


async def create_client(db: AsyncSession, data: ClientCreate) -> Client:
    """
    Register a new client with a zero balance.

    Raises:
        ConflictError: If the phone number is already registered
    """
    await _ensure_unique_phone(db, data.phone)

    client = Client(
        name=data.name,
        phone=data.phone,
        email=data.email.strip() if data.email else None,
        address=data.address,
        pan_number=data.pan_number,
        usual_work_types=[WorkType(wt).value for wt in data.usual_work_types],
        balance=0,
    )
    db.add(client)
    await db.commit()
    await db.refresh(client)

    logger.info("Client created", extra={"client_id": client.id})
    return client


async def get_client(db: AsyncSession, client_id: int) -> Client:
    """
    Get a client with its live balance.

    Raises:
        ResourceNotFoundError: If the client does not exist
    """
    result = await db.execute(
        select(Client)
        .where(Client.id == client_id)
        .execution_options(populate_existing=True)
    )
    client = result.scalar_one_or_none()
    if not client:
        raise ResourceNotFoundError("Client", client_id)
    return client


async def list_clients(
    db: AsyncSession,
    balance_type: Optional[BalanceType] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[Client], int]:
    """
    List clients ordered by name, optionally by balance sign.

    Returns:
        (clients on the requested page, total matching count)
    """
    conditions = []
    if balance_type == BalanceType.POSITIVE:
        conditions.append(Client.balance > 0)
    elif balance_type == BalanceType.NEGATIVE:
        conditions.append(Client.balance < 0)
    elif balance_type == BalanceType.ZERO:
        conditions.append(Client.balance == 0)

    total = (await db.execute(select(func.count(Client.id)).where(*conditions))).scalar() or 0

    offset = (page - 1) * page_size
    result = await db.execute(
        select(Client).where(*conditions).order_by(Client.name, Client.id).offset(offset).limit(page_size)
    )
    return list(result.scalars().all()), total


async def update_client(db: AsyncSession, client_id: int, data: ClientUpdate) -> Client:
    """
    Update contact details. The balance is not writable through this path.

    Raises:
        ResourceNotFoundError: If the client does not exist
        ConflictError: If the new phone number belongs to another client
    """
    changes = data.model_dump(exclude_unset=True)
    nulled = {field: "Field cannot be null" for field, value in changes.items() if value is None and field in REQUIRED_FIELDS}
    if nulled:
        raise InputValidationError("Invalid client update", nulled)

    async def unit():
        client = await get_client(db, client_id)
        if changes.get("phone"):
            await _ensure_unique_phone(db, changes["phone"], exclude_id=client_id)
        for field, value in changes.items():
            if field == "usual_work_types":
                value = [WorkType(wt).value for wt in value]
            setattr(client, field, value)
        await db.flush()
        return client

    client = await run_atomic(db, unit, [client_id])
    await db.refresh(client)

    logger.info(
        "Client updated",
        extra={"client_id": client_id, "updated_fields": list(changes.keys())}
    )
    return client


async def delete_client(db: AsyncSession, client_id: int) -> None:
    """
    Delete a client that no longer owns work transactions.

    The client's balance history is kept.

    Raises:
        ResourceNotFoundError: If the client does not exist
        ConflictError: If work transactions still reference the client
    """

    async def unit():
        client = await get_client(db, client_id)
        work_count = (await db.execute(
            select(func.count(WorkTransaction.id)).where(WorkTransaction.client_id == client_id)
        )).scalar() or 0
        if work_count:
            raise ConflictError(
                "Cannot delete client with associated work records. Please delete all work records first.",
                details={"client_id": client_id, "work_count": work_count}
            )
        await db.delete(client)
        await db.flush()

    await run_atomic(db, unit, [client_id])
    logger.info("Client deleted", extra={"client_id": client_id})
