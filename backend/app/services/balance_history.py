"""
Balance history service.

Read side of the balance audit trail: paginated history, a running-balance
timeline, change summaries and a chain check that folds the entries back
into the live balance. Entries are written only by the projection engine.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, List, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc, asc

from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.models.client import Client
from backend.app.models.balance_history import BalanceHistoryEntry
from backend.app.models.ledger_enums import BalanceChangeType
from backend.app.schemas.balance import (
    BalanceHistoryEntryResponse,
    BalanceHistoryResponse,
    TimelineEntry,
    BalanceTimelineResponse,
    BalanceChangeSummary,
    ChangeTypeSummary,
)


async def _get_live_balance(db: AsyncSession, client_id: int) -> int:
    result = await db.execute(select(Client.balance).where(Client.id == client_id))
    balance = result.scalar_one_or_none()
    if balance is None:
        raise ResourceNotFoundError("Client", client_id)
    return balance


async def count_entries(db: AsyncSession, client_id: int) -> int:
    result = await db.execute(
        select(func.count(BalanceHistoryEntry.id)).where(BalanceHistoryEntry.client_id == client_id)
    )
    return result.scalar() or 0


async def get_history(
    db: AsyncSession,
    client_id: int,
    limit: int = 50,
    offset: int = 0,
) -> BalanceHistoryResponse:
    """
    Get a client's balance history, most recent first.

    Args:
        db: Database session
        client_id: Client to get history for
        limit: Maximum number of entries
        offset: Number of newest entries to skip

    Returns:
        Page of entries with total count and has_more flag

    Raises:
        ResourceNotFoundError: If the client does not exist
    """
    await _get_live_balance(db, client_id)
    total = await count_entries(db, client_id)

    query = select(BalanceHistoryEntry).where(
        BalanceHistoryEntry.client_id == client_id
    ).order_by(
        desc(BalanceHistoryEntry.created_at), desc(BalanceHistoryEntry.id)
    ).offset(offset).limit(limit)

    result = await db.execute(query)
    entries = result.scalars().all()

    return BalanceHistoryResponse(
        client_id=client_id,
        entries=[BalanceHistoryEntryResponse.model_validate(e) for e in entries],
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + limit < total,
    )


async def get_chronological_entries(db: AsyncSession, client_id: int) -> List[BalanceHistoryEntry]:
    """All entries of a client, oldest first."""
    result = await db.execute(
        select(BalanceHistoryEntry).where(
            BalanceHistoryEntry.client_id == client_id
        ).order_by(asc(BalanceHistoryEntry.created_at), asc(BalanceHistoryEntry.id))
    )
    return list(result.scalars().all())


async def get_timeline(
    db: AsyncSession,
    client_id: int,
    limit: int = 100,
) -> BalanceTimelineResponse:
    """
    Get the most recent `limit` entries in chronological order, each with
    the running balance after it, plus the live balance.

    Raises:
        ResourceNotFoundError: If the client does not exist
    """
    current_balance = await _get_live_balance(db, client_id)
    total = await count_entries(db, client_id)

    result = await db.execute(
        select(BalanceHistoryEntry).where(
            BalanceHistoryEntry.client_id == client_id
        ).order_by(
            desc(BalanceHistoryEntry.created_at), desc(BalanceHistoryEntry.id)
        ).limit(limit)
    )
    entries = list(reversed(result.scalars().all()))

    timeline = [
        TimelineEntry(
            **BalanceHistoryEntryResponse.model_validate(entry).model_dump(),
            running_balance=entry.new_balance,
        )
        for entry in entries
    ]

    return BalanceTimelineResponse(
        client_id=client_id,
        timeline=timeline,
        current_balance=current_balance,
        total_entries=total,
    )


async def get_change_summary(
    db: AsyncSession,
    client_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> BalanceChangeSummary:
    """
    Summarize balance changes, optionally within [date_from, date_to] (UTC days).

    Raises:
        ResourceNotFoundError: If the client does not exist
    """
    await _get_live_balance(db, client_id)

    query = select(BalanceHistoryEntry).where(BalanceHistoryEntry.client_id == client_id)
    if date_from:
        query = query.where(
            BalanceHistoryEntry.created_at >= datetime.combine(date_from, time.min, tzinfo=timezone.utc)
        )
    if date_to:
        query = query.where(
            BalanceHistoryEntry.created_at < datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=timezone.utc)
        )

    result = await db.execute(query)
    entries = result.scalars().all()

    total_increase = sum(e.balance_change for e in entries if e.balance_change > 0)
    total_decrease = sum(-e.balance_change for e in entries if e.balance_change < 0)

    changes_by_type = {}
    for entry in entries:
        change_type = BalanceChangeType(entry.change_type)
        bucket = changes_by_type.setdefault(change_type, ChangeTypeSummary(count=0, total_change=0))
        bucket.count += 1
        bucket.total_change += entry.balance_change

    return BalanceChangeSummary(
        client_id=client_id,
        total_entries=len(entries),
        total_increase=total_increase,
        total_decrease=total_decrease,
        net_change=total_increase - total_decrease,
        changes_by_type=changes_by_type,
        date_from=date_from,
        date_to=date_to,
    )


def verify_history_chain(entries: Sequence[BalanceHistoryEntry], starting_balance: int = 0) -> List[str]:
    """
    Fold entries (oldest first) and report every broken link.

    Each entry must satisfy new = previous + change, and its previous balance
    must equal the new balance of the entry before it (or starting_balance
    for the first one).

    Returns:
        Human readable problems; empty when the chain is intact
    """
    problems = []
    running = starting_balance
    for entry in entries:
        if entry.previous_balance != running:
            problems.append(
                f"entry {entry.id}: previous_balance {entry.previous_balance} != running balance {running}"
            )
        if entry.previous_balance + entry.balance_change != entry.new_balance:
            problems.append(
                f"entry {entry.id}: {entry.previous_balance} + {entry.balance_change} != {entry.new_balance}"
            )
        running = entry.new_balance
    return problems


async def reconstruct_balance(db: AsyncSession, client_id: int) -> int:
    """Balance obtained by replaying the client's history from zero."""
    balance = 0
    for entry in await get_chronological_entries(db, client_id):
        balance += entry.balance_change
    return balance
