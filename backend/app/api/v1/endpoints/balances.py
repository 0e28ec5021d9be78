"""
Balance Ledger API Endpoints.

History, timeline, validation, manual adjustment and repair of client
balances.
"""

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from datetime import date
from typing import Optional

from backend.app.core.config import settings
from backend.app.db.session import get_db, get_session_factory
from backend.app.domain.ledger.projection import BalanceProjectionEngine
from backend.app.domain.ledger.reconciliation import BalanceReconciler
from backend.app.schemas.balance import (
    BalanceHistoryEntryResponse,
    BalanceHistoryResponse,
    BalanceTimelineResponse,
    BalanceChangeSummary,
    BalanceValidationResult,
    ManualAdjustmentCreate,
    RepairBalanceResponse,
    RepairAllResponse,
)
from backend.app.services import balance_history

router = APIRouter(prefix="/clients/{client_id}/balance", tags=["Balance Ledger"])
admin_router = APIRouter(prefix="/balances", tags=["Balance Ledger - Admin"])


@router.get("/history", response_model=BalanceHistoryResponse)
async def get_balance_history(
    client_id: int,
    limit: int = Query(settings.history_default_limit, ge=1, le=settings.history_max_limit),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db)
):
    """
    Get balance history entries, newest first.
    """
    return await balance_history.get_history(db, client_id, limit=limit, offset=offset)


@router.get("/timeline", response_model=BalanceTimelineResponse)
async def get_balance_timeline(
    client_id: int,
    limit: int = Query(settings.timeline_default_limit, ge=1, le=settings.history_max_limit),
    db: AsyncSession = Depends(get_db)
):
    """
    Get the latest entries in chronological order with running balances,
    plus the live balance and total entry count.
    """
    return await balance_history.get_timeline(db, client_id, limit=limit)


@router.get("/summary", response_model=BalanceChangeSummary)
async def get_balance_summary(
    client_id: int,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """
    Summarize increases and decreases of the balance, grouped by change type.
    """
    return await balance_history.get_change_summary(db, client_id, date_from=date_from, date_to=date_to)


@router.get("/validate", response_model=BalanceValidationResult)
async def validate_balance(
    client_id: int,
    db: AsyncSession = Depends(get_db)
):
    """
    Compare the stored balance with the sum of the client's work transactions.
    """
    return await BalanceReconciler.validate_balance(db, client_id)


@router.post("/adjustments", response_model=BalanceHistoryEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_manual_adjustment(
    client_id: int,
    adjustment: ManualAdjustmentCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Adjust a balance by hand. The entry is recorded as manual_adjustment.
    """
    entry = await BalanceProjectionEngine.manual_adjustment(
        db, client_id, adjustment.amount, adjustment.reason
    )
    return BalanceHistoryEntryResponse.model_validate(entry)


@router.post("/repair", response_model=RepairBalanceResponse)
async def repair_balance(
    client_id: int,
    db: AsyncSession = Depends(get_db)
):
    """
    Reset the stored balance to the recomputed one if they differ.
    """
    correction = await BalanceReconciler.repair_balance(db, client_id)
    return RepairBalanceResponse(
        client_id=client_id,
        repaired=correction is not None,
        correction=correction
    )


@admin_router.post("/repair", response_model=RepairAllResponse)
async def repair_all_balances(
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """
    Repair every client balance. Returns the corrections for review.
    """
    return await BalanceReconciler.repair_all_balances(session_factory)
