"""
Analytics API Endpoints.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.schemas.analytics import WorkStats, OverviewStats, ClientAnalytics, PaymentAnalytics
from backend.app.services.analytics import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/works", response_model=WorkStats)
async def get_work_stats(
    db: AsyncSession = Depends(get_db)
):
    """
    Get totals across all work transactions.
    """
    return await AnalyticsService.get_work_stats(db)


@router.get("/overview", response_model=OverviewStats)
async def get_overview(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """
    Dashboard overview: work totals in the window and clients by balance sign.
    """
    return await AnalyticsService.get_overview_stats(db, date_from, date_to)


@router.get("/clients", response_model=ClientAnalytics)
async def get_client_analytics(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    return await AnalyticsService.get_client_analytics(db, date_from, date_to, limit)


@router.get("/payments", response_model=PaymentAnalytics)
async def get_payment_analytics(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """
    Collection efficiency, monthly collection and outstanding dues by work type.
    """
    return await AnalyticsService.get_payment_analytics(db, date_from, date_to)
