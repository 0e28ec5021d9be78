"""
Work Transaction API Endpoints.

Every write moves the owning client's balance and appends a balance
history entry.
"""

from fastapi import APIRouter, Depends, status, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date
from typing import Optional

from backend.app.db.session import get_db
from backend.app.models.ledger_enums import WorkType, PaymentStatus
from backend.app.schemas.work import WorkCreate, WorkUpdate, WorkResponse, WorkListResponse
from backend.app.services import work_store

router = APIRouter(prefix="/works", tags=["Works"])


@router.post("", response_model=WorkResponse, status_code=status.HTTP_201_CREATED)
async def create_work(
    work_data: WorkCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Record a work transaction for a client.
    """
    work = await work_store.create_work(db, work_data)
    return WorkResponse.model_validate(work)


@router.get("", response_model=WorkListResponse)
async def list_works(
    client_id: Optional[int] = Query(None, ge=1),
    work_type: Optional[WorkType] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None),
    date_from: Optional[date] = Query(None, description="Earliest transaction date"),
    date_to: Optional[date] = Query(None, description="Latest transaction date"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    db: AsyncSession = Depends(get_db)
):
    """
    List work transactions, newest first.
    """
    works, total = await work_store.list_works(
        db,
        client_id=client_id,
        work_type=work_type,
        payment_status=payment_status,
        date_from=date_from,
        date_to=date_to,
        page=page,
        page_size=page_size,
    )
    return WorkListResponse(
        works=[WorkResponse.model_validate(w) for w in works],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{work_id}", response_model=WorkResponse)
async def get_work(
    work_id: int,
    db: AsyncSession = Depends(get_db)
):
    """
    Get a single work transaction.
    """
    work = await work_store.get_work(db, work_id)
    return WorkResponse.model_validate(work)


@router.patch("/{work_id}", response_model=WorkResponse)
async def update_work(
    work_id: int,
    work_data: WorkUpdate,
    db: AsyncSession = Depends(get_db)
):
    """
    Update a work transaction (only provided fields).
    """
    work = await work_store.update_work(db, work_id, work_data)
    return WorkResponse.model_validate(work)


@router.delete("/{work_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_work(
    work_id: int,
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a work transaction.
    """
    await work_store.delete_work(db, work_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
