"""
Client API Endpoints.

Registration, lookup and deletion of clients. Balances are read-only here.
"""

from fastapi import APIRouter, Depends, status, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from backend.app.db.session import get_db
from backend.app.models.ledger_enums import BalanceType
from backend.app.schemas.client import (
    ClientCreate, ClientUpdate, ClientResponse, ClientListResponse, ClientBalanceResponse
)
from backend.app.services import client_service

router = APIRouter(prefix="/clients", tags=["Clients"])


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    client_data: ClientCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new client.

    The balance starts at zero and is maintained by the ledger.
    """
    client = await client_service.create_client(db, client_data)
    return ClientResponse.model_validate(client)


@router.get("", response_model=ClientListResponse)
async def list_clients(
    balance_type: Optional[BalanceType] = Query(None, description="Filter by balance sign"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    db: AsyncSession = Depends(get_db)
):
    """
    List clients ordered by name.
    """
    clients, total = await client_service.list_clients(
        db, balance_type=balance_type, page=page, page_size=page_size
    )
    return ClientListResponse(
        clients=[ClientResponse.model_validate(c) for c in clients],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: int,
    db: AsyncSession = Depends(get_db)
):
    """
    Get details of a specific client, including the live balance.
    """
    client = await client_service.get_client(db, client_id)
    return ClientResponse.model_validate(client)


@router.get("/{client_id}/balance", response_model=ClientBalanceResponse)
async def get_client_balance(
    client_id: int,
    db: AsyncSession = Depends(get_db)
):
    """
    Get the live balance of a client in minor units.

    Positive means the client owes the business, negative means the
    business owes the client.
    """
    client = await client_service.get_client(db, client_id)
    return ClientBalanceResponse(
        client_id=client.id,
        balance=client.balance,
        balance_type=client_service.balance_type_of(client.balance)
    )


@router.patch("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: int,
    client_data: ClientUpdate,
    db: AsyncSession = Depends(get_db)
):
    """
    Update client contact details (only if provided).
    """
    client = await client_service.update_client(db, client_id, client_data)
    return ClientResponse.model_validate(client)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(
    client_id: int,
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a client.

    Returns 409 while work transactions still reference the client.
    """
    await client_service.delete_client(db, client_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
