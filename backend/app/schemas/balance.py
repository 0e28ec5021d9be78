"""
Balance ledger schemas: history, timeline, validation and repair.
"""

from pydantic import BaseModel, Field
from datetime import datetime, date
from typing import Optional, List, Dict, Any
from backend.app.core.config import settings
from backend.app.models.ledger_enums import BalanceChangeType


class BalanceHistoryEntryResponse(BaseModel):
    """One immutable balance change."""
    id: int
    client_id: int
    work_id: Optional[int]
    change_type: BalanceChangeType
    previous_balance: int
    balance_change: int
    new_balance: int
    description: str
    work_snapshot: Optional[Dict[str, Any]]
    created_at: datetime

    class Config:
        from_attributes = True


class BalanceHistoryResponse(BaseModel):
    """Newest-first page of a client's balance history."""
    client_id: int
    entries: List[BalanceHistoryEntryResponse]
    total: int
    limit: int
    offset: int
    has_more: bool


class TimelineEntry(BalanceHistoryEntryResponse):
    """History entry with the balance right after it."""
    running_balance: int


class BalanceTimelineResponse(BaseModel):
    """Chronological trail ending at the live balance."""
    client_id: int
    timeline: List[TimelineEntry]
    current_balance: int
    total_entries: int


class ChangeTypeSummary(BaseModel):
    count: int
    total_change: int


class BalanceChangeSummary(BaseModel):
    """Aggregate of balance changes over an optional date range."""
    client_id: int
    total_entries: int
    total_increase: int
    total_decrease: int
    net_change: int
    changes_by_type: Dict[BalanceChangeType, ChangeTypeSummary]
    date_from: Optional[date]
    date_to: Optional[date]


class BalanceValidationResult(BaseModel):
    """Stored balance compared with the sum of the client's work contributions."""
    client_id: int
    stored_balance: int
    calculated_balance: int
    is_consistent: bool
    difference: int  # stored - calculated


class BalanceCorrection(BaseModel):
    """A repair applied to one client."""
    client_id: int
    old_balance: int
    new_balance: int
    difference: int  # new - old
    history_entry_id: int


class RepairFailure(BaseModel):
    client_id: int
    error: str


class RepairAllResponse(BaseModel):
    """Operator report of a full reconciliation run."""
    clients_processed: int
    corrections: List[BalanceCorrection]
    failures: List[RepairFailure]


class RepairBalanceResponse(BaseModel):
    client_id: int
    repaired: bool
    correction: Optional[BalanceCorrection]


class ManualAdjustmentCreate(BaseModel):
    """Operator adjustment of a client balance."""
    amount: int = Field(
        ...,
        ge=-settings.max_amount,
        le=settings.max_amount,
        description="Signed change in minor units, non-zero"
    )
    reason: str = Field(..., min_length=1, max_length=400)
