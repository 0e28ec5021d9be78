"""
Analytics Schemas.

All money values are in minor units.
"""

from pydantic import BaseModel
from datetime import date
from typing import List, Optional


class WorkStats(BaseModel):
    """Totals across all work transactions, in minor units."""
    total_works: int
    total_income: int
    total_due: int
    total_value: int
    paid_works: int
    partial_works: int
    unpaid_works: int


class PaymentBreakdown(BaseModel):
    paid: int
    partial: int
    unpaid: int


class ClientBalanceBreakdown(BaseModel):
    """Client counts by sign of the stored balance."""
    positive: int
    negative: int
    zero: int


class OverviewStats(BaseModel):
    """Dashboard headline numbers for a transaction date window."""
    total_clients: int
    total_works: int
    total_income: int
    total_due: int
    total_value: int
    payment_breakdown: PaymentBreakdown
    client_balance_breakdown: ClientBalanceBreakdown
    date_from: Optional[date] = None
    date_to: Optional[date] = None


class ClientPerformance(BaseModel):
    client_id: int
    client_name: str
    total_income: int
    total_due: int
    total_value: int
    work_count: int
    current_balance: int


class ClientAnalytics(BaseModel):
    """Clients with work in the window, best paying first."""
    top_clients: List[ClientPerformance]
    all_client_data: List[ClientPerformance]
    total_active_clients: int


class StatusAmounts(BaseModel):
    count: int
    value: int
    paid: int


class PaymentStatusBreakdown(BaseModel):
    paid: StatusAmounts
    partial: StatusAmounts
    unpaid: StatusAmounts


class MonthlyCollection(BaseModel):
    month: str  # YYYY-MM
    total_value: int
    total_paid: int
    total_due: int
    efficiency: float
    work_count: int


class OutstandingByWorkType(BaseModel):
    work_type: str
    total_due: int
    work_count: int
    average_due: float


class PaymentAnalytics(BaseModel):
    """Collection efficiency and what is still outstanding."""
    total_value: int
    total_paid: int
    total_due: int
    collection_efficiency: float  # percent of value collected
    payment_status_breakdown: PaymentStatusBreakdown
    monthly_collection: List[MonthlyCollection]
    outstanding_by_work_type: List[OutstandingByWorkType]
