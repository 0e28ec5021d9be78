"""
Work Transaction Pydantic schemas.

Defines request and response models for the transaction store.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime, date
from typing import Optional, List
from backend.app.core.config import settings
from backend.app.models.ledger_enums import WorkType, PaymentStatus

MIN_YEAR = 1900
DESCRIPTION_MIN_LENGTH = 5


def parse_transaction_date(value):
    """Accept DD/MM/YYYY besides ISO dates."""
    if isinstance(value, str):
        value = value.strip()
        try:
            return datetime.strptime(value, "%d/%m/%Y").date()
        except ValueError:
            return value
    return value


def validate_transaction_date(value: Optional[date]) -> Optional[date]:
    if value is not None and not (MIN_YEAR <= value.year <= date.today().year + 100):
        raise ValueError(f"Year must be between {MIN_YEAR} and {date.today().year + 100}")
    return value


def normalize_description(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if len(value) < DESCRIPTION_MIN_LENGTH:
        raise ValueError(f"Description must be at least {DESCRIPTION_MIN_LENGTH} characters")
    return value


def normalize_work_types(value: Optional[List[WorkType]]) -> Optional[List[WorkType]]:
    if value is None:
        return value
    return list(dict.fromkeys(value))


class WorkCreate(BaseModel):
    """Schema for recording a new work transaction."""
    client_id: int = Field(..., ge=1)
    total_price: int = Field(..., ge=0, le=settings.max_amount, description="Price in minor units")
    paid_amount: int = Field(0, ge=0, le=settings.max_amount, description="Amount paid in minor units")
    work_types: List[WorkType] = Field(..., min_length=1)
    description: str = Field(..., max_length=500)
    transaction_date: date

    @field_validator("transaction_date", mode="before")
    @classmethod
    def parse_date(cls, value):
        return parse_transaction_date(value)

    @field_validator("transaction_date")
    @classmethod
    def check_date(cls, value):
        return validate_transaction_date(value)

    @field_validator("description")
    @classmethod
    def check_description(cls, value):
        return normalize_description(value)

    @field_validator("work_types")
    @classmethod
    def dedupe_work_types(cls, value):
        return normalize_work_types(value)


class WorkUpdate(BaseModel):
    """Schema for updating an existing work transaction. Unset fields are kept."""
    client_id: Optional[int] = Field(None, ge=1)
    total_price: Optional[int] = Field(None, ge=0, le=settings.max_amount)
    paid_amount: Optional[int] = Field(None, ge=0, le=settings.max_amount)
    work_types: Optional[List[WorkType]] = Field(None, min_length=1)
    description: Optional[str] = Field(None, max_length=500)
    transaction_date: Optional[date] = None

    @field_validator("transaction_date", mode="before")
    @classmethod
    def parse_date(cls, value):
        return parse_transaction_date(value)

    @field_validator("transaction_date")
    @classmethod
    def check_date(cls, value):
        return validate_transaction_date(value)

    @field_validator("description")
    @classmethod
    def check_description(cls, value):
        return normalize_description(value)

    @field_validator("work_types")
    @classmethod
    def dedupe_work_types(cls, value):
        return normalize_work_types(value)


class WorkResponse(BaseModel):
    """Schema for work transaction response."""
    id: int
    client_id: int
    total_price: int
    paid_amount: int
    balance_contribution: int
    payment_status: PaymentStatus
    work_types: List[WorkType]
    transaction_date: date
    description: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WorkListResponse(BaseModel):
    """Schema for paginated work list."""
    works: List[WorkResponse]
    total: int
    page: int
    page_size: int
