"""
Client Pydantic schemas.

Defines request and response models for client registration and lookup.
The balance is read-only here: it is owned by the ledger.
"""

import re
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List
from backend.app.models.ledger_enums import WorkType, BalanceType

PHONE_PATTERN = re.compile(r"^(91)?[6-9][0-9]{9}$")
PAN_PATTERN = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")


def normalize_phone(value: Optional[str]) -> Optional[str]:
    """Accept +91XXXXXXXXXX, 91XXXXXXXXXX or XXXXXXXXXX with spaces or dashes."""
    if value is None:
        return value
    cleaned = re.sub(r"[\s\-+]", "", value)
    if not PHONE_PATTERN.match(cleaned):
        raise ValueError("Phone number must be a valid Indian mobile number")
    return cleaned[-10:]


def normalize_pan(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    value = value.strip().upper()
    if not PAN_PATTERN.match(value):
        raise ValueError("PAN must be in format AAAAA9999A")
    return value


class ClientCreate(BaseModel):
    """Schema for registering a new client."""
    name: str = Field(..., min_length=2, max_length=100, description="Client name")
    phone: str = Field(..., description="Indian mobile number")
    email: Optional[str] = Field(None, max_length=255, pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    address: str = Field(..., min_length=10, max_length=500)
    pan_number: Optional[str] = None
    usual_work_types: List[WorkType] = Field(default_factory=list)

    @field_validator("name", "address", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value):
        return normalize_phone(value)

    @field_validator("pan_number")
    @classmethod
    def check_pan(cls, value):
        return normalize_pan(value)


class ClientUpdate(BaseModel):
    """Schema for updating client contact details. Balance cannot be set."""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = None
    email: Optional[str] = Field(None, max_length=255, pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    address: Optional[str] = Field(None, min_length=10, max_length=500)
    pan_number: Optional[str] = None
    usual_work_types: Optional[List[WorkType]] = None

    @field_validator("name", "address", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value):
        return normalize_phone(value)

    @field_validator("pan_number")
    @classmethod
    def check_pan(cls, value):
        return normalize_pan(value)


class ClientResponse(BaseModel):
    """Schema for client response."""
    id: int
    name: str
    phone: str
    email: Optional[str]
    address: str
    pan_number: Optional[str]
    usual_work_types: List[WorkType]
    balance: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ClientListResponse(BaseModel):
    """Schema for paginated client list."""
    clients: List[ClientResponse]
    total: int
    page: int
    page_size: int


class ClientBalanceResponse(BaseModel):
    """Live balance of a client, in minor units."""
    client_id: int
    balance: int
    balance_type: BalanceType
