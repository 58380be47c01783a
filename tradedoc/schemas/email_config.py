"""
TradeDoc Tracker - Sender Account Schemas

The stored password is accepted on write and never returned.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class EmailConfigCreateRequest(BaseModel):
    """Schema for creating a sender account."""
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=255)
    is_active: bool = True


class EmailConfigUpdateRequest(BaseModel):
    """Schema for updating a sender account."""
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=1, max_length=255)
    is_active: Optional[bool] = None


class EmailConfigResponse(BaseModel):
    """Schema for sender account response."""
    id: int
    email: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
