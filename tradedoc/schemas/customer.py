"""
TradeDoc Tracker - Customer Schemas

Pydantic schemas for the customer directory.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from tradedoc.schemas.transaction import TransactionResponse


def _as_text(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


# ===========================================
# IMPORT SCHEMAS
# ===========================================

class CustomerImportRow(BaseModel):
    """One spreadsheet row of a customer import."""
    custno: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    contact_person: Optional[str] = Field(None, max_length=255)
    phone_number: Optional[str] = Field(None, max_length=20)

    @field_validator("custno", "name", "contact_person", "phone_number", "email", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        return _as_text(value)


class CustomerImportResult(BaseModel):
    """Outcome of a customer import."""
    created: int
    updated: int
    total_rows: int


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class CustomerResponse(BaseModel):
    """Schema for customer response."""
    id: int
    custno: str
    name: str
    email: str

    # Contact
    contact_person: Optional[str] = None
    phone_number: Optional[str] = None

    created_at: datetime

    class Config:
        from_attributes = True


class CustomerWithTransactions(BaseModel):
    """Customer with the transactions matching the listing filter."""
    customer: CustomerResponse
    transactions: List[TransactionResponse]


class CustomerWithTransactionsPage(BaseModel):
    """Paginated customers with transactions."""
    data: List[CustomerWithTransactions]
    total: int
    page: int
    limit: int
    last_page: int
