"""
TradeDoc Tracker - Transaction Schemas

Pydantic schemas for transaction listings, imports and workflow updates.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from tradedoc.models.transaction import DocumentStatus


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class DocumentUpdateRequest(BaseModel):
    """Teller update: documents supplied."""
    status: Optional[str] = Field(None, description="Status code or label, e.g. 'Đã bổ sung'")
    note: Optional[str] = None


class CensorshipUpdateRequest(BaseModel):
    """Controller update: censorship."""
    status: Optional[str] = None
    note_censored: Optional[str] = None
    censored: Optional[bool] = None


class PostInspectionUpdateRequest(BaseModel):
    """Post-inspector update."""
    status: Optional[str] = None
    note_inspection: Optional[str] = None
    post_inspection: Optional[bool] = None


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class TransactionResponse(BaseModel):
    """Schema for transaction response."""
    id: int
    trref: str
    custno: str
    custnm: str
    tradate: Optional[date] = None
    currency: str
    amount: Decimal
    bencust: str
    remark: str
    document: Optional[str] = None

    # Extracted / derived
    contract_number: Optional[str] = None
    expected_delivery_date: Optional[date] = None
    expected_declaration_date: Optional[date] = None
    additional_date: Optional[date] = None

    # Workflow
    status: DocumentStatus
    is_document_added: bool
    censored: bool
    post_inspection: bool
    note: Optional[str] = None
    note_censored: Optional[str] = None
    note_inspection: Optional[str] = None

    # Reminder
    is_send_email: bool
    is_sending_email: bool
    reminder_sent_at: Optional[datetime] = None

    # Audit
    updated_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TransactionPage(BaseModel):
    """Paginated transactions."""
    data: List[TransactionResponse]
    total: int
    page: int
    limit: int
    last_page: int


class ImportResult(BaseModel):
    """Outcome of a transaction import."""
    created: int
    skipped_duplicates: int
    total_rows: int
