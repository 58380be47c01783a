"""
TradeDoc Tracker - Transaction Model

Trade-finance transaction awaiting supporting documents.

Workflow stages:
- Teller records that documents were added (status)
- Controller censors the transaction (censored)
- Post-inspector approves afterwards (post_inspection)
- Reminder scheduler owns is_sending_email / is_send_email
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean, CheckConstraint, Date, DateTime, Numeric, String, Text, Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from tradedoc.models.base import BaseModel


def _normalize_label(value: str) -> str:
    return " ".join(str(value).strip().lower().split())


class DocumentStatus(str, Enum):
    """Persisted document-completion status."""
    AWAITING_DOCUMENTS = "awaiting_documents"  # Chưa bổ sung
    DOCUMENTS_ADDED = "documents_added"        # Đã bổ sung

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self.value]

    @classmethod
    def parse(cls, value) -> "DocumentStatus":
        """Accept either the code or the Vietnamese label. Raises ValueError."""
        if isinstance(value, cls):
            return value
        wanted = _normalize_label(value)
        for member in cls:
            if wanted in (member.value, _normalize_label(member.label)):
                return member
        raise ValueError(f"Unknown document status: {value!r}")


class StatusView(str, Enum):
    """Status as shown to users; OVERDUE is derived at query time."""
    AWAITING_DOCUMENTS = "awaiting_documents"
    OVERDUE = "overdue"
    DOCUMENTS_ADDED = "documents_added"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self.value]

    @classmethod
    def parse(cls, value) -> "StatusView":
        """Accept either the code or the Vietnamese label. Raises ValueError."""
        if isinstance(value, cls):
            return value
        wanted = _normalize_label(value)
        for member in cls:
            if wanted in (member.value, _normalize_label(member.label)):
                return member
        raise ValueError(f"Unknown status view: {value!r}")


_STATUS_LABELS = {
    "awaiting_documents": "Chưa bổ sung",
    "overdue": "Quá hạn",
    "documents_added": "Đã bổ sung",
}


class Transaction(BaseModel):
    """
    Trade-finance transaction imported from the back-office export.

    `trref` is the business reference and is unique across the table.
    Customers are linked through `custno` only (no foreign key).
    """

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="amount_non_negative"),
    )

    # Identity
    trref: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    custno: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    custnm: Mapped[str] = mapped_column(String(255), nullable=False)

    # Trade details
    tradate: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    currency: Mapped[str] = mapped_column(String(10), nullable=False)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )
    bencust: Mapped[str] = mapped_column(String(255), nullable=False)
    remark: Mapped[str] = mapped_column(Text, nullable=False, default="")
    document: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Extracted from remark
    contract_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    expected_delivery_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Deadlines
    expected_declaration_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        index=True,
        comment="Regulatory deadline for supplying documents",
    )
    additional_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        comment="Grace deadline: declaration deadline + 30 days",
    )

    # Workflow
    status: Mapped[DocumentStatus] = mapped_column(
        SQLEnum(
            DocumentStatus,
            native_enum=False,
            length=32,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        default=DocumentStatus.AWAITING_DOCUMENTS,
        nullable=False,
        index=True,
    )
    is_document_added: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    censored: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    post_inspection: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Notes per stage
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    note_censored: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    note_inspection: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Reminder delivery
    is_send_email: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    is_sending_email: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reminder_due_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reminder_attempted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Audit
    updated_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    def is_overdue(self, today: date) -> bool:
        """Overdue only while documents are still awaited."""
        return (
            self.status == DocumentStatus.AWAITING_DOCUMENTS
            and self.expected_declaration_date is not None
            and self.expected_declaration_date < today
        )

    def status_view(self, today: date) -> StatusView:
        if self.is_overdue(today):
            return StatusView.OVERDUE
        return StatusView(self.status.value)

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, trref={self.trref}, status={self.status.value})>"
