"""
TradeDoc Tracker - Sender Account Model

Mailbox used as the sender of reminder emails.
"""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from tradedoc.models.base import BaseModel


class EmailConfig(BaseModel):
    """Sender mailbox and its SMTP credential."""

    __tablename__ = "email_configs"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="SMTP credential for this mailbox",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<EmailConfig(id={self.id}, email={self.email})>"
