"""
TradeDoc Tracker - Customer Model

Customers receiving document reminders.
"""

from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from tradedoc.models.base import BaseModel


class Customer(BaseModel):
    """
    Customer keyed by the back-office customer number.

    Transactions reference customers by `custno` equality; there is no
    foreign key, so a transaction may exist before its customer does.
    """

    __tablename__ = "customers"

    custno: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    # Contact
    contact_person: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, custno={self.custno})>"
