"""
TradeDoc Tracker - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from tradedoc.models.base import BaseModel, TimestampMixin
from tradedoc.models.transaction import Transaction, DocumentStatus, StatusView
from tradedoc.models.customer import Customer
from tradedoc.models.email_config import EmailConfig

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "Transaction",
    "DocumentStatus",
    "StatusView",
    "Customer",
    "EmailConfig",
]
