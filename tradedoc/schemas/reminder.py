"""
TradeDoc Tracker - Reminder Schemas
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class SweepReportResponse(BaseModel):
    """Counters of one reminder sweep."""
    candidates: int
    claimed: int
    dispatched: int
    deferred: int
    failed: int
    skipped: int


class PendingReminderResponse(BaseModel):
    """A claimed reminder that has not been delivered."""
    transaction_id: int
    trref: str
    custno: str
    reminder_due_at: Optional[datetime] = None
    reminder_attempted_at: Optional[datetime] = None
    scheduled: bool
    fire_at: Optional[datetime] = None
