"""
TradeDoc Tracker - Date Helpers

"Today" and dispatch instants are evaluated in the business timezone,
not the server's.
"""

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from tradedoc.config import settings

DISPLAY_DATE_FORMAT = "%d/%m/%Y"


def business_tz() -> ZoneInfo:
    return ZoneInfo(settings.business_timezone)


def business_now() -> datetime:
    return datetime.now(business_tz())


def business_today() -> date:
    return business_now().date()


def as_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes read back from the database as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def format_date(value: Optional[date]) -> str:
    """dd/mm/yyyy, empty for missing dates."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = value.date()
    return value.strftime(DISPLAY_DATE_FORMAT)
