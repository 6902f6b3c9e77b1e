from datetime import date, datetime, time, timezone
from typing import Optional

from .config import REPORTING_OFFSET, DateOrder


def parse_date(text: Optional[str], order: DateOrder = DateOrder.MONTH_FIRST) -> Optional[date]:
    """
    Parse a ``N/N/N`` sheet date into a calendar date.

    Returns None for anything that is not three integer fields or that does
    not name a real calendar day (month 13, 31 February).
    """

    if not text:
        return None

    parts = text.strip().split("/")
    if len(parts) != 3:
        return None

    try:
        first, second, year = (int(part) for part in parts)
    except ValueError:
        return None

    if order == DateOrder.DAY_FIRST:
        day, month = first, second
    else:
        month, day = first, second

    try:
        return date(year, month, day)
    except ValueError:
        return None


def reporting_date(instant: datetime) -> date:
    """Calendar date of ``instant`` in the UTC+3 reporting timezone.

    Naive instants are taken as UTC.
    """

    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)

    shifted = instant.astimezone(timezone.utc) + REPORTING_OFFSET
    return shifted.date()


def days_until(target, reference_instant: datetime) -> int:
    if isinstance(target, datetime):
        target = target.date()

    return (target - reporting_date(reference_instant)).days


def format_display_date(value: date) -> str:
    """Render a stored date as DD/MM/YYYY after the reporting-timezone shift."""

    shifted = datetime.combine(value, time.min) + REPORTING_OFFSET
    return shifted.strftime("%d/%m/%Y")
