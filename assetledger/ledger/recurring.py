"""Calendar stepping for recurring rules."""

import calendar
from datetime import datetime, timedelta

from assetledger.models.ledger import RecurrenceFrequency


def _add_month(year: int, month: int, delta: int) -> tuple[int, int]:
    total = year * 12 + (month - 1) + delta
    return total // 12, total % 12 + 1


def next_recurring_date(
    current: datetime,
    frequency: RecurrenceFrequency,
    interval: int = 1,
) -> datetime:
    """
    Advance `current` by `interval` days, weeks or months.

    Month steps keep the day of month, clamped to the last day of the
    target month (Jan 31 -> Feb 28). Each step starts from the previous
    result, so a clamped day stays clamped. Time of day and tzinfo are kept.
    """
    interval = max(1, interval)
    if frequency == RecurrenceFrequency.DAILY:
        return current + timedelta(days=interval)
    if frequency == RecurrenceFrequency.WEEKLY:
        return current + timedelta(weeks=interval)

    year, month = _add_month(current.year, current.month, interval)
    last_day = calendar.monthrange(year, month)[1]
    return current.replace(year=year, month=month, day=min(current.day, last_day))
