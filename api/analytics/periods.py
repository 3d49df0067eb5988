"""
Reporting periods. Ranges are half-open: start <= t < end, in UTC.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

PERIODS = (
    "today",
    "yesterday",
    "week",
    "month",
    "quarter",
    "year",
    "last7days",
    "last30days",
    "custom",
)

DEFAULT_PERIOD = "month"


class PeriodError(ValueError):
    pass


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    @property
    def days(self) -> float:
        return (self.end - self.start).total_seconds() / 86400

    def previous(self) -> DateRange:
        """Range of equal length right before this one."""
        length = self.end - self.start
        return DateRange(start=self.start - length, end=self.start)

    def as_dict(self) -> dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "start_formatted": self.start.date().isoformat(),
            "end_formatted": (self.end - timedelta(microseconds=1)).date().isoformat(),
        }


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _add_months(day: date, months: int) -> date:
    index = day.month - 1 + months
    return date(day.year + index // 12, index % 12 + 1, 1)


def date_range(
    period: str | None,
    *,
    now: datetime | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> DateRange:
    """
    Resolve a named period. Unknown names fall back to the current month.
    Weeks start on Sunday. `custom` needs both dates; end_date is inclusive.
    """
    now = now or datetime.now(timezone.utc)
    today = now.astimezone(timezone.utc).date()

    if period == "custom":
        if start_date is None or end_date is None:
            raise PeriodError("start_date and end_date are required for a custom period")
        if end_date < start_date:
            raise PeriodError("end_date must not be before start_date")
        return DateRange(_midnight(start_date), _midnight(end_date + timedelta(days=1)))

    if period == "today":
        return DateRange(_midnight(today), _midnight(today + timedelta(days=1)))
    if period == "yesterday":
        return DateRange(_midnight(today - timedelta(days=1)), _midnight(today))
    if period == "week":
        # date.weekday(): Monday=0 ... Sunday=6
        start = today - timedelta(days=(today.weekday() + 1) % 7)
        return DateRange(_midnight(start), _midnight(start + timedelta(days=7)))
    if period == "quarter":
        first = date(today.year, 3 * ((today.month - 1) // 3) + 1, 1)
        return DateRange(_midnight(first), _midnight(_add_months(first, 3)))
    if period == "year":
        return DateRange(_midnight(date(today.year, 1, 1)), _midnight(date(today.year + 1, 1, 1)))
    if period == "last7days":
        return DateRange(_midnight(today - timedelta(days=7)), _midnight(today + timedelta(days=1)))
    if period == "last30days":
        return DateRange(_midnight(today - timedelta(days=30)), _midnight(today + timedelta(days=1)))

    first = today.replace(day=1)
    return DateRange(_midnight(first), _midnight(_add_months(first, 1)))


def percentage_change(current: Any, previous: Any) -> float:
    current_f = float(current or 0)
    previous_f = float(previous or 0)
    if previous_f == 0:
        return 100.0 if current_f > 0 else 0.0
    return round((current_f - previous_f) / previous_f * 100, 2)


def month_starts(count: int, *, now: datetime | None = None) -> list[datetime]:
    """First instants of the last `count` months, oldest first, current month last."""
    now = now or datetime.now(timezone.utc)
    current = now.astimezone(timezone.utc).date().replace(day=1)
    return [_midnight(_add_months(current, -offset)) for offset in range(count - 1, -1, -1)]
