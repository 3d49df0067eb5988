"""Tests for reporting period resolution."""

from datetime import date, datetime, timezone

import pytest

from analytics import periods

# A Wednesday.
NOW = datetime(2026, 5, 20, 15, 45, tzinfo=timezone.utc)


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestDateRange:
    def test_today(self):
        window = periods.date_range("today", now=NOW)
        assert (window.start, window.end) == (_utc(2026, 5, 20), _utc(2026, 5, 21))

    def test_yesterday(self):
        window = periods.date_range("yesterday", now=NOW)
        assert (window.start, window.end) == (_utc(2026, 5, 19), _utc(2026, 5, 20))

    def test_week_starts_sunday(self):
        window = periods.date_range("week", now=NOW)
        assert window.start == _utc(2026, 5, 17)
        assert window.days == 7

    def test_week_on_a_sunday(self):
        window = periods.date_range("week", now=_utc(2026, 5, 17, 10))
        assert window.start == _utc(2026, 5, 17)

    def test_quarter(self):
        window = periods.date_range("quarter", now=NOW)
        assert (window.start, window.end) == (_utc(2026, 4, 1), _utc(2026, 7, 1))

    def test_year(self):
        window = periods.date_range("year", now=NOW)
        assert (window.start, window.end) == (_utc(2026, 1, 1), _utc(2027, 1, 1))

    def test_month_in_december(self):
        window = periods.date_range("month", now=_utc(2026, 12, 5))
        assert (window.start, window.end) == (_utc(2026, 12, 1), _utc(2027, 1, 1))

    def test_unknown_falls_back_to_month(self):
        assert periods.date_range("fortnight", now=NOW) == periods.date_range("month", now=NOW)

    def test_custom_end_is_inclusive(self):
        window = periods.date_range("custom", now=NOW, start_date=date(2026, 1, 1), end_date=date(2026, 1, 31))
        assert (window.start, window.end) == (_utc(2026, 1, 1), _utc(2026, 2, 1))
        assert window.as_dict()["end_formatted"] == "2026-01-31"

    def test_custom_requires_both_dates(self):
        with pytest.raises(periods.PeriodError):
            periods.date_range("custom", now=NOW, start_date=date(2026, 1, 1))

    def test_custom_rejects_reversed_dates(self):
        with pytest.raises(periods.PeriodError):
            periods.date_range("custom", now=NOW, start_date=date(2026, 2, 1), end_date=date(2026, 1, 1))

    def test_previous_has_equal_length(self):
        window = periods.date_range("last7days", now=NOW)
        previous = window.previous()
        assert previous.end == window.start
        assert previous.days == window.days


class TestPercentageChange:
    @pytest.mark.parametrize(
        "current,previous,expected",
        [
            (150, 100, 50.0),
            (50, 100, -50.0),
            (10, 0, 100.0),
            (0, 0, 0.0),
            (None, None, 0.0),
            (1, 3, -66.67),
        ],
    )
    def test_change(self, current, previous, expected):
        assert periods.percentage_change(current, previous) == expected


def test_month_starts():
    starts = periods.month_starts(3, now=_utc(2026, 2, 14))
    assert starts == [_utc(2025, 12, 1), _utc(2026, 1, 1), _utc(2026, 2, 1)]
