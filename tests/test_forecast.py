"""Tests for straight-line forecasts."""

from datetime import date

import pytest

from analytics import forecast


class TestLinearTrend:
    def test_exact_line(self):
        slope, intercept = forecast.linear_trend([1, 2, 3, 4])
        assert slope == pytest.approx(1.0)
        assert intercept == pytest.approx(1.0)

    def test_single_point_is_flat(self):
        assert forecast.linear_trend([7]) == (0.0, 7.0)

    def test_empty(self):
        assert forecast.linear_trend([]) == (0.0, 0.0)


class TestProject:
    def test_continues_the_line(self):
        history = forecast.fill_daily(
            [{"date": date(2026, 5, d), "value": d} for d in (1, 2, 3, 4)],
            date(2026, 5, 1),
            date(2026, 5, 4),
        )
        points = forecast.project(history, 2)
        assert points == [{"date": date(2026, 5, 5), "value": 5.0}, {"date": date(2026, 5, 6), "value": 6.0}]

    def test_never_negative(self):
        history = forecast.fill_daily(
            [{"date": date(2026, 5, 1), "value": 30}, {"date": date(2026, 5, 2), "value": 10}],
            date(2026, 5, 1),
            date(2026, 5, 2),
        )
        assert [p["value"] for p in forecast.project(history, 3)] == [0.0, 0.0, 0.0]

    def test_empty_history(self):
        assert forecast.project([], 5) == []


def test_missing_days_are_zero():
    history = forecast.fill_daily([{"date": date(2026, 5, 2), "value": None}], date(2026, 5, 1), date(2026, 5, 3))
    assert [p["value"] for p in history] == [0.0, 0.0, 0.0]


@pytest.mark.parametrize("slope,expected", [(0.5, "up"), (-0.5, "down"), (0.0, "flat")])
def test_direction(slope, expected):
    assert forecast.direction(slope) == expected
