"""
Straight-line forecasts over a daily series.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, timedelta
from typing import Any


def fill_daily(rows: Sequence[dict[str, Any]], start: date, end: date) -> list[dict[str, Any]]:
    """One point per day from start to end inclusive; days without rows are 0."""
    values = {row["date"]: float(row["value"] or 0) for row in rows}
    days = (end - start).days + 1
    return [
        {"date": start + timedelta(days=offset), "value": values.get(start + timedelta(days=offset), 0.0)}
        for offset in range(max(days, 0))
    ]


def linear_trend(values: Sequence[float]) -> tuple[float, float]:
    """Least-squares (slope, intercept) with x = 0, 1, 2, ..."""
    n = len(values)
    if n == 0:
        return 0.0, 0.0
    if n == 1:
        return 0.0, float(values[0])
    mean_x = (n - 1) / 2
    mean_y = sum(values) / n
    sxx = sum((x - mean_x) ** 2 for x in range(n))
    sxy = sum((x - mean_x) * (y - mean_y) for x, y in enumerate(values))
    slope = sxy / sxx
    return slope, mean_y - slope * mean_x


def project(history: Sequence[dict[str, Any]], horizon: int) -> list[dict[str, Any]]:
    """
    Extend `history` (output of fill_daily) by `horizon` days along its trend.
    Predictions never go below zero.
    """
    if not history:
        return []
    slope, intercept = linear_trend([point["value"] for point in history])
    last_day = history[-1]["date"]
    n = len(history)
    return [
        {
            "date": last_day + timedelta(days=step),
            "value": round(max(0.0, intercept + slope * (n - 1 + step)), 2),
        }
        for step in range(1, horizon + 1)
    ]


def direction(slope: float, *, tolerance: float = 1e-9) -> str:
    if slope > tolerance:
        return "up"
    if slope < -tolerance:
        return "down"
    return "flat"
