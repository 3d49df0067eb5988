"""
Admin analytics: assembles reporting queries per period.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any

from fastapi import HTTPException, status

from core.text import to_csv

from . import forecast, periods, repository, schemas

logger = logging.getLogger(__name__)

EXPORT_HEADERS = {
    "users": ["id", "full_name", "email", "phone", "city", "current_tier", "total_spent", "is_active", "created_at"],
    "shops": [
        "id",
        "name",
        "owner_name",
        "email",
        "phone",
        "category",
        "district",
        "status",
        "total_transactions",
        "total_revenue",
        "created_at",
    ],
    "transactions": [
        "transaction_ref",
        "transaction_date",
        "user_name",
        "shop_name",
        "amount",
        "discount_percentage",
        "discount_amount",
        "final_amount",
        "payment_method",
        "status",
    ],
    "revenue": ["date", "gross", "discount", "net"],
}


def resolve_range(period: str, start_date: date | None = None, end_date: date | None = None) -> periods.DateRange:
    try:
        return periods.date_range(period, start_date=start_date, end_date=end_date)
    except periods.PeriodError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc


async def dashboard(window: periods.DateRange, period: str) -> dict[str, Any]:
    overview = await repository.overview_totals()
    current = await repository.period_totals(window.start, window.end)
    return {
        "period": period,
        "range": window.as_dict(),
        "overview": overview,
        "period_data": {
            "new_users": current.get("new_users", 0),
            "new_shops": current.get("new_shops", 0),
            "transactions": current.get("transactions", 0),
            "revenue": current.get("revenue", 0),
            "discount": current.get("discount", 0),
        },
        "metrics": {
            "active_users": overview.get("active_users", 0),
            "approved_shops": overview.get("approved_shops", 0),
            "pending_shops": overview.get("pending_shops", 0),
            "average_transaction_value": current.get("average_transaction_value", 0),
            "active_customers": current.get("active_customers", 0),
        },
        "tier_distribution": await repository.tier_distribution(),
    }


async def users(window: periods.DateRange, period: str) -> dict[str, Any]:
    return {
        "period": period,
        "range": window.as_dict(),
        "registrations": await repository.registrations_per_day(window.start, window.end),
        "tier_distribution": await repository.tier_distribution(),
        "city_distribution": await repository.city_distribution(),
        "verification": await repository.verification_counts(),
    }


async def shops(window: periods.DateRange, period: str) -> dict[str, Any]:
    return {
        "period": period,
        "range": window.as_dict(),
        "by_status": await repository.shops_by_status(),
        "by_category": await repository.shops_by_category(),
        "new_shops": await repository.new_shops_per_day(window.start, window.end),
        "top_shops": await repository.top_shops(window.start, window.end),
    }


async def transactions(window: periods.DateRange, period: str) -> dict[str, Any]:
    return {
        "period": period,
        "range": window.as_dict(),
        "daily": await repository.transactions_per_day(window.start, window.end),
        "by_status": await repository.transactions_by_status(window.start, window.end),
        "by_payment_method": await repository.transactions_by_payment_method(window.start, window.end),
    }


async def revenue(window: periods.DateRange, period: str, *, compare: bool = True) -> dict[str, Any]:
    current = await repository.revenue_totals(window.start, window.end)
    result: dict[str, Any] = {
        "period": period,
        "range": window.as_dict(),
        "daily": await repository.revenue_per_day(window.start, window.end),
        "totals": current,
    }
    if compare:
        previous_window = window.previous()
        previous = await repository.revenue_totals(previous_window.start, previous_window.end)
        result["previous"] = {"range": previous_window.as_dict(), "totals": previous}
        result["change"] = {
            "net": periods.percentage_change(current.get("net"), previous.get("net")),
            "gross": periods.percentage_change(current.get("gross"), previous.get("gross")),
            "transactions": periods.percentage_change(current.get("transactions"), previous.get("transactions")),
        }
    return result


async def discounts(window: periods.DateRange, period: str) -> dict[str, Any]:
    summary = await repository.discount_summary(window.start, window.end)
    total = int(summary.get("total_transactions") or 0)
    discounted = int(summary.get("discounted_transactions") or 0)
    return {
        "period": period,
        "range": window.as_dict(),
        "summary": {
            **summary,
            "utilisation_rate": round(discounted / total * 100, 2) if total else 0.0,
        },
        "by_tier": await repository.discount_by_tier(window.start, window.end),
        "top_rules": await repository.top_rules(),
    }


async def top_performers(window: periods.DateRange, period: str, *, metric: str, limit: int) -> dict[str, Any]:
    return {
        "period": period,
        "metric": metric,
        "shops": await repository.top_shops(window.start, window.end, order=metric, limit=limit),
        "users": await repository.top_users(window.start, window.end, order=metric, limit=limit),
    }


async def growth(*, months: int) -> dict[str, Any]:
    starts = periods.month_starts(months)
    rows = await repository.monthly_growth(starts[0])
    series = []
    previous: dict[str, Any] | None = None
    for row in rows:
        entry = dict(row)
        if previous is not None:
            entry["users_change"] = periods.percentage_change(row["new_users"], previous["new_users"])
            entry["shops_change"] = periods.percentage_change(row["new_shops"], previous["new_shops"])
            entry["revenue_change"] = periods.percentage_change(row["revenue"], previous["revenue"])
        series.append(entry)
        previous = row
    return {"months": months, "series": series}


async def export(kind: str, window: periods.DateRange) -> str:
    if kind == "users":
        rows = await repository.export_users(window.start, window.end)
    elif kind == "shops":
        rows = await repository.export_shops(window.start, window.end)
    elif kind == "transactions":
        rows = await repository.export_transactions(window.start, window.end)
    elif kind == "revenue":
        rows = await repository.revenue_per_day(window.start, window.end)
    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown export type: {kind}")
    logger.info("analytics_export type=%s rows=%s", kind, len(rows))
    return to_csv(rows, EXPORT_HEADERS[kind])


REALTIME_METRICS = ("transactions", "revenue", "users")
ONLINE_WINDOW = timedelta(minutes=15)
FORECAST_HISTORY_DAYS = 90
REPORT_MAX_DAYS = 366

# Columns of the transaction report series that each metric keeps.
REPORT_COLUMNS = {
    "transactions": ("transactions", "gross"),
    "revenue": ("gross", "discount", "net"),
    "discounts": ("transactions", "discounted_transactions", "discount"),
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def geographic(kind: str, window: periods.DateRange, period: str) -> dict[str, Any]:
    if kind == "users":
        level, rows = "city", await repository.city_distribution(limit=20)
    elif kind == "shops":
        level, rows = "district", await repository.shop_district_distribution(limit=20)
    else:
        level, rows = "district", await repository.revenue_by_district(window.start, window.end, limit=20)
    return {"type": kind, "level": level, "period": period, "range": window.as_dict(), "distribution": rows}


async def realtime(metrics: list[str], *, now: datetime | None = None) -> dict[str, Any]:
    now = now or _utc_now()
    today = periods.date_range("today", now=now)
    counts = await repository.realtime_counts(
        day_start=today.start,
        hour_ago=now - timedelta(hours=1),
        active_since=now - ONLINE_WINDOW,
    )
    data: dict[str, Any] = {"timestamp": now}
    if "transactions" in metrics:
        data["transactions"] = {
            "today": counts.get("transactions_today", 0),
            "last_hour": counts.get("transactions_last_hour", 0),
        }
    if "revenue" in metrics:
        data["revenue"] = {
            "today": counts.get("revenue_today", 0),
            "last_hour": counts.get("revenue_last_hour", 0),
        }
    if "users" in metrics:
        data["users"] = {
            "new_today": counts.get("users_today", 0),
            "online": counts.get("users_online", 0),
        }
    return data


async def compare(
    metric: str,
    first: tuple[str, periods.DateRange],
    second: tuple[str, periods.DateRange],
) -> dict[str, Any]:
    (first_label, first_window), (second_label, second_window) = first, second
    first_value = await repository.metric_total(metric, first_window.start, first_window.end) or 0
    second_value = await repository.metric_total(metric, second_window.start, second_window.end) or 0
    return {
        "metric": metric,
        "period1": {"period": first_label, "range": first_window.as_dict(), "value": first_value},
        "period2": {"period": second_label, "range": second_window.as_dict(), "value": second_value},
        "difference": {
            "absolute": round(float(first_value) - float(second_value), 2),
            "percentage": periods.percentage_change(first_value, second_value),
        },
    }


async def custom_report(payload: schemas.CustomReportRequest, *, admin_id: int) -> dict[str, Any]:
    window = resolve_range("custom", payload.start_date, payload.end_date)
    if window.days > REPORT_MAX_DAYS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Custom reports cover at most {REPORT_MAX_DAYS} days",
        )

    metrics = list(dict.fromkeys(payload.metrics))
    filters = payload.filters
    transaction_rows: list[dict[str, Any]] = []
    if any(metric in REPORT_COLUMNS for metric in metrics):
        transaction_rows = await repository.report_transactions(
            window.start,
            window.end,
            bucket=payload.group_by,
            shop_id=filters.shop_id,
            tier=filters.tier,
        )

    data: dict[str, Any] = {}
    for metric in metrics:
        if metric == "users":
            data[metric] = await repository.report_users(
                window.start, window.end, bucket=payload.group_by, tier=filters.tier
            )
        elif metric == "shops":
            data[metric] = await repository.report_shops(window.start, window.end, bucket=payload.group_by)
        else:
            columns = REPORT_COLUMNS[metric]
            data[metric] = [{"period": row["period"], **{c: row[c] for c in columns}} for row in transaction_rows]

    logger.info(
        "analytics_custom_report name=%r metrics=%s group_by=%s admin_id=%s",
        payload.report_name,
        ",".join(metrics),
        payload.group_by,
        admin_id,
    )
    return {
        "report_name": payload.report_name,
        "generated_at": _utc_now(),
        "range": window.as_dict(),
        "group_by": payload.group_by,
        "filters": filters.model_dump(),
        "data": data,
    }


async def predictions(metric: str, *, horizon: int, now: datetime | None = None) -> dict[str, Any]:
    today = periods.date_range("today", now=now)
    start = today.end - timedelta(days=FORECAST_HISTORY_DAYS)
    rows = await repository.metric_per_day(metric, start, today.end)
    history = forecast.fill_daily(rows, start.date(), today.start.date())
    slope, _ = forecast.linear_trend([point["value"] for point in history])
    return {
        "metric": metric,
        "horizon": horizon,
        "history_days": FORECAST_HISTORY_DAYS,
        "historical": history,
        "predictions": forecast.project(history, horizon),
        "trend": {"slope": round(slope, 4), "direction": forecast.direction(slope)},
    }
