"""
Admin analytics endpoints.
"""

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from auth import dependencies as auth_dependencies
from core import responses

from . import periods, schemas, service

router = APIRouter(prefix="/api/admin/analytics")


def _period_name(period: str) -> str:
    return period if period in periods.PERIODS else periods.DEFAULT_PERIOD


class PeriodQuery:
    """Shared `period`, `start_date`, `end_date` query parameters."""

    def __init__(
        self,
        period: str = Query(periods.DEFAULT_PERIOD, max_length=20),
        start_date: date | None = Query(default=None),
        end_date: date | None = Query(default=None),
    ) -> None:
        self.period = _period_name(period)
        self.window = service.resolve_range(self.period, start_date, end_date)


@router.get("/dashboard")
async def dashboard(
    q: PeriodQuery = Depends(),
    _: dict = Depends(auth_dependencies.require_permission("analytics.dashboard")),
) -> dict:
    return responses.success(await service.dashboard(q.window, q.period))


@router.get("/users")
async def user_analytics(
    q: PeriodQuery = Depends(),
    _: dict = Depends(auth_dependencies.require_permission("analytics.users")),
) -> dict:
    return responses.success(await service.users(q.window, q.period))


@router.get("/shops")
async def shop_analytics(
    q: PeriodQuery = Depends(),
    _: dict = Depends(auth_dependencies.require_permission("analytics.shops")),
) -> dict:
    return responses.success(await service.shops(q.window, q.period))


@router.get("/transactions")
async def transaction_analytics(
    q: PeriodQuery = Depends(),
    _: dict = Depends(auth_dependencies.require_permission("analytics.transactions")),
) -> dict:
    return responses.success(await service.transactions(q.window, q.period))


@router.get("/revenue")
async def revenue_analytics(
    q: PeriodQuery = Depends(),
    compare: bool = Query(True),
    _: dict = Depends(auth_dependencies.require_permission("analytics.revenue")),
) -> dict:
    return responses.success(await service.revenue(q.window, q.period, compare=compare))


@router.get("/discounts")
async def discount_analytics(
    q: PeriodQuery = Depends(),
    _: dict = Depends(auth_dependencies.require_permission("analytics.discounts")),
) -> dict:
    return responses.success(await service.discounts(q.window, q.period))


@router.get("/top-performers")
async def top_performers(
    q: PeriodQuery = Depends(),
    metric: Literal["revenue", "transactions"] = Query("revenue"),
    limit: int = Query(10, ge=1, le=50),
    _: dict = Depends(auth_dependencies.require_permission("analytics.dashboard")),
) -> dict:
    return responses.success(await service.top_performers(q.window, q.period, metric=metric, limit=limit))


@router.get("/growth")
async def growth(
    months: int = Query(6, ge=1, le=24),
    _: dict = Depends(auth_dependencies.require_permission("analytics.dashboard")),
) -> dict:
    return responses.success(await service.growth(months=months))


@router.get("/geographic")
async def geographic(
    geo_type: Literal["users", "shops", "transactions"] = Query("users", alias="type"),
    q: PeriodQuery = Depends(),
    _: dict = Depends(auth_dependencies.require_permission("analytics.users")),
) -> dict:
    return responses.success(await service.geographic(geo_type, q.window, q.period))


@router.get("/realtime")
async def realtime(
    metrics: str = Query(",".join(service.REALTIME_METRICS), max_length=100),
    _: dict = Depends(auth_dependencies.require_permission("analytics.dashboard")),
) -> dict:
    wanted = [name.strip() for name in metrics.split(",") if name.strip() in service.REALTIME_METRICS]
    return responses.success(await service.realtime(wanted))


@router.get("/compare")
async def compare(
    metric: Literal["users", "shops", "transactions", "revenue"] = Query("revenue"),
    period1: str = Query(periods.DEFAULT_PERIOD, max_length=20),
    period2: str | None = Query(default=None, max_length=20),
    start_date1: date | None = Query(default=None),
    end_date1: date | None = Query(default=None),
    start_date2: date | None = Query(default=None),
    end_date2: date | None = Query(default=None),
    _: dict = Depends(auth_dependencies.require_permission("analytics.dashboard")),
) -> dict:
    first_period = _period_name(period1)
    first = service.resolve_range(first_period, start_date1, end_date1)
    if period2 is None:
        second_period, second = "previous", first.previous()
    else:
        second_period = _period_name(period2)
        second = service.resolve_range(second_period, start_date2, end_date2)
    return responses.success(await service.compare(metric, (first_period, first), (second_period, second)))


@router.post("/custom-report")
async def custom_report(
    payload: schemas.CustomReportRequest,
    current_admin: dict = Depends(auth_dependencies.require_permission("analytics.reports")),
) -> dict:
    report = await service.custom_report(payload, admin_id=int(current_admin["id"]))
    return responses.success(report, message="Custom report generated")


@router.get("/predictions")
async def predictions(
    metric: Literal["users", "transactions", "revenue"] = Query("revenue"),
    horizon: int = Query(30, ge=1, le=365),
    _: dict = Depends(auth_dependencies.require_permission("analytics.reports")),
) -> dict:
    return responses.success(await service.predictions(metric, horizon=horizon))


@router.get("/export")
async def export(
    export_type: Literal["users", "shops", "transactions", "revenue"] = Query("transactions", alias="type"),
    q: PeriodQuery = Depends(),
    _: dict = Depends(auth_dependencies.require_permission("analytics.export")),
):
    csv_text = await service.export(export_type, q.window)
    filename = f"{export_type}-{q.period}-{q.window.start.date().isoformat()}.csv"
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
