"""
Analytics request models.
"""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

from discounts.schemas import Tier

ReportMetric = Literal["users", "shops", "transactions", "revenue", "discounts"]


class ReportFilters(BaseModel):
    shop_id: int | None = None
    tier: Tier | None = None


class CustomReportRequest(BaseModel):
    report_name: str = Field(..., min_length=3, max_length=100)
    metrics: list[ReportMetric] = Field(..., min_length=1)
    filters: ReportFilters = Field(default_factory=ReportFilters)
    group_by: Literal["day", "week", "month"] = "day"
    start_date: date
    end_date: date
