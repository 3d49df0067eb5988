"""
Discount rule request models.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

Tier = Literal["Bronze", "Silver", "Gold", "Platinum"]


class DiscountRuleCreate(BaseModel):
    rule_name: str = Field(..., min_length=2, max_length=100)
    description: str | None = Field(default=None, max_length=2000)
    min_amount: Decimal = Field(default=Decimal("0"), ge=0)
    max_amount: Decimal | None = Field(default=None, ge=0)
    discount_percentage: Decimal = Field(..., gt=0, le=100)
    tier: Tier
    shop_id: int | None = None
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    max_usage: int | None = Field(default=None, gt=0)
    is_stackable: bool = False
    is_active: bool = True


class DiscountRuleUpdate(BaseModel):
    rule_name: str | None = Field(default=None, min_length=2, max_length=100)
    description: str | None = Field(default=None, max_length=2000)
    min_amount: Decimal | None = Field(default=None, ge=0)
    max_amount: Decimal | None = Field(default=None, ge=0)
    discount_percentage: Decimal | None = Field(default=None, gt=0, le=100)
    tier: Tier | None = None
    shop_id: int | None = None
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    max_usage: int | None = Field(default=None, gt=0)
    is_stackable: bool | None = None
    is_active: bool | None = None


class DuplicateRuleRequest(BaseModel):
    rule_name: str = Field(..., min_length=2, max_length=100)


class BulkRuleRequest(BaseModel):
    rule_ids: list[int] = Field(..., min_length=1, max_length=500)
    action: Literal["activate", "deactivate", "delete"]


class CalculationPreviewRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    tier: Tier
    shop_id: int | None = None
