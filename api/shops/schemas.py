"""
Shop request models.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

PHONE_PATTERN = r"^[6-9]\d{9}$"


class ShopBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    owner_name: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., min_length=3, max_length=320)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    address: str = Field(..., min_length=5, max_length=500)
    district: str | None = Field(default=None, max_length=100)
    taluk_block: str | None = Field(default=None, max_length=100)
    location: str = Field(..., min_length=2, max_length=200)
    category: str = Field(..., min_length=2, max_length=100)
    description: str | None = Field(default=None, max_length=2000)
    discount_offered: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    registration_number: str | None = Field(default=None, max_length=100)
    gst_number: str | None = Field(default=None, max_length=15)
    bank_account_number: str | None = Field(default=None, max_length=30)
    ifsc_code: str | None = Field(default=None, max_length=11)
    pan_number: str | None = Field(default=None, max_length=10)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    opening_hours: dict[str, str] | None = None


class ShopRegisterRequest(ShopBase):
    confirm_details: bool = False


class ShopCreateRequest(ShopBase):
    admin_notes: str | None = Field(default=None, max_length=2000)


class ShopUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=200)
    owner_name: str | None = Field(default=None, min_length=2, max_length=100)
    email: str | None = Field(default=None, min_length=3, max_length=320)
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    address: str | None = Field(default=None, min_length=5, max_length=500)
    district: str | None = Field(default=None, max_length=100)
    taluk_block: str | None = Field(default=None, max_length=100)
    location: str | None = Field(default=None, min_length=2, max_length=200)
    category: str | None = Field(default=None, min_length=2, max_length=100)
    description: str | None = Field(default=None, max_length=2000)
    discount_offered: Decimal | None = Field(default=None, ge=0, le=100)
    registration_number: str | None = Field(default=None, max_length=100)
    gst_number: str | None = Field(default=None, max_length=15)
    bank_account_number: str | None = Field(default=None, max_length=30)
    ifsc_code: str | None = Field(default=None, max_length=11)
    pan_number: str | None = Field(default=None, max_length=10)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    opening_hours: dict[str, str] | None = None
    admin_notes: str | None = Field(default=None, max_length=2000)


class ApproveRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=3, max_length=1000)


class BlockRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class SendEmailRequest(BaseModel):
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=5000)


class BulkShopRequest(BaseModel):
    shop_ids: list[int] = Field(..., min_length=1, max_length=500)
    action: Literal["approve", "reject", "block", "unblock", "delete"]
    reason: str | None = Field(default=None, max_length=1000)
