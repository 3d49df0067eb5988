"""
Admin user-management request models.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field

PHONE_PATTERN = r"^[6-9]\d{9}$"
PINCODE_PATTERN = r"^[1-9][0-9]{5}$"

Tier = Literal["Bronze", "Silver", "Gold", "Platinum"]


class AdminCreateUserRequest(BaseModel):
    full_name: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., min_length=3, max_length=320)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    password: str = Field(..., min_length=8, max_length=128)
    address: str | None = Field(default=None, max_length=500)
    city: str | None = Field(default=None, max_length=100)
    state: str | None = Field(default=None, max_length=100)
    pincode: str | None = Field(default=None, pattern=PINCODE_PATTERN)
    location: str | None = Field(default=None, max_length=200)
    date_of_birth: date | None = None
    gender: Literal["male", "female", "other"] | None = None
    card_expires_at: datetime | None = None


class AdminUpdateUserRequest(BaseModel):
    full_name: str | None = Field(default=None, min_length=2, max_length=100)
    email: str | None = Field(default=None, min_length=3, max_length=320)
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    address: str | None = Field(default=None, max_length=500)
    city: str | None = Field(default=None, max_length=100)
    state: str | None = Field(default=None, max_length=100)
    pincode: str | None = Field(default=None, pattern=PINCODE_PATTERN)
    location: str | None = Field(default=None, max_length=200)
    is_active: bool | None = None
    current_tier: Tier | None = None
    total_spent: Decimal | None = Field(default=None, ge=0)


class AdminResetPasswordRequest(BaseModel):
    new_password: str = Field(..., min_length=8, max_length=128)


class UpdateCardRequest(BaseModel):
    expires_at: datetime | None = None
    is_active: bool | None = None


class GenerateCardRequest(BaseModel):
    expires_at: datetime


class SendEmailRequest(BaseModel):
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=5000)


class BulkUserRequest(BaseModel):
    user_ids: list[int] = Field(..., min_length=1, max_length=500)
    action: Literal["activate", "deactivate", "delete", "update_tier"]
    data: dict[str, Any] | None = None
