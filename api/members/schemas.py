"""
Member self-service request models.
"""

from __future__ import annotations

from datetime import date
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

PHONE_PATTERN = r"^[6-9]\d{9}$"


class SignupRequest(BaseModel):
    email_or_phone: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=8, max_length=128)


class CreateProfileRequest(BaseModel):
    user_id: int
    full_name: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., min_length=3, max_length=320)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    location: str = Field(..., min_length=2, max_length=200)


class MemberLoginRequest(BaseModel):
    email_or_phone: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)


class UpdateMemberProfileRequest(BaseModel):
    full_name: str | None = Field(default=None, min_length=2, max_length=100)
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    avatar: str | None = Field(default=None, max_length=500)
    date_of_birth: date | None = None
    gender: Literal["male", "female", "other"] | None = None
    address: str | None = Field(default=None, max_length=500)
    city: str | None = Field(default=None, max_length=100)
    state: str | None = Field(default=None, max_length=100)
    pincode: str | None = Field(default=None, pattern=r"^[1-9][0-9]{5}$")
    location: str | None = Field(default=None, max_length=200)


class ForgotPasswordRequest(BaseModel):
    email_or_phone: str = Field(..., min_length=3, max_length=320)


class ResetPasswordRequest(BaseModel):
    session_id: UUID
    otp: str = Field(..., pattern=r"^\d{4,6}$")
    new_password: str = Field(..., min_length=8, max_length=128)


class RenewCardRequest(BaseModel):
    months: int = Field(12, ge=1, le=24)


class NewsletterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
