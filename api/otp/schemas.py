from __future__ import annotations

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

Purpose = Literal[
    "card_activation",
    "email_verification",
    "phone_verification",
    "password_reset",
    "account_verification",
]

Channel = Literal["email", "sms"]


class SendOTPRequest(BaseModel):
    channel: Channel = "email"
    purpose: Purpose
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=20)
    full_name: str | None = Field(default=None, max_length=100)


class VerifyOTPRequest(BaseModel):
    session_id: UUID
    otp: str = Field(..., pattern=r"^\d{4,6}$")


class ResendOTPRequest(BaseModel):
    session_id: UUID
