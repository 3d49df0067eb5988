"""
One-time password rules: code generation, expiry, resend and verification
checks. Pure functions over session rows so they can be tested without a
database.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Any

CODE_VALIDITY = timedelta(minutes=5)
RESEND_INTERVAL = timedelta(seconds=30)
REQUEST_COOLDOWN = timedelta(minutes=1)
DAILY_LIMIT = 10

TYPE_EMAIL = "email"
TYPE_SMS = "sms"

PURPOSES = (
    "card_activation",
    "email_verification",
    "phone_verification",
    "password_reset",
    "account_verification",
)

MSG_NOT_FOUND = "OTP session not found or already verified"
MSG_EXPIRED = "OTP has expired"
MSG_TOO_MANY_ATTEMPTS = "Maximum verification attempts exceeded"
MSG_INVALID = "Invalid OTP code"


class OTPError(ValueError):
    """Raised when a code cannot be accepted."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def generate_code() -> str:
    return str(secrets.randbelow(9000) + 1000)


def expiry_from(now: datetime) -> datetime:
    return now + CODE_VALIDITY


def is_expired(session: dict[str, Any], now: datetime) -> bool:
    return session["expires_at"] < now


def attempts_exhausted(session: dict[str, Any]) -> bool:
    return int(session.get("verification_attempts") or 0) >= int(session.get("max_attempts") or 3)


def can_resend(session: dict[str, Any], now: datetime) -> bool:
    if int(session.get("resend_count") or 0) >= int(session.get("max_resends") or 3):
        return False
    last = session.get("last_resent_at")
    if last is not None and now - last < RESEND_INTERVAL:
        return False
    return True


def apply_resend(session: dict[str, Any], code: str, now: datetime) -> dict[str, Any]:
    """
    Return the column changes for a resend: fresh code, bumped counter and a
    new five minute window starting now.
    """
    return {
        "otp_code": code,
        "resend_count": int(session.get("resend_count") or 0) + 1,
        "last_resent_at": now,
        "expires_at": expiry_from(now),
    }


def check_session(session: dict[str, Any] | None, now: datetime) -> None:
    """Reject sessions that can no longer take a guess."""
    if session is None or bool(session.get("is_verified")):
        raise OTPError(MSG_NOT_FOUND)
    if is_expired(session, now):
        raise OTPError(MSG_EXPIRED)
    if attempts_exhausted(session):
        raise OTPError(MSG_TOO_MANY_ATTEMPTS)


def claim_rejection(session: dict[str, Any], now: datetime) -> str:
    """Message for a session whose attempt could not be claimed."""
    if is_expired(session, now):
        return MSG_EXPIRED
    return MSG_TOO_MANY_ATTEMPTS


def check_code(session: dict[str, Any], code: str) -> None:
    if not secrets.compare_digest(str(session["otp_code"]), str(code).strip()):
        raise OTPError(MSG_INVALID)


def time_remaining(session: dict[str, Any], now: datetime) -> dict[str, Any]:
    left = (session["expires_at"] - now).total_seconds()
    if left <= 0:
        return {"expired": True, "minutes": 0, "seconds": 0}
    whole = int(left)
    return {"expired": False, "minutes": whole // 60, "seconds": whole % 60}


def email_content(code: str, purpose: str, name: str | None) -> tuple[str, str]:
    """Subject and HTML body for an OTP email."""
    titles = {
        "card_activation": "Activate your discount card",
        "email_verification": "Verify your email address",
        "phone_verification": "Verify your phone number",
        "password_reset": "Reset your password",
        "account_verification": "Verify your account",
    }
    title = titles.get(purpose, "Your verification code")
    minutes = int(CODE_VALIDITY.total_seconds() // 60)
    html = (
        f"<h2>{title}</h2>"
        f"<p>Hello {name or 'there'},</p>"
        f"<p>Your verification code is <strong style=\"font-size:24px\">{code}</strong>.</p>"
        f"<p>The code expires in {minutes} minutes. Do not share it with anyone.</p>"
    )
    return f"{title} - code {code}", html


def sms_content(code: str) -> str:
    minutes = int(CODE_VALIDITY.total_seconds() // 60)
    return f"Your verification code is {code}. It expires in {minutes} minutes."
