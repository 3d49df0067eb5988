"""
Rate limiting using slowapi, keyed on client IP.

Named limits:
- LOGIN           admin and member login (brute-force guard)
- PASSWORD_RESET  forgot/reset password requests
- OTP_REQUEST     OTP send/resend (mail and SMS spam guard)
- OTP_VERIFY      OTP code checks (guessing guard)
"""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from . import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.env_str("RATE_LIMIT_DEFAULT", "100/15minutes")],
    enabled=settings.env_bool("RATE_LIMIT_ENABLED", True),
)

LOGIN = settings.env_str("RATE_LIMIT_LOGIN", "5/15minutes")
PASSWORD_RESET = settings.env_str("RATE_LIMIT_PASSWORD_RESET", "3/hour")
OTP_REQUEST = settings.env_str("RATE_LIMIT_OTP", "5/minute")
OTP_VERIFY = settings.env_str("RATE_LIMIT_OTP_VERIFY", "10/minute")
