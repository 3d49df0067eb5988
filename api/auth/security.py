"""
Auth security helpers.

Access tokens are JWTs carrying the account type ("admin" or "member") so an
admin token can never be used on member routes and vice versa. Refresh and
password-reset tokens are opaque random strings stored only as sha256 hashes.
"""

from __future__ import annotations

import hashlib
import secrets
import time
from typing import Any

import bcrypt
import jwt

from core import settings

ACCOUNT_ADMIN = "admin"
ACCOUNT_MEMBER = "member"

PASSWORD_RESET_EXPIRE_HOURS = 1


class AuthSecurityError(RuntimeError):
    pass


def jwt_secret() -> str:
    # Local default keeps development simple.
    # In production, set JWT_SECRET in environment.
    return settings.env_str("JWT_SECRET", "dev-change-this-secret")


def jwt_algorithm() -> str:
    return settings.env_str("JWT_ALG", "HS256")


def access_token_expire_minutes() -> int:
    return settings.env_int("ACCESS_TOKEN_EXPIRE_MIN", 60)


def remember_me_expire_minutes() -> int:
    return settings.env_int("REMEMBER_ME_EXPIRE_DAYS", 7) * 24 * 60


def refresh_token_expire_days() -> int:
    return settings.env_int("REFRESH_TOKEN_EXPIRE_DAYS", 30)


def now_epoch_s() -> int:
    return int(time.time())


def hash_password(plain_password: str) -> str:
    password = (plain_password or "").encode("utf-8")
    if not password:
        raise AuthSecurityError("Password is empty.")
    return bcrypt.hashpw(password, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    password = (plain_password or "").encode("utf-8")
    hashed = (password_hash or "").encode("utf-8")
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password, hashed)
    except ValueError:
        return False


def build_access_token(
    *,
    account_id: int,
    account_type: str,
    email: str | None,
    role: str | None = None,
    expires_minutes: int | None = None,
) -> str:
    issued_at = now_epoch_s()
    lifetime = expires_minutes if expires_minutes is not None else access_token_expire_minutes()

    payload: dict[str, Any] = {
        "sub": str(account_id),
        "acct": account_type,
        "email": email,
        "type": "access",
        "iat": issued_at,
        "exp": issued_at + (lifetime * 60),
    }
    if role:
        payload["role"] = role
    return jwt.encode(payload, jwt_secret(), algorithm=jwt_algorithm())


def decode_access_token(token: str, *, account_type: str) -> dict[str, Any]:
    raw = (token or "").strip()
    if not raw:
        raise AuthSecurityError("Access token is empty.")

    try:
        payload = jwt.decode(raw, jwt_secret(), algorithms=[jwt_algorithm()])
    except jwt.ExpiredSignatureError as exc:
        raise AuthSecurityError("Access token has expired.") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthSecurityError("Invalid access token.") from exc

    token_type = str(payload.get("type") or "").strip().lower()
    if token_type != "access":
        raise AuthSecurityError("Token is not an access token.")

    if str(payload.get("acct") or "") != account_type:
        raise AuthSecurityError("Token is not valid for this area.")

    return payload


def build_refresh_token() -> str:
    # URL-safe random string for client storage/transmission.
    return secrets.token_urlsafe(48)


def build_reset_token() -> str:
    return secrets.token_urlsafe(32)


def hash_token(raw_token: str) -> str:
    token = (raw_token or "").encode("utf-8")
    if not token:
        raise AuthSecurityError("Token is empty.")
    return hashlib.sha256(token).hexdigest()
