"""
Auth business logic.

Token issuance and refresh rotation are shared by admin and member sessions;
the rest of this module is the admin account lifecycle (login with lockout,
profile, password change and reset).
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from fastapi import HTTPException, status

from core import notify, settings
from core.text import PASSWORD_RULE, is_strong_password, normalize_email

from . import permissions, repository, schemas, security

logger = logging.getLogger(__name__)

MAX_LOGIN_ATTEMPTS = 5
LOCK_MINUTES = 30

AccountLoader = Callable[[int], Awaitable[dict | None]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_admin_response(admin_row: dict) -> schemas.AdminResponse:
    return schemas.AdminResponse(
        id=int(admin_row["id"]),
        username=str(admin_row["username"]),
        email=str(admin_row["email"]),
        phone=admin_row.get("phone"),
        full_name=str(admin_row["full_name"]),
        role=str(admin_row["role"]),
        is_active=bool(admin_row["is_active"]),
        avatar=admin_row.get("avatar"),
        last_login=admin_row.get("last_login"),
        created_at=admin_row["created_at"],
    )


def ensure_strong_password(password: str) -> None:
    if not is_strong_password(password):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=PASSWORD_RULE,
        )


async def issue_token_pair(
    *,
    account_type: str,
    account_row: dict,
    user_agent: str | None = None,
    ip_address: str | None = None,
    replaced_token_id: int | None = None,
    expires_minutes: int | None = None,
) -> schemas.TokenPairResponse:
    account_id = int(account_row["id"])
    lifetime = expires_minutes if expires_minutes is not None else security.access_token_expire_minutes()

    access_token = security.build_access_token(
        account_id=account_id,
        account_type=account_type,
        email=account_row.get("email"),
        role=account_row.get("role"),
        expires_minutes=lifetime,
    )
    raw_refresh_token = security.build_refresh_token()
    refresh_hash = security.hash_token(raw_refresh_token)
    expires_at = _utc_now() + timedelta(days=security.refresh_token_expire_days())

    refresh_row = await repository.insert_refresh_token(
        account_type=account_type,
        account_id=account_id,
        token_hash=refresh_hash,
        expires_at=expires_at,
        user_agent=user_agent,
        ip_address=ip_address,
    )

    if replaced_token_id is not None:
        await repository.set_refresh_token_replacement(
            old_token_id=replaced_token_id,
            new_token_id=int(refresh_row["id"]),
        )

    return schemas.TokenPairResponse(
        access_token=access_token,
        refresh_token=raw_refresh_token,
        expires_in=lifetime * 60,
    )


async def rotate_refresh_token(
    raw_refresh_token: str,
    *,
    account_type: str,
    load_account: AccountLoader,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> schemas.TokenPairResponse:
    incoming_refresh = (raw_refresh_token or "").strip()
    if not incoming_refresh:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="refresh_token is required.",
        )

    incoming_hash = security.hash_token(incoming_refresh)
    old_token_row = await repository.get_refresh_token_by_hash(incoming_hash)
    if old_token_row is None or old_token_row.get("account_type") != account_type:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token.",
        )

    if old_token_row.get("revoked_at") is not None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token is revoked.",
        )

    expires_at = old_token_row.get("expires_at")
    if not isinstance(expires_at, datetime) or expires_at <= _utc_now():
        # Revoke expired token as cleanup.
        await repository.revoke_refresh_token_by_id(int(old_token_row["id"]))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token is expired.",
        )

    account_row = await load_account(int(old_token_row["account_id"]))
    if account_row is None or not bool(account_row.get("is_active", False)):
        await repository.revoke_refresh_token_by_id(int(old_token_row["id"]))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token owner.",
        )

    await repository.mark_refresh_token_used(int(old_token_row["id"]))
    await repository.revoke_refresh_token_by_id(int(old_token_row["id"]))

    return await issue_token_pair(
        account_type=account_type,
        account_row=account_row,
        user_agent=user_agent,
        ip_address=ip_address,
        replaced_token_id=int(old_token_row["id"]),
    )


async def revoke_sessions(refresh_token: str | None, *, account_type: str, account_id: int) -> dict[str, bool]:
    # A specific refresh token revokes that session only; otherwise every session.
    raw = (refresh_token or "").strip()
    if raw:
        await repository.revoke_refresh_token_by_hash(security.hash_token(raw))
    else:
        await repository.revoke_all_refresh_tokens(account_type=account_type, account_id=account_id)
    return {"ok": True}


async def account_id_from_access_token(access_token: str, *, account_type: str) -> int:
    try:
        payload = security.decode_access_token(access_token, account_type=account_type)
    except security.AuthSecurityError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc

    subject = str(payload.get("sub") or "").strip()
    if not subject.isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid access token subject.",
        )
    return int(subject)


async def get_admin_from_access_token(access_token: str) -> dict:
    admin_id = await account_id_from_access_token(access_token, account_type=security.ACCOUNT_ADMIN)

    admin_row = await repository.get_admin_by_id(admin_id)
    if admin_row is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin not found.",
        )
    if not bool(admin_row.get("is_active", False)):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated.",
        )
    return admin_row


def _lock_minutes_remaining(lock_until: datetime, now: datetime) -> int:
    return max(1, math.ceil((lock_until - now).total_seconds() / 60))


async def login(
    payload: schemas.AdminLoginRequest,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> schemas.AdminAuthResponse:
    admin_row = await repository.get_admin_by_email(payload.email)
    if admin_row is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    now = _utc_now()
    lock_until = admin_row.get("lock_until")
    if isinstance(lock_until, datetime) and lock_until > now:
        raise HTTPException(
            status_code=status.HTTP_423_LOCKED,
            detail={
                "message": "Account temporarily locked due to too many failed login attempts",
                "errors": {"lock_time_remaining": _lock_minutes_remaining(lock_until, now)},
            },
        )

    if not bool(admin_row.get("is_active", False)):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated",
        )

    is_valid = security.verify_password(payload.password, str(admin_row.get("password_hash") or ""))
    if not is_valid:
        result = await repository.record_failed_login(
            int(admin_row["id"]),
            max_attempts=MAX_LOGIN_ATTEMPTS,
            lock_minutes=LOCK_MINUTES,
        )
        attempts = int(result["login_attempts"]) if result else 0
        logger.warning("admin_login_failed admin_id=%s attempts=%s ip=%s", admin_row["id"], attempts, ip_address)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    await repository.record_successful_login(int(admin_row["id"]))

    expires_minutes = security.remember_me_expire_minutes() if payload.remember_me else None
    tokens = await issue_token_pair(
        account_type=security.ACCOUNT_ADMIN,
        account_row=admin_row,
        user_agent=user_agent,
        ip_address=ip_address,
        expires_minutes=expires_minutes,
    )
    logger.info("admin_login admin_id=%s role=%s", admin_row["id"], admin_row["role"])
    return schemas.AdminAuthResponse(admin=to_admin_response(admin_row), tokens=tokens)


async def refresh(
    payload: schemas.RefreshRequest,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> schemas.TokenPairResponse:
    return await rotate_refresh_token(
        payload.refresh_token,
        account_type=security.ACCOUNT_ADMIN,
        load_account=repository.get_admin_by_id,
        user_agent=user_agent,
        ip_address=ip_address,
    )


async def update_profile(admin_row: dict, payload: schemas.UpdateProfileRequest) -> schemas.AdminResponse:
    fields = payload.model_dump(exclude_unset=True, exclude_none=True)
    updated = await repository.update_admin_profile(int(admin_row["id"]), fields)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Admin not found.")
    return to_admin_response(updated)


async def change_password(admin_row: dict, payload: schemas.ChangePasswordRequest) -> None:
    if not security.verify_password(payload.current_password, str(admin_row.get("password_hash") or "")):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )
    if payload.current_password == payload.new_password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="New password must be different from the current password",
        )
    ensure_strong_password(payload.new_password)

    admin_id = int(admin_row["id"])
    await repository.set_admin_password(admin_id, security.hash_password(payload.new_password))
    await repository.revoke_all_refresh_tokens(account_type=security.ACCOUNT_ADMIN, account_id=admin_id)
    logger.info("admin_password_changed admin_id=%s", admin_id)


def permissions_summary(admin_row: dict) -> dict[str, Any]:
    role = str(admin_row["role"])
    return {
        "role": role,
        "permissions": permissions.permissions_for_role(role),
        "groups": permissions.grouped_permissions(role),
        "modules": permissions.accessible_modules(role),
    }


async def forgot_password(payload: schemas.ForgotPasswordRequest) -> None:
    admin_row = await repository.get_admin_by_email(payload.email)
    # Same response whether or not the account exists.
    if admin_row is None or not bool(admin_row.get("is_active", False)):
        logger.info("admin_password_reset_unknown email=%s", normalize_email(payload.email))
        return None

    raw_token = security.build_reset_token()
    expires_at = _utc_now() + timedelta(hours=security.PASSWORD_RESET_EXPIRE_HOURS)
    await repository.set_admin_reset_token(
        int(admin_row["id"]),
        token_hash=security.hash_token(raw_token),
        expires_at=expires_at,
    )

    reset_link = f"{settings.frontend_origins()[0]}/admin/reset-password?token={raw_token}"
    try:
        await notify.send_email(
            to=str(admin_row["email"]),
            subject=f"{settings.app_name()} - Password reset",
            html=(
                f"<p>Hello {admin_row['full_name']},</p>"
                f"<p>Use the link below to reset your password. It expires in "
                f"{security.PASSWORD_RESET_EXPIRE_HOURS} hour.</p>"
                f'<p><a href="{reset_link}">{reset_link}</a></p>'
            ),
        )
    except notify.NotificationError:
        logger.exception("admin_password_reset_email_failed admin_id=%s", admin_row["id"])
    return None


async def _admin_for_reset_token(token: str) -> dict | None:
    admin_row = await repository.get_admin_by_reset_token(security.hash_token(token))
    if admin_row is None:
        return None
    expires_at = admin_row.get("reset_expires_at")
    if not isinstance(expires_at, datetime) or expires_at <= _utc_now():
        return None
    return admin_row


async def validate_reset_token(token: str) -> bool:
    return await _admin_for_reset_token(token) is not None


async def reset_password(payload: schemas.ResetPasswordRequest) -> None:
    admin_row = await _admin_for_reset_token(payload.token)
    if admin_row is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token",
        )
    ensure_strong_password(payload.new_password)

    admin_id = int(admin_row["id"])
    await repository.set_admin_password(admin_id, security.hash_password(payload.new_password))
    await repository.revoke_all_refresh_tokens(account_type=security.ACCOUNT_ADMIN, account_id=admin_id)
    logger.info("admin_password_reset admin_id=%s", admin_id)


async def ensure_default_admin() -> None:
    """
    Create the first super admin when the admins table is empty.
    """
    if await repository.count_admins() > 0:
        return None

    email = settings.default_admin_email()
    await repository.create_admin(
        username="superadmin",
        email=email,
        password_hash=security.hash_password(settings.default_admin_password()),
        full_name="Super Admin",
        role=permissions.ROLE_SUPER_ADMIN,
    )
    logger.warning("default_admin_created email=%s (change the password after first login)", email)
