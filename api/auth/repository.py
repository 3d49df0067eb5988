"""
Auth persistence helpers: admin accounts and refresh tokens.

Refresh tokens are shared by admin and member sessions and are scoped by
(account_type, account_id).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from core import db
from core.text import normalize_email

ADMIN_COLUMNS = """
    id, username, email, phone, password_hash, full_name, role, is_active,
    avatar, last_login, login_attempts, lock_until, created_at, updated_at
"""

_ADMIN_UPDATABLE = {"full_name", "username", "phone", "avatar"}


async def count_admins() -> int:
    return int(await db.fetch_val("SELECT count(*) FROM admins") or 0)


async def create_admin(
    *,
    username: str,
    email: str,
    password_hash: str,
    full_name: str,
    role: str,
    phone: str | None = None,
) -> dict[str, Any]:
    row = await db.fetch_one(
        f"""
        INSERT INTO admins (username, email, password_hash, full_name, role, phone)
        VALUES ($1, $2, $3, $4, $5, $6)
        RETURNING {ADMIN_COLUMNS}
        """,
        username,
        normalize_email(email),
        password_hash,
        full_name,
        role,
        phone,
    )
    if row is None:
        raise RuntimeError("Failed to create admin.")
    return row


async def get_admin_by_email(email: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        SELECT {ADMIN_COLUMNS}
        FROM admins
        WHERE lower(email) = lower($1)
        """,
        normalize_email(email),
    )


async def get_admin_by_id(admin_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        SELECT {ADMIN_COLUMNS}
        FROM admins
        WHERE id = $1
        """,
        admin_id,
    )


async def admin_exists_with_contact(*, email: str | None = None, phone: str | None = None) -> bool:
    row = await db.fetch_one(
        """
        SELECT 1 AS ok
        FROM admins
        WHERE ($1::text IS NOT NULL AND lower(email) = lower($1))
           OR ($2::text IS NOT NULL AND phone = $2)
        LIMIT 1
        """,
        normalize_email(email) if email else None,
        phone,
    )
    return row is not None


async def record_failed_login(admin_id: int, *, max_attempts: int, lock_minutes: int) -> dict[str, Any] | None:
    """
    Increment the failed-login counter and lock the account once it reaches
    max_attempts. Returns the updated attempt counter and lock.
    """
    return await db.fetch_one(
        """
        UPDATE admins
        SET login_attempts = login_attempts + 1,
            lock_until = CASE
              WHEN login_attempts + 1 >= $2 THEN now() + make_interval(mins => $3)
              ELSE lock_until
            END,
            updated_at = now()
        WHERE id = $1
        RETURNING login_attempts, lock_until
        """,
        admin_id,
        max_attempts,
        lock_minutes,
    )


async def record_successful_login(admin_id: int) -> None:
    await db.execute(
        """
        UPDATE admins
        SET login_attempts = 0,
            lock_until = NULL,
            last_login = now(),
            updated_at = now()
        WHERE id = $1
        """,
        admin_id,
    )


async def update_admin_profile(admin_id: int, fields: dict[str, Any]) -> dict[str, Any] | None:
    fields = {k: v for k, v in fields.items() if k in _ADMIN_UPDATABLE}
    if not fields:
        return await get_admin_by_id(admin_id)

    assignments = ", ".join(f"{name} = ${i}" for i, name in enumerate(fields, start=2))
    return await db.fetch_one(
        f"""
        UPDATE admins
        SET {assignments}, updated_at = now()
        WHERE id = $1
        RETURNING {ADMIN_COLUMNS}
        """,
        admin_id,
        *fields.values(),
    )


async def set_admin_password(admin_id: int, password_hash: str) -> None:
    await db.execute(
        """
        UPDATE admins
        SET password_hash = $2,
            reset_token_hash = NULL,
            reset_expires_at = NULL,
            login_attempts = 0,
            lock_until = NULL,
            updated_at = now()
        WHERE id = $1
        """,
        admin_id,
        password_hash,
    )


async def set_admin_reset_token(admin_id: int, *, token_hash: str, expires_at: datetime) -> None:
    await db.execute(
        """
        UPDATE admins
        SET reset_token_hash = $2, reset_expires_at = $3, updated_at = now()
        WHERE id = $1
        """,
        admin_id,
        token_hash,
        expires_at,
    )


async def get_admin_by_reset_token(token_hash: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        SELECT {ADMIN_COLUMNS}, reset_expires_at
        FROM admins
        WHERE reset_token_hash = $1
        """,
        token_hash,
    )


async def insert_refresh_token(
    *,
    account_type: str,
    account_id: int,
    token_hash: str,
    expires_at: datetime,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> dict[str, Any]:
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)

    row = await db.fetch_one(
        """
        INSERT INTO refresh_tokens (account_type, account_id, token_hash, expires_at, user_agent, ip_address)
        VALUES ($1, $2, $3, $4, $5, $6)
        RETURNING id, account_type, account_id, token_hash, expires_at, revoked_at,
                  replaced_by_token_id, created_at, last_used_at, user_agent, ip_address
        """,
        account_type,
        account_id,
        token_hash,
        expires_at,
        user_agent,
        ip_address,
    )
    if row is None:
        raise RuntimeError("Failed to insert refresh token.")
    return row


async def get_refresh_token_by_hash(token_hash: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        """
        SELECT id, account_type, account_id, token_hash, expires_at, revoked_at,
               replaced_by_token_id, created_at, last_used_at, user_agent, ip_address
        FROM refresh_tokens
        WHERE token_hash = $1
        """,
        token_hash,
    )


async def mark_refresh_token_used(token_id: int) -> None:
    await db.execute(
        """
        UPDATE refresh_tokens
        SET last_used_at = now()
        WHERE id = $1
        """,
        token_id,
    )


async def revoke_refresh_token_by_hash(token_hash: str) -> bool:
    row = await db.fetch_one(
        """
        UPDATE refresh_tokens
        SET revoked_at = now()
        WHERE token_hash = $1
          AND revoked_at IS NULL
        RETURNING id
        """,
        token_hash,
    )
    return row is not None


async def revoke_refresh_token_by_id(token_id: int) -> bool:
    row = await db.fetch_one(
        """
        UPDATE refresh_tokens
        SET revoked_at = now()
        WHERE id = $1
          AND revoked_at IS NULL
        RETURNING id
        """,
        token_id,
    )
    return row is not None


async def revoke_all_refresh_tokens(*, account_type: str, account_id: int) -> None:
    await db.execute(
        """
        UPDATE refresh_tokens
        SET revoked_at = now()
        WHERE account_type = $1
          AND account_id = $2
          AND revoked_at IS NULL
        """,
        account_type,
        account_id,
    )


async def set_refresh_token_replacement(*, old_token_id: int, new_token_id: int) -> None:
    await db.execute(
        """
        UPDATE refresh_tokens
        SET replaced_by_token_id = $2
        WHERE id = $1
        """,
        old_token_id,
        new_token_id,
    )
