"""
OTP session persistence.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from core import db

SESSION_COLUMNS = """
    o.id, o.user_id, o.session_id, o.otp_code, o.otp_type, o.contact_info,
    o.purpose, o.expires_at, o.is_verified, o.verification_attempts,
    o.max_attempts, o.resend_count, o.max_resends, o.last_resent_at,
    o.verified_at, o.ip_address, o.user_agent, o.created_at, o.updated_at
"""

# Admin views never expose the code itself.
ADMIN_COLUMNS = """
    o.id, o.user_id, o.session_id, o.otp_type, o.contact_info, o.purpose,
    o.expires_at, o.is_verified, o.verification_attempts, o.max_attempts,
    o.resend_count, o.max_resends, o.last_resent_at, o.verified_at,
    o.ip_address, o.user_agent, o.created_at, o.updated_at,
    u.full_name AS user_name, u.email AS user_email, u.phone AS user_phone
"""

SORTABLE = {
    "created_at": "o.created_at",
    "expires_at": "o.expires_at",
    "verified_at": "o.verified_at",
}


async def create_session(
    *,
    user_id: int | None,
    session_id: UUID,
    otp_code: str,
    otp_type: str,
    contact_info: str,
    purpose: str,
    expires_at: datetime,
    ip_address: str | None,
    user_agent: str | None,
) -> dict[str, Any]:
    row = await db.fetch_one(
        f"""
        INSERT INTO otp_sessions AS o (
          user_id, session_id, otp_code, otp_type, contact_info, purpose,
          expires_at, ip_address, user_agent
        )
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
        RETURNING {SESSION_COLUMNS}
        """,
        user_id,
        session_id,
        otp_code,
        otp_type,
        contact_info,
        purpose,
        expires_at,
        ip_address,
        user_agent,
    )
    if row is None:
        raise RuntimeError("Failed to create OTP session.")
    return row


async def count_requests_since(*, user_id: int, contact_info: str, since: datetime) -> int:
    value = await db.fetch_val(
        """
        SELECT count(*)
        FROM otp_sessions
        WHERE user_id = $1 AND contact_info = $2 AND created_at > $3
        """,
        user_id,
        contact_info,
        since,
    )
    return int(value or 0)


async def count_user_sessions_since(user_id: int, *, since: datetime) -> int:
    value = await db.fetch_val(
        "SELECT count(*) FROM otp_sessions WHERE user_id = $1 AND created_at > $2",
        user_id,
        since,
    )
    return int(value or 0)


async def get_by_session_id(session_id: UUID) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"SELECT {SESSION_COLUMNS} FROM otp_sessions o WHERE o.session_id = $1",
        session_id,
    )


async def claim_attempt(session_pk: int, *, now: datetime) -> dict[str, Any] | None:
    """
    Count one verification attempt against a live session and return the
    updated row. None when the session is verified, expired or out of
    attempts, so concurrent guesses can never exceed `max_attempts`.
    """
    return await db.fetch_one(
        f"""
        UPDATE otp_sessions AS o
        SET verification_attempts = o.verification_attempts + 1, updated_at = now()
        WHERE o.id = $1
          AND o.is_verified = false
          AND o.expires_at > $2
          AND o.verification_attempts < o.max_attempts
        RETURNING {SESSION_COLUMNS}
        """,
        session_pk,
        now,
    )


async def mark_verified(session_pk: int, *, now: datetime) -> dict[str, Any] | None:
    # Same guards as claim_attempt; two concurrent verifications cannot both succeed.
    return await db.fetch_one(
        f"""
        UPDATE otp_sessions AS o
        SET is_verified = true, verified_at = $2, updated_at = now()
        WHERE o.id = $1
          AND o.is_verified = false
          AND o.expires_at > $2
          AND o.verification_attempts <= o.max_attempts
        RETURNING {SESSION_COLUMNS}
        """,
        session_pk,
        now,
    )


async def apply_resend(session_pk: int, changes: dict[str, Any]) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        UPDATE otp_sessions AS o
        SET otp_code = $2, resend_count = $3, last_resent_at = $4,
            expires_at = $5, updated_at = now()
        WHERE o.id = $1 AND o.is_verified = false
        RETURNING {SESSION_COLUMNS}
        """,
        session_pk,
        changes["otp_code"],
        changes["resend_count"],
        changes["last_resent_at"],
        changes["expires_at"],
    )


async def list_for_user(
    user_id: int,
    *,
    limit: int,
    offset: int,
    purpose: str | None = None,
) -> tuple[list[dict[str, Any]], int]:
    total = await db.fetch_val(
        "SELECT count(*) FROM otp_sessions WHERE user_id = $1 AND ($2::text IS NULL OR purpose = $2)",
        user_id,
        purpose,
    )
    rows = await db.fetch_all(
        """
        SELECT id, session_id, otp_type, contact_info, purpose, is_verified,
               verified_at, expires_at, resend_count, created_at
        FROM otp_sessions
        WHERE user_id = $1 AND ($2::text IS NULL OR purpose = $2)
        ORDER BY created_at DESC, id DESC
        LIMIT $3
        OFFSET $4
        """,
        user_id,
        purpose,
        limit,
        offset,
    )
    return rows, int(total or 0)


def _filters(
    *,
    search: str | None = None,
    otp_type: str | None = None,
    purpose: str | None = None,
    is_verified: bool | None = None,
    user_id: int | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> tuple[str, list[Any]]:
    conditions: list[str] = []
    args: list[Any] = []
    if search:
        args.append(f"%{search}%")
        n = len(args)
        conditions.append(
            f"(o.contact_info ILIKE ${n} OR o.session_id::text ILIKE ${n} OR u.full_name ILIKE ${n}"
            f" OR u.email ILIKE ${n} OR u.phone ILIKE ${n})"
        )
    if otp_type:
        args.append(otp_type)
        conditions.append(f"o.otp_type = ${len(args)}")
    if purpose:
        args.append(purpose)
        conditions.append(f"o.purpose = ${len(args)}")
    if is_verified is not None:
        args.append(is_verified)
        conditions.append(f"o.is_verified = ${len(args)}")
    if user_id is not None:
        args.append(user_id)
        conditions.append(f"o.user_id = ${len(args)}")
    if start_date is not None:
        args.append(start_date)
        conditions.append(f"o.created_at >= ${len(args)}")
    if end_date is not None:
        args.append(end_date)
        conditions.append(f"o.created_at <= ${len(args)}")
    where = ("WHERE " + " AND ".join(conditions)) if conditions else ""
    return where, args


_ADMIN_FROM = "FROM otp_sessions o LEFT JOIN users u ON u.id = o.user_id"


async def list_sessions(
    *,
    limit: int,
    offset: int,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    **filters: Any,
) -> tuple[list[dict[str, Any]], int]:
    where, args = _filters(**filters)
    order_column = SORTABLE.get(sort_by, "o.created_at")
    direction = "ASC" if sort_order.lower() == "asc" else "DESC"
    total = await db.fetch_val(f"SELECT count(*) {_ADMIN_FROM} {where}", *args)
    rows = await db.fetch_all(
        f"""
        SELECT {ADMIN_COLUMNS}
        {_ADMIN_FROM}
        {where}
        ORDER BY {order_column} {direction} NULLS LAST, o.id {direction}
        LIMIT ${len(args) + 1}
        OFFSET ${len(args) + 2}
        """,
        *args,
        limit,
        offset,
    )
    return rows, int(total or 0)


async def get_session(session_pk: int) -> dict[str, Any] | None:
    return await db.fetch_one(f"SELECT {ADMIN_COLUMNS} {_ADMIN_FROM} WHERE o.id = $1", session_pk)


async def expire_session(session_pk: int) -> dict[str, Any] | None:
    row = await db.fetch_one(
        """
        UPDATE otp_sessions
        SET expires_at = now(), updated_at = now()
        WHERE id = $1
        RETURNING id
        """,
        session_pk,
    )
    if row is None:
        return None
    return await get_session(session_pk)


async def delete_session(session_pk: int) -> bool:
    status = await db.execute("DELETE FROM otp_sessions WHERE id = $1 AND is_verified = false", session_pk)
    return db.affected_rows(status) > 0


async def delete_expired_unverified() -> int:
    status = await db.execute("DELETE FROM otp_sessions WHERE expires_at < now() AND is_verified = false")
    return db.affected_rows(status)


async def stats() -> dict[str, Any]:
    row = await db.fetch_one(
        """
        SELECT
          count(*) AS total,
          count(*) FILTER (WHERE created_at >= date_trunc('day', now())) AS today,
          count(*) FILTER (WHERE created_at >= now() - interval '7 days') AS this_week,
          count(*) FILTER (WHERE created_at >= now() - interval '30 days') AS this_month,
          count(*) FILTER (WHERE is_verified) AS verified,
          count(*) FILTER (WHERE NOT is_verified AND expires_at < now()) AS expired,
          count(*) FILTER (WHERE NOT is_verified AND expires_at >= now()) AS pending
        FROM otp_sessions
        """
    )
    by_type = await db.fetch_all(
        "SELECT otp_type, count(*) AS count FROM otp_sessions GROUP BY otp_type ORDER BY count DESC"
    )
    by_purpose = await db.fetch_all(
        "SELECT purpose, count(*) AS count FROM otp_sessions GROUP BY purpose ORDER BY count DESC"
    )
    return {**(row or {}), "type_distribution": by_type, "purpose_distribution": by_purpose}


async def daily_counts(*, since: datetime) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT
          date_trunc('day', created_at)::date AS date,
          count(*) AS count,
          count(*) FILTER (WHERE is_verified) AS verified_count
        FROM otp_sessions
        WHERE created_at >= $1
        GROUP BY 1
        ORDER BY 1
        """,
        since,
    )
