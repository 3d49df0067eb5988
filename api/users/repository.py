"""
Member (end-user) persistence, shared by the member API and admin user
management.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from core import db
from core.text import normalize_email

PUBLIC_COLUMNS = """
    id, full_name, email, phone, avatar, date_of_birth, gender, address, city,
    state, pincode, location, is_active, is_email_verified, is_phone_verified,
    is_profile_complete, registration_step, total_spent, current_tier,
    referral_code, referred_by, newsletter_subscribed, created_at, updated_at
"""

USER_COLUMNS = PUBLIC_COLUMNS + ", password_hash"

WRITABLE_FIELDS = (
    "full_name",
    "email",
    "phone",
    "password_hash",
    "avatar",
    "date_of_birth",
    "gender",
    "address",
    "city",
    "state",
    "pincode",
    "location",
    "is_active",
    "is_email_verified",
    "is_phone_verified",
    "is_profile_complete",
    "registration_step",
    "total_spent",
    "current_tier",
    "referral_code",
    "referred_by",
    "newsletter_subscribed",
)

SORTABLE = {
    "created_at": "created_at",
    "full_name": "full_name",
    "total_spent": "total_spent",
}


def public_user(row: dict[str, Any] | None) -> dict[str, Any] | None:
    if row is None:
        return None
    return {k: v for k, v in row.items() if k != "password_hash"}


async def get_user_by_id(user_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id = $1", user_id)


async def get_user_by_email(email: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"SELECT {USER_COLUMNS} FROM users WHERE lower(email) = lower($1)",
        normalize_email(email),
    )


async def get_user_by_phone(phone: str) -> dict[str, Any] | None:
    return await db.fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE phone = $1", phone)


async def find_contact_conflict(
    *,
    email: str | None = None,
    phone: str | None = None,
    exclude_user_id: int | None = None,
) -> str | None:
    """
    Return "email" or "phone" when another user already holds that contact.
    """
    row = await db.fetch_one(
        """
        SELECT
          bool_or($1::text IS NOT NULL AND lower(email) = lower($1)) AS email_taken,
          bool_or($2::text IS NOT NULL AND phone = $2) AS phone_taken
        FROM users
        WHERE ($3::bigint IS NULL OR id <> $3)
        """,
        normalize_email(email) if email else None,
        phone,
        exclude_user_id,
    )
    if row and row.get("email_taken"):
        return "email"
    if row and row.get("phone_taken"):
        return "phone"
    return None


async def create_user(fields: dict[str, Any]) -> dict[str, Any]:
    fields = {k: v for k, v in fields.items() if k in WRITABLE_FIELDS}
    if fields.get("email"):
        fields["email"] = normalize_email(fields["email"])
    columns = ", ".join(fields)
    placeholders = ", ".join(f"${i}" for i in range(1, len(fields) + 1))
    row = await db.fetch_one(
        f"""
        INSERT INTO users ({columns})
        VALUES ({placeholders})
        RETURNING {USER_COLUMNS}
        """,
        *fields.values(),
    )
    if row is None:
        raise RuntimeError("Failed to create user.")
    return row


def _update_sql(fields: dict[str, Any]) -> str:
    assignments = ", ".join(f"{name} = ${i}" for i, name in enumerate(fields, start=2))
    return f"""
        UPDATE users
        SET {assignments}, updated_at = now()
        WHERE id = $1
        RETURNING {USER_COLUMNS}
    """


async def update_user(user_id: int, fields: dict[str, Any]) -> dict[str, Any] | None:
    fields = {k: v for k, v in fields.items() if k in WRITABLE_FIELDS}
    if not fields:
        return await get_user_by_id(user_id)
    if fields.get("email"):
        fields["email"] = normalize_email(fields["email"])
    return await db.fetch_one(_update_sql(fields), user_id, *fields.values())


async def complete_profile(
    user_id: int,
    fields: dict[str, Any],
    *,
    issue_card,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Update the profile and issue the member's card atomically.

    `issue_card(conn)` is awaited inside the open transaction and must return
    the card row.
    """
    fields = {k: v for k, v in fields.items() if k in WRITABLE_FIELDS}
    if fields.get("email"):
        fields["email"] = normalize_email(fields["email"])
    async with db.transaction() as conn:
        user = await db.conn_fetch_one(conn, _update_sql(fields), user_id, *fields.values())
        if user is None:
            raise RuntimeError("User vanished while completing profile.")
        card = await issue_card(conn)
    return user, card


async def create_user_with_card(fields: dict[str, Any], *, issue_card) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Insert a user and issue their card atomically. `issue_card(conn, user)`
    runs inside the open transaction.
    """
    fields = {k: v for k, v in fields.items() if k in WRITABLE_FIELDS}
    if fields.get("email"):
        fields["email"] = normalize_email(fields["email"])
    columns = ", ".join(fields)
    placeholders = ", ".join(f"${i}" for i in range(1, len(fields) + 1))
    async with db.transaction() as conn:
        user = await db.conn_fetch_one(
            conn,
            f"INSERT INTO users ({columns}) VALUES ({placeholders}) RETURNING {USER_COLUMNS}",
            *fields.values(),
        )
        if user is None:
            raise RuntimeError("Failed to create user.")
        card = await issue_card(conn, user)
    return user, card


async def delete_user(user_id: int) -> bool:
    row = await db.fetch_one("DELETE FROM users WHERE id = $1 RETURNING id", user_id)
    return row is not None


def _filters(
    *,
    search: str | None = None,
    tier: str | None = None,
    is_active: bool | None = None,
    city: str | None = None,
) -> tuple[str, list[Any]]:
    conditions: list[str] = []
    args: list[Any] = []
    if search:
        args.append(f"%{search}%")
        n = len(args)
        conditions.append(f"(full_name ILIKE ${n} OR email ILIKE ${n} OR phone ILIKE ${n})")
    if tier:
        args.append(tier)
        conditions.append(f"current_tier = ${len(args)}")
    if is_active is not None:
        args.append(is_active)
        conditions.append(f"is_active = ${len(args)}")
    if city:
        args.append(f"%{city}%")
        n = len(args)
        conditions.append(f"(city ILIKE ${n} OR location ILIKE ${n})")
    where = ("WHERE " + " AND ".join(conditions)) if conditions else ""
    return where, args


async def list_users(
    *,
    limit: int,
    offset: int,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    **filters: Any,
) -> tuple[list[dict[str, Any]], int]:
    where, args = _filters(**filters)
    order_column = SORTABLE.get(sort_by, "created_at")
    direction = "ASC" if sort_order.lower() == "asc" else "DESC"
    total = await db.fetch_val(f"SELECT count(*) FROM users {where}", *args)
    rows = await db.fetch_all(
        f"""
        SELECT {PUBLIC_COLUMNS}
        FROM users
        {where}
        ORDER BY {order_column} {direction} NULLS LAST, id {direction}
        LIMIT ${len(args) + 1}
        OFFSET ${len(args) + 2}
        """,
        *args,
        limit,
        offset,
    )
    return rows, int(total or 0)


async def export_users(**filters: Any) -> list[dict[str, Any]]:
    where, args = _filters(**filters)
    return await db.fetch_all(
        f"""
        SELECT u.id, u.full_name, u.email, u.phone, u.city, u.current_tier,
               u.total_spent, u.is_active, u.created_at, c.card_number, c.expires_at AS card_expires_at
        FROM (SELECT * FROM users {where}) u
        LEFT JOIN discount_cards c ON c.user_id = u.id
        ORDER BY u.created_at DESC
        """,
        *args,
    )


async def stats() -> dict[str, Any]:
    row = await db.fetch_one(
        """
        SELECT
          count(*) AS total,
          count(*) FILTER (WHERE is_active) AS active,
          count(*) FILTER (WHERE NOT is_active) AS inactive,
          count(*) FILTER (WHERE is_email_verified) AS email_verified,
          count(*) FILTER (WHERE is_phone_verified) AS phone_verified,
          count(*) FILTER (WHERE is_profile_complete) AS profile_complete,
          count(*) FILTER (WHERE created_at >= now() - interval '30 days') AS recent_registrations
        FROM users
        """
    )
    tiers = await db.fetch_all(
        """
        SELECT current_tier AS tier, count(*) AS count
        FROM users
        GROUP BY current_tier
        ORDER BY count DESC
        """
    )
    return {**(row or {}), "tier_distribution": tiers}


async def existing_ids(user_ids: list[int]) -> list[int]:
    rows = await db.fetch_all("SELECT id FROM users WHERE id = ANY($1::bigint[])", user_ids)
    return [int(r["id"]) for r in rows]


async def bulk_set_active(user_ids: list[int], is_active: bool) -> int:
    status = await db.execute(
        "UPDATE users SET is_active = $2, updated_at = now() WHERE id = ANY($1::bigint[])",
        user_ids,
        is_active,
    )
    return db.affected_rows(status)


async def bulk_set_tier(user_ids: list[int], tier: str) -> int:
    async with db.transaction() as conn:
        status = await conn.execute(
            "UPDATE users SET current_tier = $2, updated_at = now() WHERE id = ANY($1::bigint[])",
            user_ids,
            tier,
        )
        await conn.execute(
            "UPDATE discount_cards SET tier = $2, updated_at = now() WHERE user_id = ANY($1::bigint[])",
            user_ids,
            tier,
        )
    return db.affected_rows(status)


async def bulk_delete(user_ids: list[int]) -> int:
    status = await db.execute("DELETE FROM users WHERE id = ANY($1::bigint[])", user_ids)
    return db.affected_rows(status)


async def monthly_discount_usage(user_id: int, *, since: datetime) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT
          to_char(date_trunc('month', transaction_date), 'YYYY-MM') AS month,
          count(*) AS transaction_count,
          COALESCE(sum(amount), 0) AS total_amount,
          COALESCE(sum(discount_amount), 0) AS total_saved
        FROM transactions
        WHERE user_id = $1 AND status = 'completed' AND transaction_date >= $2
        GROUP BY 1
        ORDER BY 1
        """,
        user_id,
        since,
    )


async def category_discount_usage(user_id: int, *, since: datetime) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT
          COALESCE(s.category, 'Other') AS category,
          count(*) AS transaction_count,
          COALESCE(sum(t.amount), 0) AS total_amount,
          COALESCE(sum(t.discount_amount), 0) AS total_saved
        FROM transactions t
        LEFT JOIN shops s ON s.id = t.shop_id
        WHERE t.user_id = $1 AND t.status = 'completed' AND t.transaction_date >= $2
        GROUP BY 1
        ORDER BY total_saved DESC
        """,
        user_id,
        since,
    )
