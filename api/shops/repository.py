"""
Shop persistence.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from core import db
from core.text import normalize_email

SHOP_COLUMNS = """
    id, name, owner_name, email, phone, address, district, taluk_block, location,
    category, description, discount_offered, status, registration_number,
    gst_number, bank_account_number, ifsc_code, pan_number, latitude, longitude,
    opening_hours, approved_by, approved_at, rejected_by, rejected_at,
    rejection_reason, blocked_by, blocked_at, block_reason, admin_notes,
    total_purchases, total_revenue, total_transactions, last_activity,
    is_active, created_at, updated_at
"""

PUBLIC_COLUMNS = """
    id, name, owner_name, phone, address, district, location, category,
    description, discount_offered, status, latitude, longitude, opening_hours,
    is_active
"""

WRITABLE_FIELDS = (
    "name",
    "owner_name",
    "email",
    "phone",
    "address",
    "district",
    "taluk_block",
    "location",
    "category",
    "description",
    "discount_offered",
    "status",
    "registration_number",
    "gst_number",
    "bank_account_number",
    "ifsc_code",
    "pan_number",
    "latitude",
    "longitude",
    "opening_hours",
    "approved_by",
    "approved_at",
    "admin_notes",
    "is_active",
)

SORTABLE = {
    "name": "name",
    "owner_name": "owner_name",
    "total_revenue": "total_revenue",
    "total_purchases": "total_purchases",
    "created_at": "created_at",
}


def _filters(
    *,
    search: str | None = None,
    status: str | None = None,
    category: str | None = None,
    city: str | None = None,
) -> tuple[str, list[Any]]:
    conditions: list[str] = []
    args: list[Any] = []
    if search:
        args.append(f"%{search}%")
        n = len(args)
        conditions.append(f"(name ILIKE ${n} OR owner_name ILIKE ${n} OR email ILIKE ${n} OR phone ILIKE ${n})")
    if status:
        args.append(status)
        conditions.append(f"status = ${len(args)}")
    if category:
        args.append(category)
        conditions.append(f"category = ${len(args)}")
    if city:
        args.append(f"%{city}%")
        n = len(args)
        conditions.append(f"(location ILIKE ${n} OR address ILIKE ${n} OR district ILIKE ${n})")
    where = ("WHERE " + " AND ".join(conditions)) if conditions else ""
    return where, args


async def get_shop(shop_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(f"SELECT {SHOP_COLUMNS} FROM shops WHERE id = $1", shop_id)


async def get_shop_by_email(email: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"SELECT {SHOP_COLUMNS} FROM shops WHERE lower(email) = lower($1)",
        normalize_email(email),
    )


async def create_shop(fields: dict[str, Any]) -> dict[str, Any]:
    fields = {k: v for k, v in fields.items() if k in WRITABLE_FIELDS}
    if "email" in fields:
        fields["email"] = normalize_email(fields["email"])
    columns = ", ".join(fields)
    placeholders = ", ".join(f"${i}" for i in range(1, len(fields) + 1))
    row = await db.fetch_one(
        f"""
        INSERT INTO shops ({columns})
        VALUES ({placeholders})
        RETURNING {SHOP_COLUMNS}
        """,
        *fields.values(),
    )
    if row is None:
        raise RuntimeError("Failed to create shop.")
    return row


async def update_shop(shop_id: int, fields: dict[str, Any]) -> dict[str, Any] | None:
    fields = {k: v for k, v in fields.items() if k in WRITABLE_FIELDS}
    if not fields:
        return await get_shop(shop_id)
    if "email" in fields:
        fields["email"] = normalize_email(fields["email"])
    assignments = ", ".join(f"{name} = ${i}" for i, name in enumerate(fields, start=2))
    return await db.fetch_one(
        f"""
        UPDATE shops
        SET {assignments}, updated_at = now()
        WHERE id = $1
        RETURNING {SHOP_COLUMNS}
        """,
        shop_id,
        *fields.values(),
    )


async def list_shops(
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
    total = await db.fetch_val(f"SELECT count(*) FROM shops {where}", *args)
    rows = await db.fetch_all(
        f"""
        SELECT {SHOP_COLUMNS}
        FROM shops
        {where}
        ORDER BY {order_column} {direction}, id {direction}
        LIMIT ${len(args) + 1}
        OFFSET ${len(args) + 2}
        """,
        *args,
        limit,
        offset,
    )
    return rows, int(total or 0)


async def export_shops(**filters: Any) -> list[dict[str, Any]]:
    where, args = _filters(**filters)
    return await db.fetch_all(
        f"""
        SELECT id, name, owner_name, email, phone, location, category, status,
               discount_offered, total_revenue, total_transactions, created_at
        FROM shops
        {where}
        ORDER BY created_at DESC
        """,
        *args,
    )


async def pending_shops() -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT {SHOP_COLUMNS}
        FROM shops
        WHERE status = 'pending'
        ORDER BY created_at ASC, id ASC
        """
    )


async def set_status(
    shop_id: int,
    *,
    status: str,
    admin_id: int,
    reason: str | None = None,
    notes: str | None = None,
) -> dict[str, Any] | None:
    """
    Move a shop to `status` and stamp the matching audit columns.
    Approved shops become active; every other status deactivates the shop.
    """
    return await db.fetch_one(
        f"""
        UPDATE shops
        SET status = $2,
            is_active = ($2 = 'approved'),
            approved_by = CASE WHEN $2 = 'approved' THEN $3 ELSE approved_by END,
            approved_at = CASE WHEN $2 = 'approved' THEN now() ELSE approved_at END,
            rejected_by = CASE WHEN $2 = 'rejected' THEN $3 ELSE rejected_by END,
            rejected_at = CASE WHEN $2 = 'rejected' THEN now() ELSE rejected_at END,
            rejection_reason = CASE WHEN $2 = 'rejected' THEN $4 ELSE rejection_reason END,
            blocked_by = CASE WHEN $2 = 'blocked' THEN $3 ELSE NULL END,
            blocked_at = CASE WHEN $2 = 'blocked' THEN now() ELSE NULL END,
            block_reason = CASE WHEN $2 = 'blocked' THEN $4 ELSE NULL END,
            admin_notes = COALESCE($5, admin_notes),
            updated_at = now()
        WHERE id = $1
        RETURNING {SHOP_COLUMNS}
        """,
        shop_id,
        status,
        admin_id,
        reason,
        notes,
    )


async def get_shops_by_ids(shop_ids: list[int]) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"SELECT {SHOP_COLUMNS} FROM shops WHERE id = ANY($1::bigint[])",
        shop_ids,
    )


async def bulk_set_status(
    shop_ids: list[int],
    *,
    status: str,
    admin_id: int,
    reason: str | None = None,
) -> list[dict[str, Any]]:
    rows = []
    async with db.transaction() as conn:
        for shop_id in shop_ids:
            row = await db.conn_fetch_one(
                conn,
                """
                UPDATE shops
                SET status = $2,
                    is_active = ($2 = 'approved'),
                    approved_by = CASE WHEN $2 = 'approved' THEN $3 ELSE approved_by END,
                    approved_at = CASE WHEN $2 = 'approved' THEN now() ELSE approved_at END,
                    rejected_by = CASE WHEN $2 = 'rejected' THEN $3 ELSE rejected_by END,
                    rejected_at = CASE WHEN $2 = 'rejected' THEN now() ELSE rejected_at END,
                    rejection_reason = CASE WHEN $2 = 'rejected' THEN $4 ELSE rejection_reason END,
                    blocked_by = CASE WHEN $2 = 'blocked' THEN $3 ELSE NULL END,
                    blocked_at = CASE WHEN $2 = 'blocked' THEN now() ELSE NULL END,
                    block_reason = CASE WHEN $2 = 'blocked' THEN $4 ELSE NULL END,
                    updated_at = now()
                WHERE id = $1
                RETURNING id, status
                """,
                shop_id,
                status,
                admin_id,
                reason,
            )
            if row is not None:
                rows.append(row)
    return rows


async def delete_shop(shop_id: int) -> bool:
    row = await db.fetch_one("DELETE FROM shops WHERE id = $1 RETURNING id", shop_id)
    return row is not None


async def bulk_delete(shop_ids: list[int]) -> int:
    status = await db.execute("DELETE FROM shops WHERE id = ANY($1::bigint[])", shop_ids)
    return db.affected_rows(status)


async def stats() -> dict[str, Any]:
    row = await db.fetch_one(
        """
        SELECT
          count(*) AS total,
          count(*) FILTER (WHERE status = 'pending') AS pending,
          count(*) FILTER (WHERE status = 'approved') AS approved,
          count(*) FILTER (WHERE status = 'rejected') AS rejected,
          count(*) FILTER (WHERE status = 'blocked') AS blocked,
          count(*) FILTER (WHERE is_active) AS active,
          COALESCE(sum(total_revenue), 0) AS total_revenue,
          COALESCE(sum(total_transactions), 0) AS total_transactions
        FROM shops
        """
    )
    categories = await db.fetch_all(
        """
        SELECT category, count(*) AS count
        FROM shops
        GROUP BY category
        ORDER BY count DESC, category
        """
    )
    return {**(row or {}), "categories": categories}


async def shop_analytics(
    shop_id: int,
    *,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> dict[str, Any]:
    row = await db.fetch_one(
        """
        SELECT
          count(*) AS transaction_count,
          COALESCE(sum(amount), 0) AS total_amount,
          COALESCE(sum(discount_amount), 0) AS total_discount,
          COALESCE(sum(final_amount), 0) AS total_revenue,
          COALESCE(round(avg(amount), 2), 0) AS average_amount,
          count(DISTINCT user_id) AS unique_customers
        FROM transactions
        WHERE shop_id = $1
          AND status = 'completed'
          AND ($2::timestamptz IS NULL OR transaction_date >= $2)
          AND ($3::timestamptz IS NULL OR transaction_date <= $3)
        """,
        shop_id,
        start_date,
        end_date,
    )
    return row or {}


async def search_public(
    *,
    search: str | None = None,
    category: str | None = None,
    location_terms: list[str] | None = None,
    limit: int = 500,
) -> list[dict[str, Any]]:
    """
    Approved and active shops matching the filters (unpaginated, capped by limit).
    """
    conditions = ["status = 'approved'", "is_active = true"]
    args: list[Any] = []
    if search:
        args.append(f"%{search}%")
        n = len(args)
        conditions.append(f"(name ILIKE ${n} OR category ILIKE ${n} OR description ILIKE ${n})")
    if category:
        args.append(category)
        conditions.append(f"lower(category) = lower(${len(args)})")
    if location_terms:
        args.append([f"%{term}%" for term in location_terms])
        n = len(args)
        conditions.append(
            f"(location ILIKE ANY(${n}::text[]) OR address ILIKE ANY(${n}::text[]) OR district ILIKE ANY(${n}::text[]))"
        )
    args.append(limit)
    return await db.fetch_all(
        f"""
        SELECT {PUBLIC_COLUMNS}
        FROM shops
        WHERE {" AND ".join(conditions)}
        ORDER BY name
        LIMIT ${len(args)}
        """,
        *args,
    )


async def public_categories() -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT category, count(*) AS count
        FROM shops
        WHERE status = 'approved' AND is_active = true
        GROUP BY category
        ORDER BY category
        """
    )
