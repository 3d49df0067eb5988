"""
Discount rule persistence.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from core import db

RULE_COLUMNS = """
    r.id, r.rule_name, r.description, r.min_amount, r.max_amount,
    r.discount_percentage, r.tier, r.shop_id, r.valid_from, r.valid_to,
    r.max_usage, r.usage_count, r.is_stackable, r.is_active,
    r.created_at, r.updated_at, s.name AS shop_name
"""

WRITABLE_FIELDS = (
    "rule_name",
    "description",
    "min_amount",
    "max_amount",
    "discount_percentage",
    "tier",
    "shop_id",
    "valid_from",
    "valid_to",
    "max_usage",
    "is_stackable",
    "is_active",
)


def _filters(
    *,
    shop_id: int | None = None,
    tier: str | None = None,
    is_active: bool | None = None,
    scope: str | None = None,
    search: str | None = None,
) -> tuple[str, list[Any]]:
    conditions: list[str] = []
    args: list[Any] = []

    if shop_id is not None:
        args.append(shop_id)
        conditions.append(f"r.shop_id = ${len(args)}")
    if tier:
        args.append(tier)
        conditions.append(f"r.tier = ${len(args)}")
    if is_active is not None:
        args.append(is_active)
        conditions.append(f"r.is_active = ${len(args)}")
    if scope == "global":
        conditions.append("r.shop_id IS NULL")
    elif scope == "shop_specific":
        conditions.append("r.shop_id IS NOT NULL")
    if search:
        args.append(f"%{search}%")
        conditions.append(f"(r.rule_name ILIKE ${len(args)} OR r.description ILIKE ${len(args)})")

    where = ("WHERE " + " AND ".join(conditions)) if conditions else ""
    return where, args


async def list_rules(*, limit: int, offset: int, **filters: Any) -> tuple[list[dict[str, Any]], int]:
    where, args = _filters(**filters)
    total = await db.fetch_val(f"SELECT count(*) FROM discount_rules r {where}", *args)
    rows = await db.fetch_all(
        f"""
        SELECT {RULE_COLUMNS}
        FROM discount_rules r
        LEFT JOIN shops s ON s.id = r.shop_id
        {where}
        ORDER BY r.created_at DESC, r.id DESC
        LIMIT ${len(args) + 1}
        OFFSET ${len(args) + 2}
        """,
        *args,
        limit,
        offset,
    )
    return rows, int(total or 0)


async def get_rule(rule_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        SELECT {RULE_COLUMNS}
        FROM discount_rules r
        LEFT JOIN shops s ON s.id = r.shop_id
        WHERE r.id = $1
        """,
        rule_id,
    )


async def create_rule(fields: dict[str, Any]) -> dict[str, Any]:
    fields = {k: v for k, v in fields.items() if k in WRITABLE_FIELDS}
    columns = ", ".join(fields)
    placeholders = ", ".join(f"${i}" for i in range(1, len(fields) + 1))
    row = await db.fetch_one(
        f"""
        INSERT INTO discount_rules ({columns})
        VALUES ({placeholders})
        RETURNING id
        """,
        *fields.values(),
    )
    if row is None:
        raise RuntimeError("Failed to create discount rule.")
    created = await get_rule(int(row["id"]))
    if created is None:
        raise RuntimeError("Discount rule vanished after insert.")
    return created


async def update_rule(rule_id: int, fields: dict[str, Any]) -> dict[str, Any] | None:
    fields = {k: v for k, v in fields.items() if k in WRITABLE_FIELDS}
    if fields:
        assignments = ", ".join(f"{name} = ${i}" for i, name in enumerate(fields, start=2))
        row = await db.fetch_one(
            f"""
            UPDATE discount_rules
            SET {assignments}, updated_at = now()
            WHERE id = $1
            RETURNING id
            """,
            rule_id,
            *fields.values(),
        )
        if row is None:
            return None
    return await get_rule(rule_id)


async def delete_rule(rule_id: int) -> bool:
    row = await db.fetch_one("DELETE FROM discount_rules WHERE id = $1 RETURNING id", rule_id)
    return row is not None


async def bulk_set_active(rule_ids: list[int], is_active: bool) -> int:
    status = await db.execute(
        """
        UPDATE discount_rules
        SET is_active = $2, updated_at = now()
        WHERE id = ANY($1::bigint[])
        """,
        rule_ids,
        is_active,
    )
    return db.affected_rows(status)


async def bulk_delete(rule_ids: list[int]) -> int:
    status = await db.execute("DELETE FROM discount_rules WHERE id = ANY($1::bigint[])", rule_ids)
    return db.affected_rows(status)


async def find_applicable_rules(
    *,
    amount: Decimal,
    tier: str,
    shop_id: int | None,
    now: datetime,
) -> list[dict[str, Any]]:
    """
    Rules matching a purchase, best percentage first.

    With a shop both its own rules and global rules are considered; without a
    shop only global rules are.
    """
    return await db.fetch_all(
        f"""
        SELECT {RULE_COLUMNS}
        FROM discount_rules r
        LEFT JOIN shops s ON s.id = r.shop_id
        WHERE r.is_active = true
          AND r.tier = $2
          AND r.min_amount <= $1
          AND (r.max_amount IS NULL OR r.max_amount >= $1)
          AND (r.shop_id IS NULL OR r.shop_id = $3)
          AND (r.valid_from IS NULL OR r.valid_from <= $4)
          AND (r.valid_to IS NULL OR r.valid_to >= $4)
          AND (r.max_usage IS NULL OR r.usage_count < r.max_usage)
        ORDER BY r.discount_percentage DESC, (r.shop_id IS NULL) ASC, r.id ASC
        """,
        amount,
        tier,
        shop_id,
        now,
    )


async def stats() -> dict[str, Any]:
    totals = await db.fetch_one(
        """
        SELECT
          count(*) AS total,
          count(*) FILTER (WHERE is_active) AS active,
          count(*) FILTER (WHERE NOT is_active) AS inactive,
          count(*) FILTER (WHERE shop_id IS NULL) AS global,
          count(*) FILTER (WHERE shop_id IS NOT NULL) AS shop_specific,
          COALESCE(round(avg(discount_percentage) FILTER (WHERE is_active), 2), 0) AS average_discount
        FROM discount_rules
        """
    )
    by_tier = await db.fetch_all(
        """
        SELECT tier, count(*) AS count, COALESCE(round(avg(discount_percentage), 2), 0) AS average_discount
        FROM discount_rules
        GROUP BY tier
        ORDER BY tier
        """
    )
    return {**(totals or {}), "by_tier": by_tier}
