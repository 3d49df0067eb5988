"""
Transaction persistence.

Recording or refunding a transaction touches several tables (transaction,
discount rule usage, member totals and tier, card tier, shop totals); each of
those writes runs inside a single DB transaction.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

import asyncpg

from core import db
from discounts import tiers


class RuleUsageExhausted(RuntimeError):
    def __init__(self, rule_id: int) -> None:
        super().__init__(f"Discount rule {rule_id} reached its usage limit.")
        self.rule_id = rule_id


TRANSACTION_COLUMNS = """
    t.id, t.transaction_ref, t.user_id, t.card_id, t.shop_id, t.discount_rule_id,
    t.amount, t.discount_percentage, t.discount_amount, t.final_amount,
    t.payment_method, t.status, t.transaction_date, t.created_at,
    u.full_name AS user_name, s.name AS shop_name, s.category AS shop_category
"""

_FROM = """
    FROM transactions t
    JOIN users u ON u.id = t.user_id
    LEFT JOIN shops s ON s.id = t.shop_id
"""


def _filters(
    *,
    user_id: int | None = None,
    shop_id: int | None = None,
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> tuple[str, list[Any]]:
    conditions: list[str] = []
    args: list[Any] = []
    if user_id is not None:
        args.append(user_id)
        conditions.append(f"t.user_id = ${len(args)}")
    if shop_id is not None:
        args.append(shop_id)
        conditions.append(f"t.shop_id = ${len(args)}")
    if status:
        args.append(status)
        conditions.append(f"t.status = ${len(args)}")
    if start_date is not None:
        args.append(start_date)
        conditions.append(f"t.transaction_date >= ${len(args)}")
    if end_date is not None:
        args.append(end_date)
        conditions.append(f"t.transaction_date <= ${len(args)}")
    where = ("WHERE " + " AND ".join(conditions)) if conditions else ""
    return where, args


async def list_transactions(*, limit: int, offset: int, **filters: Any) -> tuple[list[dict[str, Any]], int]:
    where, args = _filters(**filters)
    total = await db.fetch_val(f"SELECT count(*) {_FROM} {where}", *args)
    rows = await db.fetch_all(
        f"""
        SELECT {TRANSACTION_COLUMNS}
        {_FROM}
        {where}
        ORDER BY t.transaction_date DESC, t.id DESC
        LIMIT ${len(args) + 1}
        OFFSET ${len(args) + 2}
        """,
        *args,
        limit,
        offset,
    )
    return rows, int(total or 0)


async def summarize(**filters: Any) -> dict[str, Any]:
    where, args = _filters(**filters)
    extra = "t.status = 'completed'"
    where = f"{where} AND {extra}" if where else f"WHERE {extra}"
    row = await db.fetch_one(
        f"""
        SELECT
          count(*) AS transaction_count,
          COALESCE(sum(t.amount), 0) AS total_amount,
          COALESCE(sum(t.discount_amount), 0) AS total_saved,
          COALESCE(sum(t.final_amount), 0) AS total_paid
        {_FROM}
        {where}
        """,
        *args,
    )
    return row or {}


async def get_transaction(transaction_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(f"SELECT {TRANSACTION_COLUMNS} {_FROM} WHERE t.id = $1", transaction_id)


async def _apply_totals(
    conn: asyncpg.Connection,
    *,
    user_id: int,
    shop_id: int | None,
    amount: Decimal,
    final_amount: Decimal,
    count_delta: int,
) -> str:
    """
    Add (or subtract, for negative values) a purchase to member and shop totals.
    Returns the member's recomputed tier.
    """
    total_spent = await conn.fetchval(
        """
        UPDATE users
        SET total_spent = GREATEST(total_spent + $2, 0), updated_at = now()
        WHERE id = $1
        RETURNING total_spent
        """,
        user_id,
        amount,
    )
    tier = tiers.tier_for_spend(total_spent)
    await conn.execute("UPDATE users SET current_tier = $2 WHERE id = $1 AND current_tier <> $2", user_id, tier)
    await conn.execute("UPDATE discount_cards SET tier = $2, updated_at = now() WHERE user_id = $1", user_id, tier)

    if shop_id is not None:
        await conn.execute(
            """
            UPDATE shops
            SET total_purchases = GREATEST(total_purchases + $2, 0),
                total_revenue = GREATEST(total_revenue + $3, 0),
                total_transactions = GREATEST(total_transactions + $4, 0),
                last_activity = now(),
                updated_at = now()
            WHERE id = $1
            """,
            shop_id,
            amount,
            final_amount,
            count_delta,
        )
    return tier


async def record_transaction(
    *,
    transaction_ref: str,
    user_id: int,
    card_id: int,
    shop_id: int | None,
    discount_rule_id: int | None,
    amount: Decimal,
    discount_percentage: Decimal,
    discount_amount: Decimal,
    final_amount: Decimal,
    payment_method: str,
) -> tuple[dict[str, Any], str]:
    """
    Insert a completed transaction and apply its effects. Returns (row, new tier).

    Raises RuleUsageExhausted, with nothing written, when the discount rule hit
    its `max_usage` after it was chosen.
    """
    async with db.transaction() as conn:
        if discount_rule_id is not None:
            claimed = await db.conn_fetch_one(
                conn,
                """
                UPDATE discount_rules
                SET usage_count = usage_count + 1, updated_at = now()
                WHERE id = $1 AND (max_usage IS NULL OR usage_count < max_usage)
                RETURNING id
                """,
                discount_rule_id,
            )
            if claimed is None:
                raise RuleUsageExhausted(discount_rule_id)

        row = await db.conn_fetch_one(
            conn,
            """
            INSERT INTO transactions (
              transaction_ref, user_id, card_id, shop_id, discount_rule_id, amount,
              discount_percentage, discount_amount, final_amount, payment_method, status
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, 'completed')
            RETURNING id
            """,
            transaction_ref,
            user_id,
            card_id,
            shop_id,
            discount_rule_id,
            amount,
            discount_percentage,
            discount_amount,
            final_amount,
            payment_method,
        )
        if row is None:
            raise RuntimeError("Failed to insert transaction.")

        tier = await _apply_totals(
            conn,
            user_id=user_id,
            shop_id=shop_id,
            amount=amount,
            final_amount=final_amount,
            count_delta=1,
        )
        created = await db.conn_fetch_one(conn, f"SELECT {TRANSACTION_COLUMNS} {_FROM} WHERE t.id = $1", row["id"])

    if created is None:
        raise RuntimeError("Transaction vanished after insert.")
    return created, tier


async def change_status(transaction: dict[str, Any], *, new_status: str) -> dict[str, Any] | None:
    """
    Update a transaction's status. Moving into "completed" applies its totals;
    moving out of "completed" (refund) reverses them.
    """
    old_status = str(transaction["status"])
    amount = Decimal(transaction["amount"])
    final_amount = Decimal(transaction["final_amount"])

    async with db.transaction() as conn:
        row = await db.conn_fetch_one(
            conn,
            """
            UPDATE transactions
            SET status = $2, updated_at = now()
            WHERE id = $1 AND status = $3
            RETURNING id
            """,
            transaction["id"],
            new_status,
            old_status,
        )
        if row is None:
            return None

        if new_status == "completed":
            sign = 1
        elif old_status == "completed":
            sign = -1
        else:
            sign = 0

        if sign:
            await _apply_totals(
                conn,
                user_id=int(transaction["user_id"]),
                shop_id=transaction.get("shop_id"),
                amount=amount * sign,
                final_amount=final_amount * sign,
                count_delta=sign,
            )
        return await db.conn_fetch_one(conn, f"SELECT {TRANSACTION_COLUMNS} {_FROM} WHERE t.id = $1", row["id"])
