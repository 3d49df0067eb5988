"""
Discount card persistence.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import asyncpg

from core import db

CARD_COLUMNS = """
    id, user_id, card_number, tier, issued_at, expires_at, shop_id,
    is_active, qr_code, created_at, updated_at
"""

_UPSERT_SQL = f"""
    INSERT INTO discount_cards (user_id, card_number, tier, issued_at, expires_at, is_active, qr_code)
    VALUES ($1, $2, $3, $4, $5, $6, $7)
    ON CONFLICT (user_id) DO UPDATE
    SET card_number = EXCLUDED.card_number,
        tier = EXCLUDED.tier,
        issued_at = EXCLUDED.issued_at,
        expires_at = EXCLUDED.expires_at,
        is_active = EXCLUDED.is_active,
        qr_code = EXCLUDED.qr_code,
        updated_at = now()
    RETURNING {CARD_COLUMNS}
"""


async def get_card_by_user(user_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(f"SELECT {CARD_COLUMNS} FROM discount_cards WHERE user_id = $1", user_id)


async def get_card_by_number(card_number: str) -> dict[str, Any] | None:
    return await db.fetch_one(f"SELECT {CARD_COLUMNS} FROM discount_cards WHERE card_number = $1", card_number)


async def upsert_card(
    *,
    user_id: int,
    card_number: str,
    tier: str,
    issued_at: datetime,
    expires_at: datetime,
    qr_code: str,
    is_active: bool = True,
    conn: asyncpg.Connection | None = None,
) -> dict[str, Any]:
    """
    Issue a card for a user, replacing any previous card of that user.
    Pass `conn` to run inside an open transaction.
    """
    args = (user_id, card_number, tier, issued_at, expires_at, is_active, qr_code)
    if conn is not None:
        row = await db.conn_fetch_one(conn, _UPSERT_SQL, *args)
    else:
        row = await db.fetch_one(_UPSERT_SQL, *args)
    if row is None:
        raise RuntimeError("Failed to issue discount card.")
    return row


async def update_card(
    user_id: int,
    *,
    expires_at: datetime | None = None,
    is_active: bool | None = None,
) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        UPDATE discount_cards
        SET expires_at = COALESCE($2, expires_at),
            is_active = COALESCE($3, is_active),
            updated_at = now()
        WHERE user_id = $1
        RETURNING {CARD_COLUMNS}
        """,
        user_id,
        expires_at,
        is_active,
    )


async def set_tier(user_id: int, tier: str, *, conn: asyncpg.Connection | None = None) -> None:
    sql = "UPDATE discount_cards SET tier = $2, updated_at = now() WHERE user_id = $1"
    if conn is not None:
        await conn.execute(sql, user_id, tier)
    else:
        await db.execute(sql, user_id, tier)
