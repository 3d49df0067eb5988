"""
Discount card lifecycle: issue, activate, renew and status.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import asyncpg
from fastapi import HTTPException, status

from . import numbers, repository

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def with_status(card: dict[str, Any] | None, *, now: datetime | None = None) -> dict[str, Any] | None:
    if card is None:
        return None
    return {**card, **numbers.card_status(card, now=now)}


async def issue_card(
    *,
    user_id: int,
    tier: str,
    expires_at: datetime | None = None,
    conn: asyncpg.Connection | None = None,
) -> dict[str, Any]:
    issued_at = _utc_now()
    expires_at = expires_at or numbers.add_months(issued_at, numbers.CARD_VALIDITY_MONTHS)
    if expires_at <= issued_at:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Card expiry must be in the future",
        )

    card_number = numbers.generate_card_number()
    card = await repository.upsert_card(
        user_id=user_id,
        card_number=card_number,
        tier=tier,
        issued_at=issued_at,
        expires_at=expires_at,
        qr_code=numbers.qr_payload(card_number=card_number, user_id=user_id, issued_at=issued_at),
        conn=conn,
    )
    logger.info("card_issued user_id=%s card_id=%s expires_at=%s", user_id, card["id"], expires_at.isoformat())
    return card


async def get_card_or_404(user_id: int) -> dict[str, Any]:
    card = await repository.get_card_by_user(user_id)
    if card is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No discount card found")
    return card


async def activate(user_id: int) -> dict[str, Any]:
    card = await get_card_or_404(user_id)
    if bool(card["is_active"]):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Card is already active")

    updated = await repository.update_card(user_id, is_active=True)
    logger.info("card_activated user_id=%s card_id=%s", user_id, card["id"])
    return with_status(updated)


async def renew(user_id: int, *, months: int) -> dict[str, Any]:
    card = await get_card_or_404(user_id)
    now = _utc_now()
    new_expiry = numbers.renewed_expiry(card.get("expires_at"), months=months, now=now)
    updated = await repository.update_card(user_id, expires_at=new_expiry, is_active=True)
    logger.info("card_renewed user_id=%s months=%s expires_at=%s", user_id, months, new_expiry.isoformat())
    return with_status(updated, now=now)


async def admin_update(user_id: int, *, expires_at: datetime | None, is_active: bool | None) -> dict[str, Any]:
    await get_card_or_404(user_id)
    updated = await repository.update_card(user_id, expires_at=expires_at, is_active=is_active)
    return with_status(updated)
