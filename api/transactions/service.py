"""
Transaction business logic.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import HTTPException, status

from cards import numbers
from cards import repository as cards_repository
from core import responses
from discounts import service as discounts_service
from shops import repository as shops_repository
from users import repository as users_repository

from . import repository, schemas

logger = logging.getLogger(__name__)

RULE_ATTEMPTS = 3


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def record(payload: schemas.RecordTransactionRequest, *, admin_id: int) -> dict:
    card = await cards_repository.get_card_by_number(payload.card_number)
    if card is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Discount card not found")

    now = _utc_now()
    card_state = numbers.card_status(card, now=now)["status"]
    if card_state != numbers.STATUS_ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Discount card is {card_state}",
        )

    user = await users_repository.get_user_by_id(int(card["user_id"]))
    if user is None or not bool(user.get("is_active")):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Card holder account is inactive")

    if payload.shop_id is not None:
        shop = await shops_repository.get_shop(payload.shop_id)
        if shop is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shop not found")
        if shop["status"] != "approved" or not bool(shop["is_active"]):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Shop is not accepting card transactions")

    for _ in range(RULE_ATTEMPTS):
        _, best, calc = await discounts_service.best_discount(
            amount=payload.amount,
            tier=str(user["current_tier"]),
            shop_id=payload.shop_id,
            now=now,
        )
        try:
            transaction, tier = await repository.record_transaction(
                transaction_ref=numbers.generate_transaction_ref(),
                user_id=int(user["id"]),
                card_id=int(card["id"]),
                shop_id=payload.shop_id,
                discount_rule_id=int(best["id"]) if best is not None else None,
                amount=calc.original_amount,
                discount_percentage=calc.discount_percentage,
                discount_amount=calc.discount_amount,
                final_amount=calc.final_amount,
                payment_method=payload.payment_method,
            )
            break
        except repository.RuleUsageExhausted as exc:
            # Used up by a concurrent purchase; the next lookup no longer returns it.
            logger.info("discount_rule_exhausted rule_id=%s user_id=%s", exc.rule_id, user["id"])
    else:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Discount rules changed while recording the transaction. Please retry.",
        )

    logger.info(
        "transaction_recorded transaction_id=%s user_id=%s shop_id=%s amount=%s discount=%s admin_id=%s",
        transaction["id"],
        user["id"],
        payload.shop_id,
        calc.original_amount,
        calc.discount_amount,
        admin_id,
    )
    return {
        "transaction": transaction,
        "applied_rule": best,
        "tier": tier,
        "tier_changed": tier != user["current_tier"],
    }


async def list_transactions(
    *,
    page: int,
    limit: int,
    user_id: int | None = None,
    shop_id: int | None = None,
    status_filter: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> dict:
    rows, total = await repository.list_transactions(
        limit=limit,
        offset=responses.page_offset(page, limit),
        user_id=user_id,
        shop_id=shop_id,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
    )
    return responses.paginated(rows, page=page, limit=limit, total=total, message="Transactions retrieved")


async def get_transaction(transaction_id: int) -> dict:
    transaction = await repository.get_transaction(transaction_id)
    if transaction is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")
    return transaction


async def change_status(transaction_id: int, payload: schemas.StatusChangeRequest, *, admin_id: int) -> dict:
    transaction = await get_transaction(transaction_id)
    current = str(transaction["status"])
    if payload.status not in schemas.ALLOWED_STATUS_CHANGES.get(current, set()):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot change transaction status from {current} to {payload.status}",
        )

    updated = await repository.change_status(transaction, new_status=payload.status)
    if updated is None:
        # Status moved underneath us.
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Transaction was modified concurrently")
    logger.info(
        "transaction_status_changed transaction_id=%s from=%s to=%s admin_id=%s",
        transaction_id,
        current,
        payload.status,
        admin_id,
    )
    return updated
