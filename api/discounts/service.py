"""
Discount rule business logic.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from fastapi import HTTPException, status

from core import responses
from shops import repository as shops_repository

from . import matching, repository, schemas

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _validate_bounds(rule: dict[str, Any]) -> None:
    min_amount = rule.get("min_amount")
    max_amount = rule.get("max_amount")
    if max_amount is not None and min_amount is not None and Decimal(max_amount) < Decimal(min_amount):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="max_amount must be greater than or equal to min_amount",
        )

    valid_from = rule.get("valid_from")
    valid_to = rule.get("valid_to")
    if valid_from is not None and valid_to is not None and valid_to <= valid_from:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="valid_to must be after valid_from",
        )


async def _ensure_shop(shop_id: int | None) -> None:
    if shop_id is None:
        return None
    if await shops_repository.get_shop(shop_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shop not found")


async def list_rules(
    *,
    page: int,
    limit: int,
    shop_id: int | None = None,
    tier: str | None = None,
    status_filter: str | None = None,
    scope: str | None = None,
    search: str | None = None,
) -> dict:
    is_active = {"active": True, "inactive": False}.get(status_filter or "")
    rows, total = await repository.list_rules(
        limit=limit,
        offset=responses.page_offset(page, limit),
        shop_id=shop_id,
        tier=tier,
        is_active=is_active,
        scope=scope,
        search=search,
    )
    return responses.paginated(rows, page=page, limit=limit, total=total, message="Discount rules retrieved")


async def get_rule(rule_id: int) -> dict:
    rule = await repository.get_rule(rule_id)
    if rule is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Discount rule not found")
    return rule


async def create_rule(payload: schemas.DiscountRuleCreate, *, admin_id: int) -> dict:
    fields = payload.model_dump()
    if fields.get("valid_from") is None:
        fields["valid_from"] = _utc_now()
    _validate_bounds(fields)
    await _ensure_shop(fields.get("shop_id"))

    rule = await repository.create_rule(fields)
    logger.info("discount_rule_created rule_id=%s admin_id=%s", rule["id"], admin_id)
    return rule


async def update_rule(rule_id: int, payload: schemas.DiscountRuleUpdate, *, admin_id: int) -> dict:
    existing = await get_rule(rule_id)
    changes = payload.model_dump(exclude_unset=True)
    _validate_bounds({**existing, **changes})
    if "shop_id" in changes:
        await _ensure_shop(changes["shop_id"])

    rule = await repository.update_rule(rule_id, changes)
    if rule is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Discount rule not found")
    logger.info("discount_rule_updated rule_id=%s admin_id=%s fields=%s", rule_id, admin_id, sorted(changes))
    return rule


async def toggle_rule(rule_id: int) -> dict:
    existing = await get_rule(rule_id)
    rule = await repository.update_rule(rule_id, {"is_active": not bool(existing["is_active"])})
    if rule is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Discount rule not found")
    return rule


async def duplicate_rule(rule_id: int, payload: schemas.DuplicateRuleRequest) -> dict:
    existing = await get_rule(rule_id)
    fields = {name: existing.get(name) for name in repository.WRITABLE_FIELDS}
    fields.update(
        {
            "rule_name": payload.rule_name,
            "is_active": False,
            "valid_from": _utc_now(),
        }
    )
    # Keep the copy's window valid when the source window started in the past.
    if fields.get("valid_to") is not None and fields["valid_to"] <= fields["valid_from"]:
        fields["valid_to"] = None
    return await repository.create_rule(fields)


async def delete_rule(rule_id: int, *, admin_id: int) -> None:
    if not await repository.delete_rule(rule_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Discount rule not found")
    logger.info("discount_rule_deleted rule_id=%s admin_id=%s", rule_id, admin_id)


async def bulk_update(payload: schemas.BulkRuleRequest) -> dict:
    if payload.action == "delete":
        affected = await repository.bulk_delete(payload.rule_ids)
    else:
        affected = await repository.bulk_set_active(payload.rule_ids, payload.action == "activate")

    if affected == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No discount rules found")
    return {"action": payload.action, "affected": affected}


async def best_discount(
    *,
    amount: Decimal,
    tier: str,
    shop_id: int | None,
    now: datetime | None = None,
) -> tuple[list[dict], dict | None, matching.DiscountCalculation]:
    rules = await repository.find_applicable_rules(
        amount=amount,
        tier=tier,
        shop_id=shop_id,
        now=now or _utc_now(),
    )
    best = matching.best_rule(rules)
    percentage = best["discount_percentage"] if best is not None else Decimal("0")
    return rules, best, matching.calculate_discount(amount, percentage)


async def calculation_preview(payload: schemas.CalculationPreviewRequest) -> dict:
    await _ensure_shop(payload.shop_id)
    rules, best, calc = await best_discount(amount=payload.amount, tier=payload.tier, shop_id=payload.shop_id)
    return {
        "original_amount": calc.original_amount,
        "tier": payload.tier,
        "shop_id": payload.shop_id,
        "applicable_rules": rules,
        "best_discount": best,
        "discount_percentage": calc.discount_percentage,
        "discount_amount": calc.discount_amount,
        "final_amount": calc.final_amount,
        "total_savings": calc.discount_amount,
    }


async def stats() -> dict:
    return await repository.stats()
