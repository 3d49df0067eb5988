"""
Admin discount rule endpoints.
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query

from auth import dependencies as auth_dependencies
from core import responses

from . import schemas, service, tiers

router = APIRouter(prefix="/api/admin/discounts")


@router.get("")
async def list_rules(
    page: int = Query(1, ge=1),
    limit: int = Query(responses.DEFAULT_PAGE_SIZE, ge=1, le=responses.MAX_PAGE_SIZE),
    shop_id: int | None = Query(default=None),
    tier: schemas.Tier | None = Query(default=None),
    status: Literal["active", "inactive"] | None = Query(default=None),
    rule_type: Literal["global", "shop_specific"] | None = Query(default=None, alias="type"),
    search: str | None = Query(default=None, max_length=100),
    _: dict = Depends(auth_dependencies.require_permission("discounts.view")),
) -> dict:
    return await service.list_rules(
        page=page,
        limit=limit,
        shop_id=shop_id,
        tier=tier,
        status_filter=status,
        scope=rule_type,
        search=search,
    )


@router.get("/stats")
async def rule_stats(_: dict = Depends(auth_dependencies.require_permission("discounts.view"))) -> dict:
    return responses.success(await service.stats())


@router.get("/tiers")
async def tier_requirements(_: dict = Depends(auth_dependencies.require_permission("discounts.view"))) -> dict:
    return responses.success(tiers.requirements_table())


@router.post("/test-calculation")
async def test_calculation(
    payload: schemas.CalculationPreviewRequest,
    _: dict = Depends(auth_dependencies.require_permission("discounts.test_calculation")),
) -> dict:
    return responses.success(await service.calculation_preview(payload), "Discount calculation completed")


@router.post("/bulk-update")
async def bulk_update(
    payload: schemas.BulkRuleRequest,
    _: dict = Depends(auth_dependencies.require_permission("discounts.bulk_operations")),
) -> dict:
    result = await service.bulk_update(payload)
    return responses.success(result, f"Bulk {payload.action} completed")


@router.get("/{rule_id}")
async def get_rule(
    rule_id: int,
    _: dict = Depends(auth_dependencies.require_permission("discounts.view")),
) -> dict:
    return responses.success(await service.get_rule(rule_id))


@router.post("", status_code=201)
async def create_rule(
    payload: schemas.DiscountRuleCreate,
    current_admin: dict = Depends(auth_dependencies.require_permission("discounts.create")),
) -> dict:
    rule = await service.create_rule(payload, admin_id=int(current_admin["id"]))
    return responses.success(rule, "Discount rule created successfully")


@router.put("/{rule_id}")
async def update_rule(
    rule_id: int,
    payload: schemas.DiscountRuleUpdate,
    current_admin: dict = Depends(auth_dependencies.require_permission("discounts.update")),
) -> dict:
    rule = await service.update_rule(rule_id, payload, admin_id=int(current_admin["id"]))
    return responses.success(rule, "Discount rule updated successfully")


@router.put("/{rule_id}/toggle")
async def toggle_rule(
    rule_id: int,
    _: dict = Depends(auth_dependencies.require_permission("discounts.toggle")),
) -> dict:
    rule = await service.toggle_rule(rule_id)
    state = "activated" if rule["is_active"] else "deactivated"
    return responses.success(rule, f"Discount rule {state} successfully")


@router.post("/{rule_id}/duplicate", status_code=201)
async def duplicate_rule(
    rule_id: int,
    payload: schemas.DuplicateRuleRequest,
    _: dict = Depends(auth_dependencies.require_permission("discounts.create")),
) -> dict:
    rule = await service.duplicate_rule(rule_id, payload)
    return responses.success(rule, "Discount rule duplicated successfully")


@router.delete("/{rule_id}")
async def delete_rule(
    rule_id: int,
    current_admin: dict = Depends(auth_dependencies.require_permission("discounts.delete")),
) -> dict:
    await service.delete_rule(rule_id, admin_id=int(current_admin["id"]))
    return responses.success(None, "Discount rule deleted successfully")
