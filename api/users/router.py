"""
Admin user-management endpoints.
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from auth import dependencies as auth_dependencies
from auth import permissions
from core import responses

from . import schemas, service

router = APIRouter(prefix="/api/admin/users")


@router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(responses.DEFAULT_PAGE_SIZE, ge=1, le=responses.MAX_PAGE_SIZE),
    search: str | None = Query(default=None, max_length=100),
    tier: schemas.Tier | None = Query(default=None),
    status: Literal["active", "inactive"] | None = Query(default=None),
    sort_by: Literal["created_at", "full_name", "total_spent"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    _: dict = Depends(auth_dependencies.require_permission("users.view")),
) -> dict:
    return await service.list_users(
        page=page,
        limit=limit,
        search=search,
        tier=tier,
        status_filter=status,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/stats")
async def user_stats(_: dict = Depends(auth_dependencies.require_permission("users.view"))) -> dict:
    return responses.success(await service.stats())


@router.get("/export")
async def export_users(
    export_format: Literal["csv", "json"] = Query("csv", alias="format"),
    tier: schemas.Tier | None = Query(default=None),
    status: Literal["active", "inactive"] | None = Query(default=None),
    _: dict = Depends(auth_dependencies.require_permission("users.export")),
):
    kind, data = await service.export(fmt=export_format, tier=tier, status_filter=status)
    if kind == "csv":
        return Response(
            content=data,
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="users.csv"'},
        )
    return responses.success(data)


@router.post("/bulk-update")
async def bulk_update(
    payload: schemas.BulkUserRequest,
    current_admin: dict = Depends(auth_dependencies.require_permission("users.bulk_operations")),
) -> dict:
    if payload.action == "delete" and not permissions.has_permission(str(current_admin["role"]), "users.delete"):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    result = await service.bulk_update(payload, admin_id=int(current_admin["id"]))
    return responses.success(result, f"Bulk {payload.action} completed")


@router.post("", status_code=201)
async def create_user(
    payload: schemas.AdminCreateUserRequest,
    current_admin: dict = Depends(auth_dependencies.require_permission("users.create")),
) -> dict:
    user = await service.create_user(payload, admin_id=int(current_admin["id"]))
    return responses.success(user, "User created successfully")


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    _: dict = Depends(auth_dependencies.require_permission("users.view")),
) -> dict:
    return responses.success(await service.get_details(user_id))


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    payload: schemas.AdminUpdateUserRequest,
    current_admin: dict = Depends(auth_dependencies.require_permission("users.update")),
) -> dict:
    user = await service.update_user(user_id, payload, admin_id=int(current_admin["id"]))
    return responses.success(user, "User updated successfully")


@router.put("/{user_id}/reset-password")
async def reset_password(
    user_id: int,
    payload: schemas.AdminResetPasswordRequest,
    current_admin: dict = Depends(auth_dependencies.require_permission("users.reset_password")),
) -> dict:
    await service.reset_password(user_id, payload, admin_id=int(current_admin["id"]))
    return responses.success(None, "Password reset successfully")


@router.put("/{user_id}/card")
async def update_card(
    user_id: int,
    payload: schemas.UpdateCardRequest,
    _: dict = Depends(auth_dependencies.require_permission("users.manage_cards")),
) -> dict:
    return responses.success(await service.update_card(user_id, payload), "Card updated successfully")


@router.post("/{user_id}/generate-card", status_code=201)
async def generate_card(
    user_id: int,
    payload: schemas.GenerateCardRequest,
    current_admin: dict = Depends(auth_dependencies.require_permission("users.manage_cards")),
) -> dict:
    card = await service.generate_card(user_id, payload, admin_id=int(current_admin["id"]))
    return responses.success(card, "Card generated successfully")


@router.post("/{user_id}/send-email")
async def send_email(
    user_id: int,
    payload: schemas.SendEmailRequest,
    _: dict = Depends(auth_dependencies.require_permission("users.send_emails")),
) -> dict:
    return responses.success(await service.send_email(user_id, payload), "Email processed")


@router.get("/{user_id}/discount-analytics")
async def discount_analytics(
    user_id: int,
    period: Literal["1month", "3months", "6months", "1year"] = Query("6months"),
    _: dict = Depends(auth_dependencies.require_permission("users.view")),
) -> dict:
    return responses.success(await service.discount_analytics(user_id, period=period))


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    current_admin: dict = Depends(auth_dependencies.require_roles(permissions.ROLE_SUPER_ADMIN)),
) -> dict:
    await service.delete_user(user_id, admin_id=int(current_admin["id"]))
    return responses.success(None, "User deleted successfully")

