"""
Shop endpoints: public registration/search and admin management.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from fastapi.responses import Response

from auth import dependencies as auth_dependencies
from auth import permissions
from core import responses

from . import repository, schemas, service

public_router = APIRouter()
router = APIRouter(prefix="/api/admin/shops")


@public_router.post("/api/shops/register", status_code=201)
async def register_shop(payload: schemas.ShopRegisterRequest) -> dict:
    shop = await service.register(payload)
    return responses.success(
        {"id": shop["id"], "name": shop["name"], "status": shop["status"]},
        "Shop registration submitted successfully. Awaiting admin approval.",
    )


@public_router.get("/api/shops/categories")
async def shop_categories() -> dict:
    return responses.success(await repository.public_categories())


@public_router.get("/api/users/shops/search")
async def search_shops(
    search: str | None = Query(default=None, max_length=100),
    category: str | None = Query(default=None, max_length=100),
    location: str | None = Query(default=None, max_length=200),
    latitude: float | None = Query(default=None, ge=-90, le=90),
    longitude: float | None = Query(default=None, ge=-180, le=180),
    max_distance_km: float | None = Query(default=None, gt=0, le=500),
    sort_by: Literal["distance", "name", "discount"] = Query("name"),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=responses.MAX_PAGE_SIZE),
) -> dict:
    return await service.public_search(
        search_text=search,
        category=category,
        location=location,
        latitude=latitude,
        longitude=longitude,
        max_distance_km=max_distance_km,
        sort_by=sort_by,
        page=page,
        limit=limit,
    )


@router.get("")
async def list_shops(
    page: int = Query(1, ge=1),
    limit: int = Query(responses.DEFAULT_PAGE_SIZE, ge=1, le=responses.MAX_PAGE_SIZE),
    search: str | None = Query(default=None, max_length=100),
    status: Literal["pending", "approved", "rejected", "blocked"] | None = Query(default=None),
    category: str | None = Query(default=None, max_length=100),
    city: str | None = Query(default=None, max_length=100),
    sort_by: Literal["name", "owner_name", "total_revenue", "total_purchases", "created_at"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    _: dict = Depends(auth_dependencies.require_permission("shops.view")),
) -> dict:
    return await service.list_shops(
        page=page,
        limit=limit,
        search=search,
        status_filter=status,
        category=category,
        city=city,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/stats")
async def shop_stats(_: dict = Depends(auth_dependencies.require_permission("shops.view"))) -> dict:
    return responses.success(await service.stats())


@router.get("/export")
async def export_shops(
    export_format: Literal["csv", "json"] = Query("csv", alias="format"),
    status: Literal["pending", "approved", "rejected", "blocked"] | None = Query(default=None),
    category: str | None = Query(default=None, max_length=100),
    _: dict = Depends(auth_dependencies.require_permission("shops.export")),
):
    kind, data = await service.export(fmt=export_format, status_filter=status, category=category)
    if kind == "csv":
        return Response(
            content=data,
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="shops.csv"'},
        )
    return responses.success(data)


@router.get("/pending")
async def pending_shops(_: dict = Depends(auth_dependencies.require_permission("shops.view"))) -> dict:
    rows = await repository.pending_shops()
    return responses.success({"shops": rows, "count": len(rows)})


@router.post("/bulk-update")
async def bulk_update(
    payload: schemas.BulkShopRequest,
    current_admin: dict = Depends(auth_dependencies.require_permission("shops.bulk_operations")),
) -> dict:
    if payload.action == "delete" and not permissions.has_permission(str(current_admin["role"]), "shops.delete"):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    result = await service.bulk_update(payload, admin_id=int(current_admin["id"]))
    return responses.success(result, f"Bulk {payload.action} completed")


@router.post("", status_code=201)
async def create_shop(
    payload: schemas.ShopCreateRequest,
    current_admin: dict = Depends(auth_dependencies.require_permission("shops.create")),
) -> dict:
    shop = await service.create_by_admin(payload, admin_id=int(current_admin["id"]))
    return responses.success(shop, "Shop created successfully")


@router.get("/{shop_id}")
async def get_shop(
    shop_id: int,
    _: dict = Depends(auth_dependencies.require_permission("shops.view")),
) -> dict:
    return responses.success(await service.get_details(shop_id))


@router.put("/{shop_id}")
async def update_shop(
    shop_id: int,
    payload: schemas.ShopUpdateRequest,
    _: dict = Depends(auth_dependencies.require_permission("shops.update")),
) -> dict:
    shop = await service.update_shop(shop_id, payload)
    return responses.success(shop, "Shop updated successfully")


@router.put("/{shop_id}/approve")
async def approve_shop(
    shop_id: int,
    background_tasks: BackgroundTasks,
    payload: schemas.ApproveRequest | None = None,
    current_admin: dict = Depends(auth_dependencies.require_permission("shops.approve")),
) -> dict:
    shop = await service.approve(shop_id, payload or schemas.ApproveRequest(), admin_id=int(current_admin["id"]))
    background_tasks.add_task(service.notify_status_background, shop)
    return responses.success(shop, "Shop approved successfully")


@router.put("/{shop_id}/reject")
async def reject_shop(
    shop_id: int,
    payload: schemas.RejectRequest,
    background_tasks: BackgroundTasks,
    current_admin: dict = Depends(auth_dependencies.require_permission("shops.reject")),
) -> dict:
    shop = await service.reject(shop_id, payload, admin_id=int(current_admin["id"]))
    background_tasks.add_task(service.notify_status_background, shop)
    return responses.success(shop, "Shop rejected")


@router.put("/{shop_id}/block")
async def toggle_block_shop(
    shop_id: int,
    payload: schemas.BlockRequest | None = None,
    current_admin: dict = Depends(auth_dependencies.require_permission("shops.block")),
) -> dict:
    shop = await service.toggle_block(shop_id, payload or schemas.BlockRequest(), admin_id=int(current_admin["id"]))
    state = "blocked" if shop["status"] == "blocked" else "unblocked"
    return responses.success(shop, f"Shop {state} successfully")


@router.get("/{shop_id}/analytics")
async def shop_analytics(
    shop_id: int,
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    _: dict = Depends(auth_dependencies.require_permission("shops.analytics")),
) -> dict:
    return responses.success(await service.analytics(shop_id, start_date=start_date, end_date=end_date))


@router.get("/{shop_id}/transactions")
async def shop_transactions(
    shop_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(responses.DEFAULT_PAGE_SIZE, ge=1, le=responses.MAX_PAGE_SIZE),
    _: dict = Depends(auth_dependencies.require_permission("shops.view")),
) -> dict:
    return await service.transactions(shop_id, page=page, limit=limit)


@router.post("/{shop_id}/send-email")
async def send_shop_email(
    shop_id: int,
    payload: schemas.SendEmailRequest,
    _: dict = Depends(auth_dependencies.require_permission("shops.send_emails")),
) -> dict:
    return responses.success(await service.send_email(shop_id, payload), "Email processed")


@router.delete("/{shop_id}")
async def delete_shop(
    shop_id: int,
    current_admin: dict = Depends(auth_dependencies.require_roles(permissions.ROLE_SUPER_ADMIN)),
) -> dict:
    await service.delete_shop(shop_id, admin_id=int(current_admin["id"]))
    return responses.success(None, "Shop deleted successfully")
