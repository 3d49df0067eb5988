"""
Admin OTP session monitoring endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query

from auth import dependencies as auth_dependencies
from core import responses

from . import schemas, service

router = APIRouter(prefix="/api/admin/otp-sessions")


@router.get("")
async def list_sessions(
    page: int = Query(1, ge=1),
    limit: int = Query(responses.DEFAULT_PAGE_SIZE, ge=1, le=responses.MAX_PAGE_SIZE),
    search: str | None = Query(default=None, max_length=100),
    otp_type: schemas.Channel | None = Query(default=None),
    purpose: schemas.Purpose | None = Query(default=None),
    is_verified: bool | None = Query(default=None),
    user_id: int | None = Query(default=None),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    sort_by: Literal["created_at", "expires_at", "verified_at"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    _: dict = Depends(auth_dependencies.require_permission("otp.view")),
) -> dict:
    return await service.admin_list(
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        search=search,
        otp_type=otp_type,
        purpose=purpose,
        is_verified=is_verified,
        user_id=user_id,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/stats")
async def session_stats(_: dict = Depends(auth_dependencies.require_permission("otp.view"))) -> dict:
    return responses.success(await service.admin_stats())


@router.get("/analytics")
async def session_analytics(
    period: Literal["24h", "7d", "30d"] = Query("7d"),
    _: dict = Depends(auth_dependencies.require_permission("otp.view")),
) -> dict:
    return responses.success(await service.admin_analytics(period))


@router.delete("/cleanup")
async def cleanup_sessions(
    current_admin: dict = Depends(auth_dependencies.require_permission("otp.manage")),
) -> dict:
    result = await service.admin_cleanup(admin_id=int(current_admin["id"]))
    return responses.success(result, f"Deleted {result['deleted']} expired OTP sessions")


@router.get("/user/{user_id}")
async def user_sessions(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(responses.DEFAULT_PAGE_SIZE, ge=1, le=responses.MAX_PAGE_SIZE),
    _: dict = Depends(auth_dependencies.require_permission("otp.view")),
) -> dict:
    return await service.admin_user_sessions(user_id, page=page, limit=limit)


@router.get("/{session_pk}")
async def get_session(
    session_pk: int,
    _: dict = Depends(auth_dependencies.require_permission("otp.view")),
) -> dict:
    return responses.success(await service.admin_get(session_pk))


@router.put("/{session_pk}/expire")
async def expire_session(
    session_pk: int,
    current_admin: dict = Depends(auth_dependencies.require_permission("otp.manage")),
) -> dict:
    session = await service.admin_expire(session_pk, admin_id=int(current_admin["id"]))
    return responses.success(session, "OTP session expired")
