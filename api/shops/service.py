"""
Shop business logic: registration, approval workflow, admin management and
public search.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException, status

from core import notify, responses, settings
from core.text import is_email, is_gst_number, to_csv
from transactions import repository as transactions_repository

from . import repository, schemas, search, workflow

logger = logging.getLogger(__name__)

EXPORT_HEADERS = [
    "id",
    "name",
    "owner_name",
    "email",
    "phone",
    "location",
    "category",
    "status",
    "discount_offered",
    "total_revenue",
    "total_transactions",
    "created_at",
]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _validate_fields(fields: dict[str, Any]) -> None:
    if "email" in fields and fields["email"] is not None and not is_email(fields["email"]):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Please provide a valid email address",
        )
    gst = fields.get("gst_number")
    if gst and not is_gst_number(gst):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid GST number format",
        )
    if gst:
        fields["gst_number"] = gst.strip().upper()


async def _ensure_email_free(email: str, *, exclude_shop_id: int | None = None) -> None:
    existing = await repository.get_shop_by_email(email)
    if existing is not None and int(existing["id"]) != exclude_shop_id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A shop with this email already exists",
        )


async def get_shop(shop_id: int) -> dict:
    shop = await repository.get_shop(shop_id)
    if shop is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shop not found")
    return shop


async def register(payload: schemas.ShopRegisterRequest) -> dict:
    if not payload.confirm_details:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please confirm that the provided details are correct",
        )
    fields = payload.model_dump(exclude={"confirm_details"})
    _validate_fields(fields)
    await _ensure_email_free(fields["email"])

    fields.update({"status": workflow.PENDING, "is_active": False})
    shop = await repository.create_shop(fields)
    logger.info("shop_registered shop_id=%s email=%s", shop["id"], shop["email"])
    return shop


async def create_by_admin(payload: schemas.ShopCreateRequest, *, admin_id: int) -> dict:
    fields = payload.model_dump()
    _validate_fields(fields)
    await _ensure_email_free(fields["email"])

    fields.update(
        {
            "status": workflow.APPROVED,
            "is_active": True,
            "approved_by": admin_id,
            "approved_at": _utc_now(),
        }
    )
    shop = await repository.create_shop(fields)
    logger.info("shop_created shop_id=%s admin_id=%s", shop["id"], admin_id)
    return shop


async def update_shop(shop_id: int, payload: schemas.ShopUpdateRequest) -> dict:
    await get_shop(shop_id)
    fields = payload.model_dump(exclude_unset=True)
    _validate_fields(fields)
    if fields.get("email"):
        await _ensure_email_free(fields["email"], exclude_shop_id=shop_id)

    shop = await repository.update_shop(shop_id, fields)
    if shop is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shop not found")
    return shop


async def _transition(shop_id: int, action: str, *, admin_id: int, reason: str | None = None, notes: str | None = None) -> dict:
    shop = await get_shop(shop_id)
    try:
        new_status = workflow.TRANSITIONS[action](str(shop["status"]))
    except workflow.ShopTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    updated = await repository.set_status(shop_id, status=new_status, admin_id=admin_id, reason=reason, notes=notes)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shop not found")
    logger.info("shop_%s shop_id=%s admin_id=%s", action, shop_id, admin_id)
    return updated


async def approve(shop_id: int, payload: schemas.ApproveRequest, *, admin_id: int) -> dict:
    return await _transition(shop_id, "approve", admin_id=admin_id, notes=payload.notes)


async def reject(shop_id: int, payload: schemas.RejectRequest, *, admin_id: int) -> dict:
    return await _transition(shop_id, "reject", admin_id=admin_id, reason=payload.reason)


async def toggle_block(shop_id: int, payload: schemas.BlockRequest, *, admin_id: int) -> dict:
    shop = await get_shop(shop_id)
    action = "unblock" if shop["status"] == workflow.BLOCKED else "block"
    return await _transition(shop_id, action, admin_id=admin_id, reason=payload.reason)


def status_email(shop: dict) -> tuple[str, str]:
    app = settings.app_name()
    name = shop["owner_name"]
    if shop["status"] == workflow.APPROVED:
        return (
            f"{app} - Your shop has been approved",
            f"<p>Dear {name},</p><p>Your shop <b>{shop['name']}</b> is now live on {app}. "
            f"Card holders can find you in the shop search.</p>",
        )
    if shop["status"] == workflow.REJECTED:
        return (
            f"{app} - Shop registration update",
            f"<p>Dear {name},</p><p>We could not approve <b>{shop['name']}</b>.</p>"
            f"<p>Reason: {shop.get('rejection_reason') or 'not specified'}</p>",
        )
    return (
        f"{app} - Shop status changed",
        f"<p>Dear {name},</p><p>The status of <b>{shop['name']}</b> is now {shop['status']}.</p>",
    )


async def notify_status_background(shop: dict) -> None:
    """
    Best-effort status email, run after the response is sent.
    """
    subject, html = status_email(shop)
    try:
        await notify.send_email(to=str(shop["email"]), subject=subject, html=html)
    except Exception:
        logger.exception("shop_status_email_failed shop_id=%s", shop.get("id"))


async def send_email(shop_id: int, payload: schemas.SendEmailRequest) -> dict:
    shop = await get_shop(shop_id)
    html = f"<p>Dear {shop['owner_name']},</p><p>{payload.message}</p>"
    try:
        sent = await notify.send_email(to=str(shop["email"]), subject=payload.subject, html=html, text=payload.message)
    except notify.NotificationError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return {"email": shop["email"], "sent": sent}


async def delete_shop(shop_id: int, *, admin_id: int) -> None:
    if not await repository.delete_shop(shop_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shop not found")
    logger.info("shop_deleted shop_id=%s admin_id=%s", shop_id, admin_id)


async def bulk_update(payload: schemas.BulkShopRequest, *, admin_id: int) -> dict:
    shop_ids = sorted(set(payload.shop_ids))
    shops = await repository.get_shops_by_ids(shop_ids)
    found = {int(s["id"]) for s in shops}
    missing = [i for i in shop_ids if i not in found]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": "Some shops were not found", "errors": {"missing_ids": missing}},
        )

    if payload.action == "delete":
        affected = await repository.bulk_delete(shop_ids)
        return {"action": "delete", "affected": affected, "skipped": []}

    transition = workflow.TRANSITIONS[payload.action]
    eligible: list[int] = []
    skipped: list[dict[str, Any]] = []
    new_status = None
    for shop in shops:
        try:
            new_status = transition(str(shop["status"]))
            eligible.append(int(shop["id"]))
        except workflow.ShopTransitionError as exc:
            skipped.append({"id": int(shop["id"]), "reason": str(exc)})

    updated = []
    if eligible and new_status is not None:
        updated = await repository.bulk_set_status(eligible, status=new_status, admin_id=admin_id, reason=payload.reason)
    logger.info("shop_bulk_%s admin_id=%s updated=%s skipped=%s", payload.action, admin_id, len(updated), len(skipped))
    return {"action": payload.action, "affected": len(updated), "skipped": skipped}


async def list_shops(
    *,
    page: int,
    limit: int,
    search: str | None,
    status_filter: str | None,
    category: str | None,
    city: str | None,
    sort_by: str,
    sort_order: str,
) -> dict:
    rows, total = await repository.list_shops(
        limit=limit,
        offset=responses.page_offset(page, limit),
        sort_by=sort_by,
        sort_order=sort_order,
        search=search,
        status=status_filter,
        category=category,
        city=city,
    )
    return responses.paginated(rows, page=page, limit=limit, total=total, message="Shops retrieved")


async def stats() -> dict:
    data = await repository.stats()
    total = int(data.get("total") or 0)
    approved = int(data.get("approved") or 0)
    data["approval_rate"] = round(approved / total * 100, 2) if total else 0.0
    return data


async def export(*, fmt: str, status_filter: str | None = None, category: str | None = None) -> tuple[str, Any]:
    rows = await repository.export_shops(status=status_filter, category=category)
    if fmt == "csv":
        return "csv", to_csv(rows, EXPORT_HEADERS)
    return "json", rows


async def get_details(shop_id: int) -> dict:
    shop = await get_shop(shop_id)
    recent, _ = await transactions_repository.list_transactions(limit=10, offset=0, shop_id=shop_id)
    return {**shop, "recent_transactions": recent}


async def analytics(shop_id: int, *, start_date: datetime | None, end_date: datetime | None) -> dict:
    shop = await get_shop(shop_id)
    data = await repository.shop_analytics(shop_id, start_date=start_date, end_date=end_date)
    return {
        "shop": {"id": shop["id"], "name": shop["name"], "status": shop["status"]},
        "period": {"start_date": start_date, "end_date": end_date},
        **data,
    }


async def transactions(shop_id: int, *, page: int, limit: int) -> dict:
    await get_shop(shop_id)
    rows, total = await transactions_repository.list_transactions(
        limit=limit,
        offset=responses.page_offset(page, limit),
        shop_id=shop_id,
    )
    return responses.paginated(rows, page=page, limit=limit, total=total, message="Shop transactions retrieved")


async def public_search(
    *,
    search_text: str | None,
    category: str | None,
    location: str | None,
    latitude: float | None,
    longitude: float | None,
    max_distance_km: float | None,
    sort_by: str,
    page: int,
    limit: int,
) -> dict:
    rows = await repository.search_public(
        search=search_text,
        category=category,
        location_terms=search.location_terms(location),
    )
    decorated = search.decorate(
        rows,
        now=datetime.now(),
        latitude=latitude,
        longitude=longitude,
        max_distance_km=max_distance_km,
    )
    if sort_by == "distance" and (latitude is None or longitude is None):
        sort_by = "name"
    ordered = search.sort_results(decorated, sort_by)

    offset = responses.page_offset(page, limit)
    return responses.paginated(
        ordered[offset : offset + limit],
        page=page,
        limit=limit,
        total=len(ordered),
        message="Shops retrieved",
    )
