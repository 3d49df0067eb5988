"""
Admin user-management business logic.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import HTTPException, status

from auth import repository as auth_repository
from auth import security
from auth.service import ensure_strong_password
from cards import repository as cards_repository
from cards import service as cards_service
from core import notify, responses
from core.text import is_email, referral_code, to_csv
from discounts import tiers
from transactions import repository as transactions_repository

from . import repository, schemas

logger = logging.getLogger(__name__)

EXPORT_HEADERS = [
    "id",
    "full_name",
    "email",
    "phone",
    "city",
    "current_tier",
    "total_spent",
    "is_active",
    "card_number",
    "card_expires_at",
    "created_at",
]

ANALYTICS_PERIODS = {
    "1month": 30,
    "3months": 90,
    "6months": 180,
    "1year": 365,
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def get_user_or_404(user_id: int) -> dict[str, Any]:
    user = await repository.get_user_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def ensure_contacts_free(
    *,
    email: str | None,
    phone: str | None,
    exclude_user_id: int | None = None,
) -> None:
    if email is not None and not is_email(email):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Please provide a valid email address",
        )
    taken = await repository.find_contact_conflict(email=email, phone=phone, exclude_user_id=exclude_user_id)
    if taken is None and exclude_user_id is None:
        if await auth_repository.admin_exists_with_contact(email=email, phone=phone):
            taken = "email" if email else "phone"
    if taken is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A user with this {taken} already exists",
        )


async def list_users(
    *,
    page: int,
    limit: int,
    search: str | None,
    tier: str | None,
    status_filter: str | None,
    sort_by: str,
    sort_order: str,
) -> dict:
    is_active = {"active": True, "inactive": False}.get(status_filter or "")
    rows, total = await repository.list_users(
        limit=limit,
        offset=responses.page_offset(page, limit),
        sort_by=sort_by,
        sort_order=sort_order,
        search=search,
        tier=tier,
        is_active=is_active,
    )
    return responses.paginated(rows, page=page, limit=limit, total=total, message="Users retrieved")


async def stats() -> dict:
    return await repository.stats()


async def export(*, fmt: str, tier: str | None = None, status_filter: str | None = None) -> tuple[str, Any]:
    is_active = {"active": True, "inactive": False}.get(status_filter or "")
    rows = await repository.export_users(tier=tier, is_active=is_active)
    if fmt == "csv":
        return "csv", to_csv(rows, EXPORT_HEADERS)
    return "json", rows


async def get_details(user_id: int) -> dict:
    user = await get_user_or_404(user_id)
    card = await cards_repository.get_card_by_user(user_id)
    recent, _ = await transactions_repository.list_transactions(limit=5, offset=0, user_id=user_id)
    return {
        **repository.public_user(user),
        "card": cards_service.with_status(card),
        "recent_transactions": recent,
        "next_tier": tiers.next_tier_info(str(user["current_tier"]), user["total_spent"]),
    }


async def create_user(payload: schemas.AdminCreateUserRequest, *, admin_id: int) -> dict:
    await ensure_contacts_free(email=payload.email, phone=payload.phone)
    ensure_strong_password(payload.password)

    fields = payload.model_dump(exclude={"password", "card_expires_at"})
    fields.update(
        {
            "password_hash": security.hash_password(payload.password),
            "is_profile_complete": True,
            "registration_step": 2,
            "referral_code": referral_code(payload.full_name),
        }
    )

    async def issue(conn, user: dict) -> dict:
        return await cards_service.issue_card(
            user_id=int(user["id"]),
            tier=str(user["current_tier"]),
            expires_at=payload.card_expires_at,
            conn=conn,
        )

    user, card = await repository.create_user_with_card(fields, issue_card=issue)
    logger.info("user_created_by_admin user_id=%s admin_id=%s", user["id"], admin_id)
    return {**repository.public_user(user), "card": cards_service.with_status(card)}


async def update_user(user_id: int, payload: schemas.AdminUpdateUserRequest, *, admin_id: int) -> dict:
    existing = await get_user_or_404(user_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("email") or changes.get("phone"):
        await ensure_contacts_free(
            email=changes.get("email"),
            phone=changes.get("phone"),
            exclude_user_id=user_id,
        )
    if changes.get("total_spent") is not None and "current_tier" not in changes:
        changes["current_tier"] = tiers.tier_for_spend(changes["total_spent"])

    user = await repository.update_user(user_id, changes)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user["current_tier"] != existing["current_tier"]:
        await cards_repository.set_tier(user_id, str(user["current_tier"]))
    if changes.get("is_active") is False:
        await auth_repository.revoke_all_refresh_tokens(account_type=security.ACCOUNT_MEMBER, account_id=user_id)

    logger.info("user_updated user_id=%s admin_id=%s fields=%s", user_id, admin_id, sorted(changes))
    return repository.public_user(user)


async def reset_password(user_id: int, payload: schemas.AdminResetPasswordRequest, *, admin_id: int) -> None:
    await get_user_or_404(user_id)
    ensure_strong_password(payload.new_password)
    await repository.update_user(user_id, {"password_hash": security.hash_password(payload.new_password)})
    await auth_repository.revoke_all_refresh_tokens(account_type=security.ACCOUNT_MEMBER, account_id=user_id)
    logger.info("user_password_reset user_id=%s admin_id=%s", user_id, admin_id)


async def update_card(user_id: int, payload: schemas.UpdateCardRequest) -> dict:
    await get_user_or_404(user_id)
    return await cards_service.admin_update(user_id, expires_at=payload.expires_at, is_active=payload.is_active)


async def generate_card(user_id: int, payload: schemas.GenerateCardRequest, *, admin_id: int) -> dict:
    user = await get_user_or_404(user_id)
    card = await cards_service.issue_card(
        user_id=user_id,
        tier=str(user["current_tier"]),
        expires_at=payload.expires_at,
    )
    logger.info("card_generated_by_admin user_id=%s admin_id=%s", user_id, admin_id)
    return cards_service.with_status(card)


async def send_email(user_id: int, payload: schemas.SendEmailRequest) -> dict:
    user = await get_user_or_404(user_id)
    if not user.get("email"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User has no email address")
    html = f"<p>Dear {user.get('full_name') or 'member'},</p><p>{payload.message}</p>"
    try:
        sent = await notify.send_email(to=str(user["email"]), subject=payload.subject, html=html, text=payload.message)
    except notify.NotificationError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return {"email": user["email"], "sent": sent}


async def delete_user(user_id: int, *, admin_id: int) -> None:
    if not await repository.delete_user(user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    await auth_repository.revoke_all_refresh_tokens(account_type=security.ACCOUNT_MEMBER, account_id=user_id)
    logger.info("user_deleted user_id=%s admin_id=%s", user_id, admin_id)


async def bulk_update(payload: schemas.BulkUserRequest, *, admin_id: int) -> dict:
    user_ids = sorted(set(payload.user_ids))
    found = await repository.existing_ids(user_ids)
    if not found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No users found")

    if payload.action == "update_tier":
        tier = (payload.data or {}).get("tier")
        if tier not in tiers.TIERS:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"data.tier must be one of {list(tiers.TIERS)}",
            )
        affected = await repository.bulk_set_tier(found, tier)
    elif payload.action == "delete":
        affected = await repository.bulk_delete(found)
    else:
        affected = await repository.bulk_set_active(found, payload.action == "activate")

    logger.info("user_bulk_%s admin_id=%s affected=%s", payload.action, admin_id, affected)
    return {
        "action": payload.action,
        "affected": affected,
        "missing_ids": [i for i in user_ids if i not in set(found)],
    }


async def discount_analytics(user_id: int, *, period: str) -> dict:
    user = await get_user_or_404(user_id)
    since = _utc_now() - timedelta(days=ANALYTICS_PERIODS.get(period, 180))
    overall = await transactions_repository.summarize(user_id=user_id, start_date=since)
    monthly = await repository.monthly_discount_usage(user_id, since=since)
    categories = await repository.category_discount_usage(user_id, since=since)
    return {
        "user": {"id": user["id"], "full_name": user["full_name"], "tier": user["current_tier"]},
        "period": period,
        "since": since,
        "overall": overall,
        "monthly": monthly,
        "categories": categories,
    }
