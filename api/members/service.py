"""
Member self-service: signup, profile completion with card issuance, login,
profile and card management, discount history.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import HTTPException, UploadFile, status

from auth import repository as auth_repository
from auth import schemas as auth_schemas
from auth import security
from auth import service as auth_service
from cards import numbers
from cards import repository as cards_repository
from cards import service as cards_service
from core import notify, responses, settings, uploads
from core.text import (
    is_email,
    is_indian_phone,
    normalize_email,
    normalize_phone,
    referral_code,
)
from discounts import tiers
from otp import service as otp_service
from transactions import repository as transactions_repository
from users import repository as users_repository

from . import schemas

logger = logging.getLogger(__name__)

AVATAR_MAX_BYTES = 2 * 1024 * 1024
AVATAR_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}


def _parse_contact(value: str) -> tuple[str | None, str | None]:
    """Split an email-or-phone field into (email, phone)."""
    value = value.strip()
    if "@" in value:
        if not is_email(value):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Please provide a valid email address",
            )
        return normalize_email(value), None

    phone = normalize_phone(value)
    if not is_indian_phone(phone):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Please provide a valid 10-digit Indian mobile number",
        )
    return None, phone


async def _ensure_contact_free(*, email: str | None, phone: str | None, exclude_user_id: int | None = None) -> None:
    taken = await users_repository.find_contact_conflict(email=email, phone=phone, exclude_user_id=exclude_user_id)
    if taken is None and await auth_repository.admin_exists_with_contact(email=email, phone=phone):
        taken = "email" if email else "phone"
    if taken is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"An account with this {taken} already exists",
        )


async def signup(
    payload: schemas.SignupRequest,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> dict[str, Any]:
    email, phone = _parse_contact(payload.email_or_phone)
    auth_service.ensure_strong_password(payload.password)
    await _ensure_contact_free(email=email, phone=phone)

    user = await users_repository.create_user(
        {
            "email": email,
            "phone": phone,
            "password_hash": security.hash_password(payload.password),
            "registration_step": 1,
            "is_profile_complete": False,
        }
    )
    tokens = await auth_service.issue_token_pair(
        account_type=security.ACCOUNT_MEMBER,
        account_row=user,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    logger.info("member_signup user_id=%s via=%s", user["id"], "email" if email else "phone")
    return {
        "user_id": user["id"],
        "email": user.get("email"),
        "phone": user.get("phone"),
        "next_step": 2,
        "tokens": tokens.model_dump(),
    }


async def create_profile(payload: schemas.CreateProfileRequest) -> dict[str, Any]:
    """
    Second signup step. Fills the profile and issues the discount card in one
    DB transaction so a complete profile always has a card.
    """
    user = await users_repository.get_user_by_id(payload.user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if bool(user.get("is_profile_complete")):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Profile already complete")

    if not is_email(payload.email):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Please provide a valid email address",
        )
    email = normalize_email(payload.email)
    phone = normalize_phone(payload.phone)
    conflict = await users_repository.find_contact_conflict(email=email, phone=phone, exclude_user_id=payload.user_id)
    if conflict is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"An account with this {conflict} already exists",
        )

    fields = {
        "full_name": payload.full_name.strip(),
        "email": email,
        "phone": phone,
        "location": payload.location.strip(),
        "is_profile_complete": True,
        "registration_step": 2,
        "referral_code": user.get("referral_code") or referral_code(payload.full_name),
    }

    async def issue(conn) -> dict:
        return await cards_service.issue_card(
            user_id=payload.user_id,
            tier=str(user["current_tier"]),
            conn=conn,
        )

    updated, card = await users_repository.complete_profile(payload.user_id, fields, issue_card=issue)
    logger.info("member_profile_completed user_id=%s card_id=%s", payload.user_id, card["id"])
    return {"user": users_repository.public_user(updated), "card": cards_service.with_status(card)}


async def login(
    payload: schemas.MemberLoginRequest,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> dict[str, Any]:
    value = payload.email_or_phone.strip()
    if "@" in value:
        user = await users_repository.get_user_by_email(value)
    else:
        user = await users_repository.get_user_by_phone(normalize_phone(value))

    if user is None or not security.verify_password(payload.password, str(user.get("password_hash") or "")):
        logger.warning("member_login_failed ip=%s", ip_address)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not bool(user.get("is_active")):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")

    tokens = await auth_service.issue_token_pair(
        account_type=security.ACCOUNT_MEMBER,
        account_row=user,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    logger.info("member_login user_id=%s", user["id"])
    return {"user": users_repository.public_user(user), "tokens": tokens.model_dump()}


async def refresh(
    payload: auth_schemas.RefreshRequest,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> auth_schemas.TokenPairResponse:
    return await auth_service.rotate_refresh_token(
        payload.refresh_token,
        account_type=security.ACCOUNT_MEMBER,
        load_account=users_repository.get_user_by_id,
        user_agent=user_agent,
        ip_address=ip_address,
    )


async def get_profile(user: dict[str, Any]) -> dict[str, Any]:
    card = await cards_repository.get_card_by_user(int(user["id"]))
    return {
        **users_repository.public_user(user),
        "card": cards_service.with_status(card),
        "next_tier": tiers.next_tier_info(str(user["current_tier"]), user["total_spent"]),
    }


async def update_profile(user: dict[str, Any], payload: schemas.UpdateMemberProfileRequest) -> dict[str, Any]:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    user_id = int(user["id"])
    if changes.get("phone"):
        changes["phone"] = normalize_phone(changes["phone"])
        await _ensure_contact_free(email=None, phone=changes["phone"], exclude_user_id=user_id)

    updated = await users_repository.update_user(user_id, changes)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    logger.info("member_profile_updated user_id=%s fields=%s", user_id, sorted(changes))
    return users_repository.public_user(updated)


async def profile_status(user: dict[str, Any]) -> dict[str, Any]:
    card = await cards_repository.get_card_by_user(int(user["id"]))
    complete = bool(user.get("is_profile_complete"))
    return {
        "is_profile_complete": complete,
        "registration_step": user.get("registration_step"),
        "is_email_verified": bool(user.get("is_email_verified")),
        "is_phone_verified": bool(user.get("is_phone_verified")),
        "has_card": card is not None,
        "card_status": numbers.card_status(card)["status"],
        "next_action": "profile_complete" if complete else "complete_profile_and_get_card",
    }


async def change_password(user: dict[str, Any], payload: auth_schemas.ChangePasswordRequest) -> None:
    if not security.verify_password(payload.current_password, str(user.get("password_hash") or "")):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    if payload.current_password == payload.new_password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="New password must be different from the current password",
        )
    auth_service.ensure_strong_password(payload.new_password)

    user_id = int(user["id"])
    await users_repository.update_user(user_id, {"password_hash": security.hash_password(payload.new_password)})
    await auth_repository.revoke_all_refresh_tokens(account_type=security.ACCOUNT_MEMBER, account_id=user_id)
    logger.info("member_password_changed user_id=%s", user_id)


async def forgot_password(
    payload: schemas.ForgotPasswordRequest,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> dict[str, Any]:
    session = await otp_service.request_password_reset(
        payload.email_or_phone,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    return {"session_id": session["session_id"] if session else None}


async def reset_password(payload: schemas.ResetPasswordRequest) -> None:
    auth_service.ensure_strong_password(payload.new_password)
    result = await otp_service.verify(
        payload.session_id,
        payload.otp,
        purpose="password_reset",
        apply_action=False,
    )
    user_id = result.get("user_id")
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OTP session")

    await users_repository.update_user(int(user_id), {"password_hash": security.hash_password(payload.new_password)})
    await auth_repository.revoke_all_refresh_tokens(account_type=security.ACCOUNT_MEMBER, account_id=int(user_id))
    logger.info("member_password_reset user_id=%s", user_id)


async def upload_avatar(user: dict[str, Any], file: UploadFile) -> dict[str, Any]:
    path = await uploads.save_image(
        file,
        subdir="avatars",
        max_bytes=AVATAR_MAX_BYTES,
        allowed=AVATAR_EXTENSIONS,
    )
    updated = await users_repository.update_user(int(user["id"]), {"avatar": path})
    return {"avatar": path, "user": users_repository.public_user(updated)}


async def get_card(user: dict[str, Any]) -> dict[str, Any]:
    user_id = int(user["id"])
    card = await cards_repository.get_card_by_user(user_id)
    activity = await otp_service.recent_activity_count(user_id)
    if card is None:
        return {**numbers.card_status(None), "card": None, "recent_otp_activity": activity}
    return {
        "card": cards_service.with_status(card),
        **numbers.card_status(card),
        "tier": user["current_tier"],
        "recent_otp_activity": activity,
    }


async def discount_status(user: dict[str, Any]) -> dict[str, Any]:
    tier = str(user["current_tier"])
    card = await cards_repository.get_card_by_user(int(user["id"]))
    requirement = tiers.REQUIREMENTS.get(tier, tiers.REQUIREMENTS[tiers.BRONZE])
    return {
        "tier": tier,
        "total_spent": user["total_spent"],
        "max_discount": requirement.max_discount,
        "benefits": requirement.benefits,
        "next_tier": tiers.next_tier_info(tier, user["total_spent"]),
        "tiers": tiers.requirements_table(),
        "card": {
            "card_number": card["card_number"] if card else None,
            **numbers.card_status(card),
        },
    }


async def discount_history(
    user: dict[str, Any],
    *,
    page: int,
    limit: int,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> dict:
    filters = {"user_id": int(user["id"]), "start_date": start_date, "end_date": end_date}
    rows, total = await transactions_repository.list_transactions(
        limit=limit,
        offset=responses.page_offset(page, limit),
        **filters,
    )
    summary = await transactions_repository.summarize(**filters)
    body = responses.paginated(rows, page=page, limit=limit, total=total, message="Discount history retrieved")
    body["data"] = responses.encode({"transactions": rows, "summary": summary})
    return body


async def subscribe_newsletter(payload: schemas.NewsletterRequest) -> dict[str, Any]:
    if not is_email(payload.email):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Please provide a valid email address",
        )
    email = normalize_email(payload.email)
    user = await users_repository.get_user_by_email(email)
    if user is not None:
        await users_repository.update_user(int(user["id"]), {"newsletter_subscribed": True})
    return {"email": email, "subscribed": True, "is_existing_user": user is not None}


async def send_newsletter_welcome(email: str) -> None:
    try:
        await notify.send_email(
            to=email,
            subject=f"Welcome to the {settings.app_name()} newsletter",
            html=(
                "<h2>Thanks for subscribing!</h2>"
                "<p>You will now receive the latest offers, partner shops and "
                "membership news straight to your inbox.</p>"
            ),
        )
    except Exception:
        logger.exception("newsletter_welcome_failed")
