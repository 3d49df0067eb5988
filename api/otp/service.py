"""
OTP issuing, delivery and verification.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from fastapi import HTTPException, status

from cards import repository as cards_repository
from core import notify, responses
from core.text import is_email, mask_email, mask_phone, normalize_email, normalize_phone
from users import repository as users_repository

from . import policy, repository, schemas

logger = logging.getLogger(__name__)

ANALYTICS_PERIODS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def public_session(session: dict[str, Any]) -> dict[str, Any]:
    contact = str(session["contact_info"])
    masked = mask_email(contact) if session["otp_type"] == policy.TYPE_EMAIL else mask_phone(contact)
    return {
        "session_id": session["session_id"],
        "otp_type": session["otp_type"],
        "purpose": session["purpose"],
        "contact": masked,
        "expires_at": session["expires_at"],
        "resends_left": max(int(session["max_resends"]) - int(session["resend_count"]), 0),
    }


async def _deliver(*, otp_type: str, contact: str, code: str, purpose: str, name: str | None) -> bool:
    try:
        if otp_type == policy.TYPE_EMAIL:
            subject, html = policy.email_content(code, purpose, name)
            return await notify.send_email(to=contact, subject=subject, html=html)
        return await notify.send_sms(phone=contact, message=policy.sms_content(code))
    except notify.NotificationError as exc:
        logger.warning("otp_delivery_failed otp_type=%s error=%s", otp_type, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to send OTP. Please try again.",
        ) from exc


async def issue(
    *,
    user: dict[str, Any],
    otp_type: str,
    contact: str,
    purpose: str,
    name: str | None = None,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> dict[str, Any]:
    """
    Create a session for `user` and send the code to `contact`.

    Enforces a one minute cooldown and a daily cap per user and contact.
    """
    user_id = int(user["id"])
    now = _utc_now()

    recent = await repository.count_requests_since(
        user_id=user_id,
        contact_info=contact,
        since=now - policy.REQUEST_COOLDOWN,
    )
    if recent > 0:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Please wait before requesting another OTP",
        )

    today = await repository.count_requests_since(
        user_id=user_id,
        contact_info=contact,
        since=_start_of_day(now),
    )
    if today >= policy.DAILY_LIMIT:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Daily OTP limit exceeded. Please try again tomorrow.",
        )

    code = policy.generate_code()
    session = await repository.create_session(
        user_id=user_id,
        session_id=uuid.uuid4(),
        otp_code=code,
        otp_type=otp_type,
        contact_info=contact,
        purpose=purpose,
        expires_at=policy.expiry_from(now),
        ip_address=ip_address,
        user_agent=user_agent,
    )
    try:
        delivered = await _deliver(
            otp_type=otp_type,
            contact=contact,
            code=code,
            purpose=purpose,
            name=name or user.get("full_name"),
        )
    except HTTPException:
        # An undelivered code must not count against the cooldown or daily cap.
        await repository.delete_session(int(session["id"]))
        raise
    logger.info(
        "otp_issued user_id=%s otp_type=%s purpose=%s delivered=%s",
        user_id,
        otp_type,
        purpose,
        delivered,
    )
    return public_session(session)


async def _user_for_contact(*, email: str | None, phone: str | None) -> dict[str, Any] | None:
    if email:
        return await users_repository.get_user_by_email(email)
    if phone:
        return await users_repository.get_user_by_phone(normalize_phone(phone))
    return None


async def request_otp(
    payload: schemas.SendOTPRequest,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> dict[str, Any]:
    if not payload.email and not payload.phone:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email or phone is required")

    user = await _user_for_contact(email=payload.email, phone=payload.phone)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if payload.channel == policy.TYPE_EMAIL:
        contact = normalize_email(payload.email) if payload.email else user.get("email")
        if not contact:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User has no email address")
    else:
        contact = normalize_phone(payload.phone) if payload.phone else user.get("phone")
        if not contact:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User has no phone number")

    return await issue(
        user=user,
        otp_type=payload.channel,
        contact=str(contact),
        purpose=payload.purpose,
        name=payload.full_name,
        user_agent=user_agent,
        ip_address=ip_address,
    )


async def request_password_reset(
    email_or_phone: str,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> dict[str, Any] | None:
    """
    Start a password reset. Returns None for unknown or inactive accounts so
    callers can answer without revealing which accounts exist.
    """
    value = email_or_phone.strip()
    if "@" in value:
        user = await users_repository.get_user_by_email(value)
        otp_type, contact = policy.TYPE_EMAIL, normalize_email(value)
    else:
        user = await users_repository.get_user_by_phone(normalize_phone(value))
        otp_type, contact = policy.TYPE_SMS, normalize_phone(value)

    if user is None or not bool(user.get("is_active")):
        logger.info("member_password_reset_unknown_account")
        return None
    return await issue(
        user=user,
        otp_type=otp_type,
        contact=contact,
        purpose="password_reset",
        user_agent=user_agent,
        ip_address=ip_address,
    )


async def _apply_purpose(session: dict[str, Any]) -> None:
    user_id = session.get("user_id")
    if user_id is None:
        return
    purpose = session["purpose"]
    if purpose == "card_activation":
        await cards_repository.update_card(int(user_id), is_active=True)
    elif purpose == "email_verification":
        await users_repository.update_user(int(user_id), {"is_email_verified": True})
    elif purpose == "phone_verification":
        await users_repository.update_user(int(user_id), {"is_phone_verified": True})
    elif purpose == "account_verification":
        field = "is_email_verified" if is_email(str(session["contact_info"])) else "is_phone_verified"
        await users_repository.update_user(int(user_id), {field: True})
    logger.info("otp_purpose_applied user_id=%s purpose=%s", user_id, purpose)


async def verify(
    session_id: UUID,
    code: str,
    *,
    purpose: str | None = None,
    apply_action: bool = True,
) -> dict[str, Any]:
    now = _utc_now()
    session = await repository.get_by_session_id(session_id)
    if session is not None and purpose is not None and session["purpose"] != purpose:
        session = None

    try:
        policy.check_session(session, now)
        # The attempt is counted before the code is compared.
        claimed = await repository.claim_attempt(int(session["id"]), now=now)
        if claimed is None:
            raise policy.OTPError(policy.claim_rejection(session, now))
        policy.check_code(claimed, code)
    except policy.OTPError as exc:
        logger.info("otp_verification_failed session_id=%s reason=%s", session_id, exc.message)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc

    verified = await repository.mark_verified(int(session["id"]), now=now)
    if verified is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=policy.MSG_NOT_FOUND)

    if apply_action:
        await _apply_purpose(verified)
    logger.info("otp_verified user_id=%s purpose=%s", verified.get("user_id"), verified["purpose"])
    return {
        "session_id": verified["session_id"],
        "user_id": verified.get("user_id"),
        "purpose": verified["purpose"],
        "verified_at": verified["verified_at"],
    }


async def resend(session_id: UUID) -> dict[str, Any]:
    session = await repository.get_by_session_id(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OTP session")
    if bool(session["is_verified"]):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="OTP already verified")

    now = _utc_now()
    if not policy.can_resend(session, now):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot resend OTP at this time. Please wait or maximum resend limit reached.",
        )

    code = policy.generate_code()
    updated = await repository.apply_resend(int(session["id"]), policy.apply_resend(session, code, now))
    if updated is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="OTP already verified")

    user = await users_repository.get_user_by_id(int(session["user_id"])) if session.get("user_id") else None
    await _deliver(
        otp_type=str(session["otp_type"]),
        contact=str(session["contact_info"]),
        code=code,
        purpose=str(session["purpose"]),
        name=user.get("full_name") if user else None,
    )
    logger.info("otp_resent session_id=%s resend_count=%s", session_id, updated["resend_count"])
    return {**public_session(updated), "time_remaining": policy.time_remaining(updated, now)}


async def history(user_id: int, *, page: int, limit: int, purpose: str | None = None) -> dict:
    rows, total = await repository.list_for_user(
        user_id,
        limit=limit,
        offset=responses.page_offset(page, limit),
        purpose=purpose,
    )
    return responses.paginated(rows, page=page, limit=limit, total=total, message="OTP history retrieved")


async def recent_activity_count(user_id: int, *, days: int = 30) -> int:
    return await repository.count_user_sessions_since(user_id, since=_utc_now() - timedelta(days=days))


async def admin_list(
    *,
    page: int,
    limit: int,
    sort_by: str,
    sort_order: str,
    **filters: Any,
) -> dict:
    rows, total = await repository.list_sessions(
        limit=limit,
        offset=responses.page_offset(page, limit),
        sort_by=sort_by,
        sort_order=sort_order,
        **filters,
    )
    return responses.paginated(rows, page=page, limit=limit, total=total, message="OTP sessions retrieved")


async def admin_stats() -> dict:
    data = await repository.stats()
    total = int(data.get("total") or 0)
    verified = int(data.get("verified") or 0)
    data["verification_rate"] = round(verified / total * 100, 2) if total else 0.0
    return data


async def admin_analytics(period: str) -> dict:
    window = ANALYTICS_PERIODS.get(period, ANALYTICS_PERIODS["7d"])
    since = _utc_now() - window
    return {"period": period, "since": since, "daily": await repository.daily_counts(since=since)}


async def admin_get(session_pk: int) -> dict:
    session = await repository.get_session(session_pk)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="OTP session not found")
    return {**session, "time_remaining": policy.time_remaining(session, _utc_now())}


async def admin_user_sessions(user_id: int, *, page: int, limit: int) -> dict:
    if await users_repository.get_user_by_id(user_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return await admin_list(page=page, limit=limit, sort_by="created_at", sort_order="desc", user_id=user_id)


async def admin_expire(session_pk: int, *, admin_id: int) -> dict:
    session = await repository.expire_session(session_pk)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="OTP session not found")
    logger.info("otp_session_expired session_pk=%s admin_id=%s", session_pk, admin_id)
    return session


async def admin_cleanup(*, admin_id: int) -> dict:
    deleted = await repository.delete_expired_unverified()
    logger.info("otp_sessions_cleaned deleted=%s admin_id=%s", deleted, admin_id)
    return {"deleted": deleted}
