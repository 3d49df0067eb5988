"""
Card numbers, QR payloads and validity arithmetic.
"""

from __future__ import annotations

import calendar
import json
import math
import secrets
import time
from datetime import datetime, timezone
from typing import Any

CARD_VALIDITY_MONTHS = 12
QR_VERSION = "1.0"

STATUS_NONE = "none"
STATUS_ACTIVE = "active"
STATUS_EXPIRED = "expired"
STATUS_INACTIVE = "inactive"


def generate_card_number() -> str:
    """
    16 digits: 12 random digits followed by the last 4 digits of the ms clock.
    """
    random_part = "".join(str(secrets.randbelow(10)) for _ in range(12))
    clock_part = str(int(time.time() * 1000))[-4:]
    return random_part + clock_part


def generate_transaction_ref() -> str:
    return "TXN" + str(int(time.time() * 1000))[-10:] + "".join(str(secrets.randbelow(10)) for _ in range(6))


def qr_payload(*, card_number: str, user_id: int, issued_at: datetime) -> str:
    return json.dumps(
        {
            "type": "discount_card",
            "card_number": card_number,
            "user_id": user_id,
            "issued_at": issued_at.isoformat(),
            "version": QR_VERSION,
        },
        separators=(",", ":"),
    )


def add_months(moment: datetime, months: int) -> datetime:
    """
    Calendar-month addition; the day is clamped to the target month's length.
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def renewed_expiry(current_expiry: datetime | None, *, months: int, now: datetime) -> datetime:
    # Unexpired cards extend from their current expiry; lapsed ones from now.
    base = current_expiry if current_expiry is not None and current_expiry > now else now
    return add_months(base, months)


def card_status(card: dict[str, Any] | None, *, now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    if card is None:
        return {"status": STATUS_NONE, "is_expired": False, "days_remaining": 0}

    expires_at = card.get("expires_at")
    is_expired = expires_at is not None and expires_at <= now
    if is_expired:
        status = STATUS_EXPIRED
    elif bool(card.get("is_active")):
        status = STATUS_ACTIVE
    else:
        status = STATUS_INACTIVE

    days_remaining = 0
    if status == STATUS_ACTIVE and expires_at is not None:
        days_remaining = math.ceil((expires_at - now).total_seconds() / 86400)
    return {"status": status, "is_expired": is_expired, "days_remaining": days_remaining}
