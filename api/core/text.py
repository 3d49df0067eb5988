"""
Small text helpers: normalization, validation patterns, masking, CSV.
"""

from __future__ import annotations

import csv
import io
import re
import secrets
from typing import Any, Iterable

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
INDIAN_PHONE_RE = re.compile(r"^[6-9]\d{9}$")
GST_RE = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")
IFSC_RE = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
PAN_RE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")

MIN_PASSWORD_LENGTH = 8
PASSWORD_RULE = "Password must be at least 8 characters and contain an uppercase letter, a lowercase letter and a number."


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def normalize_phone(phone: str) -> str:
    digits = re.sub(r"[\s-]", "", phone or "")
    # Accept +91 / 91 prefixes for Indian mobiles.
    if digits.startswith("+91"):
        digits = digits[3:]
    elif len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]
    return digits


def is_email(value: str) -> bool:
    return bool(EMAIL_RE.match((value or "").strip()))


def is_indian_phone(value: str) -> bool:
    return bool(INDIAN_PHONE_RE.match(value or ""))


def is_gst_number(value: str) -> bool:
    return bool(GST_RE.match((value or "").strip().upper()))


def is_strong_password(password: str) -> bool:
    password = password or ""
    return (
        len(password) >= MIN_PASSWORD_LENGTH
        and any(c.islower() for c in password)
        and any(c.isupper() for c in password)
        and any(c.isdigit() for c in password)
    )


def slugify(text: str) -> str:
    """
    "Hello, World!  Deals_2024" -> "hello-world-deals-2024"
    """
    value = (text or "").lower().strip()
    value = re.sub(r"[^\w\s-]", "", value, flags=re.ASCII)
    value = re.sub(r"[\s_-]+", "-", value)
    return value.strip("-")


def mask_email(email: str) -> str:
    local, _, domain = (email or "").partition("@")
    if not domain:
        return email
    return local[:2] + "*" * max(len(local) - 2, 0) + "@" + domain


def mask_phone(phone: str) -> str:
    if len(phone or "") <= 4:
        return phone
    return phone[:2] + "*" * (len(phone) - 4) + phone[-2:]


def referral_code(name: str, length: int = 8) -> str:
    prefix = re.sub(r"[^A-Za-z]", "", name or "").upper()[:3]
    return (prefix + secrets.token_hex(3).upper())[:length]


def to_csv(rows: Iterable[dict[str, Any]], headers: list[str]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=headers, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({h: "" if row.get(h) is None else row.get(h) for h in headers})
    return buf.getvalue()
