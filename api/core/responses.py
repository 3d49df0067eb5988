"""
Response envelope shared by every endpoint.

Success:   {"success": true,  "message": ..., "data": ..., "timestamp": ...}
Paginated: {"success": true,  "message": ..., "data": [...], "pagination": {...}, "timestamp": ...}
Error:     {"success": false, "message": ..., "errors": ..., "timestamp": ...}

Payloads are encoded here so the wire format does not depend on how FastAPI
serializes a `dict` response: money (Decimal) is a JSON number, datetimes are
ISO 8601 strings and UUIDs are strings.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from fastapi.encoders import jsonable_encoder

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def encode(data: Any) -> Any:
    return jsonable_encoder(data, custom_encoder={Decimal: float})


def success(data: Any = None, message: str = "Success") -> dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "data": encode(data),
        "timestamp": _timestamp(),
    }


def error(message: str, errors: Any = None) -> dict[str, Any]:
    return {
        "success": False,
        "message": message,
        "errors": encode(errors),
        "timestamp": _timestamp(),
    }


def pagination_meta(*, page: int, limit: int, total: int) -> dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit > 0 else 0
    return {
        "current_page": page,
        "total_pages": total_pages,
        "total_items": total,
        "items_per_page": limit,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def paginated(
    items: list[Any],
    *,
    page: int,
    limit: int,
    total: int,
    message: str = "Success",
) -> dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "data": encode(items),
        "pagination": pagination_meta(page=page, limit=limit, total=total),
        "timestamp": _timestamp(),
    }


def page_offset(page: int, limit: int) -> int:
    return (max(page, 1) - 1) * limit
