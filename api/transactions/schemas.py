"""
Transaction request models.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

TransactionStatus = Literal["pending", "completed", "cancelled", "refunded"]

# Status moves an admin may make.
ALLOWED_STATUS_CHANGES: dict[str, set[str]] = {
    "pending": {"completed", "cancelled"},
    "completed": {"refunded"},
    "cancelled": set(),
    "refunded": set(),
}


class RecordTransactionRequest(BaseModel):
    card_number: str = Field(..., pattern=r"^\d{16}$")
    shop_id: int | None = None
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    payment_method: Literal["cash", "card", "upi", "wallet", "other"] = "cash"


class StatusChangeRequest(BaseModel):
    status: TransactionStatus
