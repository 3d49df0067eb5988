"""
Shop status transitions.

    pending  -> approved | rejected | blocked
    rejected -> approved | blocked
    approved -> blocked
    blocked  -> approved (unblock)
"""

from __future__ import annotations

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
BLOCKED = "blocked"

STATUSES = (PENDING, APPROVED, REJECTED, BLOCKED)


class ShopTransitionError(ValueError):
    pass


def approve(current: str) -> str:
    if current not in (PENDING, REJECTED):
        raise ShopTransitionError(f"Only pending or rejected shops can be approved (current status: {current})")
    return APPROVED


def reject(current: str) -> str:
    if current != PENDING:
        raise ShopTransitionError(f"Only pending shops can be rejected (current status: {current})")
    return REJECTED


def block(current: str) -> str:
    if current == BLOCKED:
        raise ShopTransitionError("Shop is already blocked")
    return BLOCKED


def unblock(current: str) -> str:
    if current != BLOCKED:
        raise ShopTransitionError("Only blocked shops can be unblocked")
    return APPROVED


def toggle_block(current: str) -> str:
    return unblock(current) if current == BLOCKED else block(current)


TRANSITIONS = {
    "approve": approve,
    "reject": reject,
    "block": block,
    "unblock": unblock,
}
