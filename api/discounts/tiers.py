"""
Membership tiers derived from a member's total spend.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

BRONZE = "Bronze"
SILVER = "Silver"
GOLD = "Gold"
PLATINUM = "Platinum"

TIERS = (BRONZE, SILVER, GOLD, PLATINUM)


@dataclass(frozen=True)
class TierRequirement:
    name: str
    min_spent: Decimal
    max_spent: Decimal | None
    max_discount: int
    benefits: str


REQUIREMENTS: dict[str, TierRequirement] = {
    BRONZE: TierRequirement(BRONZE, Decimal("0"), Decimal("24999"), 5, "Basic discounts up to 5%"),
    SILVER: TierRequirement(SILVER, Decimal("25000"), Decimal("49999"), 10, "Enhanced discounts up to 10%"),
    GOLD: TierRequirement(GOLD, Decimal("50000"), Decimal("99999"), 15, "Premium discounts up to 15%"),
    PLATINUM: TierRequirement(PLATINUM, Decimal("100000"), None, 20, "Exclusive discounts up to 20%"),
}


def _as_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


def tier_for_spend(total_spent: Any) -> str:
    amount = _as_decimal(total_spent)
    if amount >= REQUIREMENTS[PLATINUM].min_spent:
        return PLATINUM
    if amount >= REQUIREMENTS[GOLD].min_spent:
        return GOLD
    if amount >= REQUIREMENTS[SILVER].min_spent:
        return SILVER
    return BRONZE


def requirements_table() -> list[dict[str, Any]]:
    return [
        {
            "tier": req.name,
            "min_spent": req.min_spent,
            "max_spent": req.max_spent,
            "max_discount": req.max_discount,
            "benefits": req.benefits,
        }
        for req in REQUIREMENTS.values()
    ]


def next_tier_info(tier: str, total_spent: Any) -> dict[str, Any] | None:
    """
    Next tier, the spend it needs and how much is left. None at the top tier.
    """
    if tier not in TIERS:
        tier = tier_for_spend(total_spent)
    index = TIERS.index(tier)
    if index == len(TIERS) - 1:
        return None

    next_name = TIERS[index + 1]
    required = REQUIREMENTS[next_name].min_spent
    remaining = max(required - _as_decimal(total_spent), Decimal("0"))
    return {
        "next_tier": next_name,
        "required_amount": required,
        "remaining_amount": remaining,
        "benefits": REQUIREMENTS[next_name].benefits,
    }
