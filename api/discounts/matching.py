"""
Discount rule matching and discount arithmetic.

A rule applies to a purchase when all of these hold:
- the rule is active
- min_amount <= amount, and amount <= max_amount when max_amount is set
- the rule's tier equals the member's tier
- a shop-specific rule only applies at its own shop
- now falls inside [valid_from, valid_to] (open ends allowed)
- usage_count < max_usage when max_usage is set

`is_applicable` is the reference form of this predicate; the repository SQL in
`find_applicable_rules` mirrors it and must stay in step with it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

CENT = Decimal("0.01")


def _dec(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def is_applicable(
    rule: dict[str, Any],
    *,
    amount: Any,
    tier: str,
    shop_id: int | None = None,
    now: datetime,
) -> bool:
    if not bool(rule.get("is_active")):
        return False

    value = _dec(amount)
    if value < _dec(rule.get("min_amount") or 0):
        return False
    max_amount = rule.get("max_amount")
    if max_amount is not None and value > _dec(max_amount):
        return False

    if rule.get("tier") != tier:
        return False

    rule_shop = rule.get("shop_id")
    if rule_shop is not None and rule_shop != shop_id:
        return False

    valid_from = rule.get("valid_from")
    if valid_from is not None and now < valid_from:
        return False
    valid_to = rule.get("valid_to")
    if valid_to is not None and now > valid_to:
        return False

    max_usage = rule.get("max_usage")
    if max_usage is not None and int(rule.get("usage_count") or 0) >= int(max_usage):
        return False

    return True


def best_rule(rules: Iterable[dict[str, Any]]) -> dict[str, Any] | None:
    """
    Highest percentage wins; ties prefer shop-specific rules, then the oldest rule.
    """
    candidates = list(rules)
    if not candidates:
        return None
    return min(
        candidates,
        key=lambda r: (
            -_dec(r["discount_percentage"]),
            0 if r.get("shop_id") is not None else 1,
            int(r.get("id") or 0),
        ),
    )


@dataclass(frozen=True)
class DiscountCalculation:
    original_amount: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    final_amount: Decimal

    def as_dict(self) -> dict[str, Decimal]:
        return {
            "original_amount": self.original_amount,
            "discount_percentage": self.discount_percentage,
            "discount_amount": self.discount_amount,
            "final_amount": self.final_amount,
        }


def calculate_discount(amount: Any, percentage: Any) -> DiscountCalculation:
    original = _dec(amount)
    pct = _dec(percentage)
    discount = (original * pct / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP)
    final = (original - discount).quantize(CENT, rounding=ROUND_HALF_UP)
    return DiscountCalculation(
        original_amount=original,
        discount_percentage=pct,
        discount_amount=discount,
        final_amount=final,
    )
