"""Tests for tier derivation, rule matching and discount arithmetic."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from discounts import matching, tiers

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


def _rule(**overrides):
    rule = {
        "id": 1,
        "is_active": True,
        "min_amount": Decimal("0"),
        "max_amount": None,
        "discount_percentage": Decimal("10"),
        "tier": "Silver",
        "shop_id": None,
        "valid_from": None,
        "valid_to": None,
        "max_usage": None,
        "usage_count": 0,
    }
    rule.update(overrides)
    return rule


class TestTiers:
    @pytest.mark.parametrize(
        "spent,expected",
        [
            (0, "Bronze"),
            (24999, "Bronze"),
            (25000, "Silver"),
            (49999.99, "Silver"),
            (50000, "Gold"),
            (99999, "Gold"),
            (100000, "Platinum"),
            (None, "Bronze"),
        ],
    )
    def test_tier_for_spend(self, spent, expected):
        assert tiers.tier_for_spend(spent) == expected

    def test_next_tier_info(self):
        info = tiers.next_tier_info("Silver", Decimal("30000"))
        assert info["next_tier"] == "Gold"
        assert info["required_amount"] == Decimal("50000")
        assert info["remaining_amount"] == Decimal("20000")

    def test_no_next_tier_at_top(self):
        assert tiers.next_tier_info("Platinum", 250000) is None

    def test_unknown_tier_falls_back_to_spend(self):
        info = tiers.next_tier_info("Diamond", 60000)
        assert info["next_tier"] == "Platinum"

    def test_requirements_table_order(self):
        assert [row["tier"] for row in tiers.requirements_table()] == list(tiers.TIERS)


class TestRuleMatching:
    def test_matching_rule(self):
        assert matching.is_applicable(_rule(), amount=1000, tier="Silver", now=NOW)

    def test_inactive_rule(self):
        assert not matching.is_applicable(_rule(is_active=False), amount=1000, tier="Silver", now=NOW)

    def test_amount_bounds_are_inclusive(self):
        rule = _rule(min_amount=Decimal("500"), max_amount=Decimal("2000"))
        assert matching.is_applicable(rule, amount=500, tier="Silver", now=NOW)
        assert matching.is_applicable(rule, amount=2000, tier="Silver", now=NOW)
        assert not matching.is_applicable(rule, amount="499.99", tier="Silver", now=NOW)
        assert not matching.is_applicable(rule, amount="2000.01", tier="Silver", now=NOW)

    def test_tier_must_match(self):
        assert not matching.is_applicable(_rule(), amount=1000, tier="Gold", now=NOW)

    def test_shop_specific_rule(self):
        rule = _rule(shop_id=3)
        assert matching.is_applicable(rule, amount=1000, tier="Silver", shop_id=3, now=NOW)
        assert not matching.is_applicable(rule, amount=1000, tier="Silver", shop_id=4, now=NOW)
        assert not matching.is_applicable(rule, amount=1000, tier="Silver", now=NOW)

    def test_validity_window(self):
        future = _rule(valid_from=NOW + timedelta(days=1))
        past = _rule(valid_to=NOW - timedelta(seconds=1))
        assert not matching.is_applicable(future, amount=1000, tier="Silver", now=NOW)
        assert not matching.is_applicable(past, amount=1000, tier="Silver", now=NOW)

    def test_usage_cap(self):
        rule = _rule(max_usage=5, usage_count=5)
        assert not matching.is_applicable(rule, amount=1000, tier="Silver", now=NOW)
        assert matching.is_applicable(_rule(max_usage=5, usage_count=4), amount=1000, tier="Silver", now=NOW)


class TestBestRule:
    def test_empty(self):
        assert matching.best_rule([]) is None

    def test_highest_percentage_wins(self):
        rules = [_rule(id=1, discount_percentage=Decimal("5")), _rule(id=2, discount_percentage=Decimal("12"))]
        assert matching.best_rule(rules)["id"] == 2

    def test_tie_prefers_shop_specific(self):
        rules = [_rule(id=1), _rule(id=2, shop_id=9)]
        assert matching.best_rule(rules)["id"] == 2

    def test_tie_then_oldest(self):
        rules = [_rule(id=8), _rule(id=3)]
        assert matching.best_rule(rules)["id"] == 3


class TestCalculateDiscount:
    def test_rounds_half_up_to_cents(self):
        calc = matching.calculate_discount(Decimal("999.99"), Decimal("12.5"))
        assert calc.discount_amount == Decimal("125.00")
        assert calc.final_amount == Decimal("874.99")

    def test_zero_percent(self):
        calc = matching.calculate_discount(Decimal("250"), 0)
        assert calc.discount_amount == Decimal("0.00")
        assert calc.final_amount == Decimal("250.00")

    def test_amounts_add_up(self):
        calc = matching.calculate_discount("1234.56", "7")
        assert calc.discount_amount + calc.final_amount == calc.original_amount
