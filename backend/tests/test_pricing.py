"""Tests for the pricing resolver."""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

import pytest

from nautica.models import PricingType
from nautica.services.pricing import (
    day_of_week,
    loyalty_discount_pct,
    pick_best_modifier,
    resolve_price,
    round2,
)


SATURDAY = date(2025, 6, 7)
SUNDAY = date(2025, 6, 8)
WEDNESDAY = date(2025, 6, 4)


@dataclass
class Rule:
    pricing_type: str
    price_modifier: Decimal
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    day_of_week: Optional[int] = None
    is_active: Optional[bool] = True


class TestDayOfWeek:
    def test_sunday_is_zero_and_saturday_is_six(self):
        assert day_of_week(SUNDAY) == 0
        assert day_of_week(SATURDAY) == 6
        assert day_of_week(WEDNESDAY) == 3


class TestPickBestModifier:
    def test_defaults_to_one_without_matching_rules(self):
        assert pick_best_modifier([], SATURDAY, False) == Decimal("1")
        assert pick_best_modifier([Rule(PricingType.WEEKDAY, Decimal("1.5"))], SATURDAY, False) == Decimal("1")

    def test_weekend_rule_matches_saturday_only(self):
        rules = [Rule(PricingType.WEEKEND, Decimal("1.2"))]
        assert pick_best_modifier(rules, SATURDAY, False) == Decimal("1.2")
        assert pick_best_modifier(rules, WEDNESDAY, False) == Decimal("1")

    def test_picks_maximum_instead_of_compounding(self):
        rules = [
            Rule(PricingType.WEEKEND, Decimal("1.2")),
            Rule(PricingType.SPECIAL, Decimal("1.5")),
            Rule(PricingType.HOLIDAY, Decimal("1.3")),
        ]
        assert pick_best_modifier(rules, SATURDAY, True) == Decimal("1.5")

    def test_discount_rules_can_lower_the_price(self):
        rules = [Rule(PricingType.WEEKDAY, Decimal("0.8"))]
        assert pick_best_modifier(rules, WEDNESDAY, False) == Decimal("0.8")

    def test_holiday_rule_needs_holiday(self):
        rules = [Rule(PricingType.HOLIDAY, Decimal("1.4"))]
        assert pick_best_modifier(rules, WEDNESDAY, False) == Decimal("1")
        assert pick_best_modifier(rules, WEDNESDAY, True) == Decimal("1.4")

    def test_season_rules_require_explicit_range(self):
        open_ended = Rule(PricingType.HIGH_SEASON, Decimal("1.6"))
        ranged = Rule(
            PricingType.HIGH_SEASON,
            Decimal("1.6"),
            start_date=date(2025, 6, 1),
            end_date=date(2025, 6, 30),
        )
        assert pick_best_modifier([open_ended], WEDNESDAY, False) == Decimal("1")
        assert pick_best_modifier([ranged], WEDNESDAY, False) == Decimal("1.6")
        assert pick_best_modifier([ranged], date(2025, 7, 1), False) == Decimal("1")

    def test_date_range_is_inclusive(self):
        rule = Rule(PricingType.SPECIAL, Decimal("2"), start_date=SATURDAY, end_date=SATURDAY)
        assert pick_best_modifier([rule], SATURDAY, False) == Decimal("2")
        assert pick_best_modifier([rule], SUNDAY, False) == Decimal("1")

    def test_day_of_week_constraint(self):
        rule = Rule(PricingType.SPECIAL, Decimal("1.1"), day_of_week=0)
        assert pick_best_modifier([rule], SUNDAY, False) == Decimal("1.1")
        assert pick_best_modifier([rule], SATURDAY, False) == Decimal("1")

    def test_inactive_and_non_positive_rules_are_ignored(self):
        rules = [
            Rule(PricingType.SPECIAL, Decimal("3"), is_active=False),
            Rule(PricingType.SPECIAL, Decimal("0")),
            Rule(PricingType.SPECIAL, Decimal("-1")),
        ]
        assert pick_best_modifier(rules, SATURDAY, False) == Decimal("1")

    def test_unknown_rule_kind_never_matches(self):
        assert pick_best_modifier([Rule("flash_sale", Decimal("9"))], SATURDAY, False) == Decimal("1")

    def test_adding_a_matching_rule_never_lowers_the_modifier(self):
        rules = [Rule(PricingType.WEEKEND, Decimal("1.2"))]
        before = pick_best_modifier(rules, SATURDAY, False)
        rules.append(Rule(PricingType.SPECIAL, Decimal("1.1")))
        assert pick_best_modifier(rules, SATURDAY, False) >= before


class TestLoyaltyDiscount:
    @pytest.mark.parametrize(
        "rentals,expected",
        [(0, "0"), (4, "0"), (5, "10"), (9, "0"), (10, "10"), (11, "0"), (15, "10")],
    )
    def test_milestone_threshold(self, rentals, expected):
        assert loyalty_discount_pct(rentals) == Decimal(expected)


class TestResolvePrice:
    def test_weekend_saturday_without_discount(self):
        quote = resolve_price(
            Decimal("1000.00"), SATURDAY, False, [Rule(PricingType.WEEKEND, Decimal("1.2"))]
        )
        assert quote.price_before_discount == Decimal("1200.00")
        assert quote.discount_amount == Decimal("0.00")
        assert quote.total_price == Decimal("1200.00")

    def test_weekend_saturday_with_loyalty_milestone(self):
        quote = resolve_price(
            Decimal("1000.00"),
            SATURDAY,
            False,
            [Rule(PricingType.WEEKEND, Decimal("1.2"))],
            discount_pct=loyalty_discount_pct(10),
        )
        assert quote.discount_amount == Decimal("120.00")
        assert quote.total_price == Decimal("1080.00")

    def test_float_inputs_round_half_up_to_cents(self):
        quote = resolve_price(0.1 + 0.2, WEDNESDAY, False, [], discount_pct=0)
        assert quote.price_before_discount == Decimal("0.30")

        quote = resolve_price(Decimal("10.005"), WEDNESDAY, False, [])
        assert quote.price_before_discount == Decimal("10.01")

    def test_total_is_never_negative(self):
        quote = resolve_price(Decimal("100"), WEDNESDAY, False, [], discount_pct=150)
        assert quote.total_price == Decimal("0.00")

    @pytest.mark.parametrize(
        "base,modifier,pct",
        [("999.99", "1.333", "10"), ("1234.56", "0.875", "7.5"), ("50", "1", "0")],
    )
    def test_discount_plus_total_equals_price_before_discount(self, base, modifier, pct):
        quote = resolve_price(
            Decimal(base), WEDNESDAY, False, [Rule(PricingType.SPECIAL, Decimal(modifier))], discount_pct=pct
        )
        assert quote.price_before_discount == round2(Decimal(base) * Decimal(modifier))
        assert abs(quote.discount_amount + quote.total_price - quote.price_before_discount) <= Decimal("0.01")
        assert quote.total_price == quote.total_price.quantize(Decimal("0.01"))

    def test_as_dict_uses_camel_case_numbers(self):
        quote = resolve_price(Decimal("1000"), SATURDAY, False, [Rule(PricingType.WEEKEND, Decimal("1.2"))])
        assert quote.as_dict()["priceBeforeDiscount"] == 1200.0
        assert quote.as_dict()["totalPrice"] == 1200.0
