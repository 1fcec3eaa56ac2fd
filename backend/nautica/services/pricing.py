"""
Pricing Resolver

Turns a boat's base daily rate into the price of a single booking day:
pick the strongest matching owner rule, then apply the loyalty milestone
discount. Pure functions only; callers fetch rules/holidays/profile data.

All money is Decimal, rounded half-up to cents. Float inputs are converted
through ``str`` so binary representation error never reaches the math.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional, Protocol

from nautica.models.pricing_rule import PricingType


CENT = Decimal("0.01")
ONE = Decimal("1")

# Flat discount granted on every Nth completed rental.
LOYALTY_MILESTONE = 5
LOYALTY_DISCOUNT_PCT = Decimal("10")

SATURDAY = 6
SUNDAY = 0


class PricingRuleLike(Protocol):
    pricing_type: str
    price_modifier: Any
    start_date: Optional[date]
    end_date: Optional[date]
    day_of_week: Optional[int]
    is_active: Optional[bool]


@dataclass(frozen=True)
class PriceQuote:
    """Output of a price resolution for one boat on one date."""

    modifier: Decimal
    price_before_discount: Decimal
    discount_pct: Decimal
    discount_amount: Decimal
    total_price: Decimal

    def as_dict(self) -> dict[str, float]:
        return {
            "modifier": float(self.modifier),
            "priceBeforeDiscount": float(self.price_before_discount),
            "discountPct": float(self.discount_pct),
            "discountAmount": float(self.discount_amount),
            "totalPrice": float(self.total_price),
        }


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def day_of_week(target: date) -> int:
    """0=Sunday .. 6=Saturday, computed on the calendar day alone."""
    return (target.weekday() + 1) % 7


def _in_range(rule: PricingRuleLike, target: date) -> bool:
    if rule.start_date is not None and target < rule.start_date:
        return False
    if rule.end_date is not None and target > rule.end_date:
        return False
    return True


def _kind_matches(rule: PricingRuleLike, dow: int, is_holiday: bool) -> bool:
    kind = rule.pricing_type
    if kind == PricingType.HOLIDAY:
        return is_holiday
    if kind == PricingType.WEEKDAY:
        return dow not in (SATURDAY, SUNDAY)
    if kind == PricingType.WEEKEND:
        return dow in (SATURDAY, SUNDAY)
    if kind in (PricingType.HIGH_SEASON, PricingType.LOW_SEASON):
        # Seasons are only meaningful with an explicit range.
        return rule.start_date is not None and rule.end_date is not None
    if kind == PricingType.SPECIAL:
        return True
    return False


def rule_matches(rule: PricingRuleLike, target: date, is_holiday: bool) -> bool:
    if rule.is_active is False:
        return False
    if to_decimal(rule.price_modifier) <= 0:
        return False
    if not _in_range(rule, target):
        return False
    dow = day_of_week(target)
    if rule.day_of_week is not None and rule.day_of_week != dow:
        return False
    return _kind_matches(rule, dow, is_holiday)


def pick_best_modifier(
    rules: Iterable[PricingRuleLike],
    target: date,
    is_holiday: bool,
) -> Decimal:
    """Largest modifier among matching rules; 1 when none match.

    Rules never compound: two matching rules never multiply together.
    """
    best: Optional[Decimal] = None
    for rule in rules:
        if not rule_matches(rule, target, is_holiday):
            continue
        modifier = to_decimal(rule.price_modifier)
        if best is None or modifier > best:
            best = modifier
    return best if best is not None else ONE


def loyalty_discount_pct(total_rentals: int) -> Decimal:
    """Milestone reward: 10% on every 5th completed rental, else nothing.

    Intentionally a threshold, not an accrual: 9 rentals earn 0%, 10 earn
    10%, 11 earn 0% again.
    """
    if total_rentals > 0 and total_rentals % LOYALTY_MILESTONE == 0:
        return LOYALTY_DISCOUNT_PCT
    return Decimal("0")


def resolve_price(
    base_price: Any,
    target: date,
    is_holiday: bool,
    rules: Iterable[PricingRuleLike],
    discount_pct: Any = 0,
) -> PriceQuote:
    modifier = pick_best_modifier(rules, target, is_holiday)
    price_before_discount = round2(to_decimal(base_price) * modifier)

    pct = to_decimal(discount_pct)
    discount_amount = round2(price_before_discount * pct / Decimal("100"))
    total_price = max(Decimal("0.00"), round2(price_before_discount - discount_amount))

    return PriceQuote(
        modifier=modifier,
        price_before_discount=price_before_discount,
        discount_pct=pct,
        discount_amount=discount_amount,
        total_price=total_price,
    )
