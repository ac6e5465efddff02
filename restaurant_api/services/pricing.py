from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable

from restaurant_api.core.config import ORDER_TOTAL_POLICY

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class TotalPolicy(str, Enum):
    CLAMP = "clamp"
    ALLOW_NEGATIVE = "allow_negative"


def default_total_policy() -> TotalPolicy:
    return TotalPolicy(ORDER_TOTAL_POLICY)


def to_money(value) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def line_subtotal(quantity: int, unit_price) -> Decimal:
    return to_money(Decimal(int(quantity)) * to_money(unit_price))


def compute_subtotal(line_subtotals: Iterable) -> Decimal:
    return to_money(sum((to_money(value) for value in line_subtotals), ZERO))


def compute_total(
    subtotal,
    tax=ZERO,
    manual_discount=ZERO,
    coupon_discount=ZERO,
    policy: TotalPolicy | None = None,
) -> Decimal:
    policy = policy or default_total_policy()
    total = to_money(subtotal) + to_money(tax) - (to_money(manual_discount) + to_money(coupon_discount))
    if policy == TotalPolicy.CLAMP and total < ZERO:
        return ZERO
    return to_money(total)
