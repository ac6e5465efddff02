from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from restaurant_api.core.errors import NOT_FOUND, VALIDATION, DomainError
from restaurant_api.models.coupon import FIXED_AMOUNT, PERCENTAGE
from restaurant_api.services.coupons import (
    InvalidReason,
    calculate_discount,
    check_validity,
    validate_coupon,
)
from restaurant_api.services.pricing import TotalPolicy
from tests.fixtures_data import add_coupon, build_session, seed_catalog

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _coupon(**overrides):
    values = {
        "active": True,
        "starts_at": NOW - timedelta(days=1),
        "expires_at": NOW + timedelta(days=1),
        "max_redemptions": None,
        "current_redemptions": 0,
        "kind": PERCENTAGE,
        "percentage": Decimal("10"),
        "fixed_amount": None,
        "discount_cap": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_coupon_inside_its_window_is_valid():
    result = check_validity(_coupon(), NOW)

    assert result.valid is True
    assert result.reason is None


@pytest.mark.parametrize(
    "overrides, reason",
    [
        ({"active": False}, InvalidReason.DEACTIVATED),
        ({"starts_at": NOW + timedelta(minutes=1)}, InvalidReason.NOT_YET_STARTED),
        ({"expires_at": NOW - timedelta(minutes=1)}, InvalidReason.EXPIRED),
        ({"max_redemptions": 3, "current_redemptions": 3}, InvalidReason.REDEMPTION_LIMIT_REACHED),
    ],
)
def test_each_failing_check_reports_its_reason(overrides, reason):
    result = check_validity(_coupon(**overrides), NOW)

    assert result.valid is False
    assert result.reason == reason


def test_expiry_is_exclusive():
    result = check_validity(_coupon(expires_at=NOW), NOW)

    assert result.reason == InvalidReason.EXPIRED
    assert result.reason.value == "expired"


def test_start_is_inclusive():
    assert check_validity(_coupon(starts_at=NOW), NOW).valid is True


def test_combined_failures_resolve_to_first_reason_in_priority_order():
    everything_wrong = _coupon(
        active=False,
        starts_at=NOW + timedelta(days=1),
        expires_at=NOW - timedelta(days=1),
        max_redemptions=1,
        current_redemptions=1,
    )
    not_started_and_exhausted = _coupon(
        starts_at=NOW + timedelta(days=1),
        max_redemptions=1,
        current_redemptions=5,
    )
    expired_and_exhausted = _coupon(expires_at=NOW, max_redemptions=1, current_redemptions=1)

    assert check_validity(everything_wrong, NOW).reason == InvalidReason.DEACTIVATED
    assert check_validity(not_started_and_exhausted, NOW).reason == InvalidReason.NOT_YET_STARTED
    assert check_validity(expired_and_exhausted, NOW).reason == InvalidReason.EXPIRED


def test_naive_datetimes_are_read_as_utc():
    coupon = _coupon(starts_at=datetime(2026, 3, 10, 11, 0), expires_at=datetime(2026, 3, 10, 13, 0))

    assert check_validity(coupon, NOW).valid is True


def test_percentage_discount_scales_with_subtotal():
    coupon = _coupon(percentage=Decimal("10"))

    assert calculate_discount(coupon, Decimal("25.00")) == Decimal("2.50")
    assert calculate_discount(coupon, Decimal("33.35")) == Decimal("3.34")


def test_fixed_discount_ignores_subtotal_and_respects_cap():
    uncapped = _coupon(kind=FIXED_AMOUNT, fixed_amount=Decimal("5.00"))
    capped = _coupon(kind=FIXED_AMOUNT, fixed_amount=Decimal("5.00"), discount_cap=Decimal("3.00"))

    assert calculate_discount(uncapped, Decimal("1.00")) == Decimal("5.00")
    assert calculate_discount(capped, Decimal("25.00")) == Decimal("3.00")


def test_percentage_discount_is_capped():
    coupon = _coupon(percentage=Decimal("50"), discount_cap=Decimal("7.50"))

    assert calculate_discount(coupon, Decimal("100.00")) == Decimal("7.50")
    assert calculate_discount(coupon, Decimal("10.00")) == Decimal("5.00")


def test_zero_cap_means_no_discount():
    coupon = _coupon(percentage=Decimal("20"), discount_cap=Decimal("0"))

    assert calculate_discount(coupon, Decimal("40.00")) == Decimal("0.00")


def test_discount_calculation_is_idempotent_and_side_effect_free():
    coupon = _coupon(max_redemptions=10, current_redemptions=4)

    first = calculate_discount(coupon, Decimal("25.00"))
    second = calculate_discount(coupon, Decimal("25.00"))

    assert first == second == Decimal("2.50")
    assert coupon.current_redemptions == 4


def _validation_db():
    db = build_session()
    seed_catalog(db)
    return db


def test_validate_coupon_returns_discount_and_final_amount_without_redeeming():
    db = _validation_db()
    coupon = add_coupon(db, "TENOFF", percentage=Decimal("10"))

    result = validate_coupon(db, "tenoff", Decimal("25.00"), 1)

    assert result == {"valid": True, "discount": Decimal("2.50"), "final_amount": Decimal("22.50")}
    db.refresh(coupon)
    assert coupon.current_redemptions == 0


def test_validate_coupon_final_amount_follows_total_policy():
    db = _validation_db()
    add_coupon(db, "BIGFIXED", kind=FIXED_AMOUNT, percentage=None, fixed_amount=Decimal("50.00"))

    clamped = validate_coupon(db, "BIGFIXED", Decimal("20.00"), 1, total_policy=TotalPolicy.CLAMP)
    raw = validate_coupon(db, "BIGFIXED", Decimal("20.00"), 1, total_policy=TotalPolicy.ALLOW_NEGATIVE)

    assert clamped["final_amount"] == Decimal("0.00")
    assert raw["final_amount"] == Decimal("-30.00")


@pytest.mark.parametrize(
    "setup, code, restaurant_id, kind",
    [
        (lambda db: None, "MISSING", 1, NOT_FOUND),
        (lambda db: add_coupon(db, "SLEEPY", active=False), "SLEEPY", 1, NOT_FOUND),
        (lambda db: add_coupon(db, "SUSHIONLY", restaurant_id=2), "SUSHIONLY", 1, VALIDATION),
        (lambda db: add_coupon(db, "MIN30", minimum_subtotal=Decimal("30.00")), "MIN30", 1, VALIDATION),
        (
            lambda db: add_coupon(db, "OLD", expires_at=datetime.now(timezone.utc) - timedelta(seconds=1)),
            "OLD",
            1,
            VALIDATION,
        ),
        (
            lambda db: add_coupon(db, "USEDUP", max_redemptions=2, current_redemptions=2),
            "USEDUP",
            1,
            VALIDATION,
        ),
    ],
)
def test_validate_coupon_errors(setup, code, restaurant_id, kind):
    db = _validation_db()
    setup(db)

    with pytest.raises(DomainError) as exc_info:
        validate_coupon(db, code, Decimal("25.00"), restaurant_id)

    assert exc_info.value.kind == kind


def test_global_coupon_applies_to_any_restaurant():
    db = _validation_db()
    add_coupon(db, "EVERYWHERE", restaurant_id=None)

    assert validate_coupon(db, "EVERYWHERE", Decimal("10.00"), 2)["valid"] is True
