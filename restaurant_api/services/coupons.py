from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from restaurant_api.core.errors import ConflictError, InvalidInputError, NotFoundError
from restaurant_api.models.coupon import DISCOUNT_KINDS, FIXED_AMOUNT, PERCENTAGE, Coupon
from restaurant_api.repositories import CouponRepository
from restaurant_api.services.activation import ActivationCommand, apply_activation
from restaurant_api.services.pricing import ZERO, TotalPolicy, compute_total, to_money

logger = logging.getLogger(__name__)

COUPON_CODE_PATTERN = re.compile(r"^[A-Z0-9-]{3,20}$")
HUNDRED = Decimal("100")


class InvalidReason(str, Enum):
    DEACTIVATED = "deactivated"
    NOT_YET_STARTED = "not-yet-started"
    EXPIRED = "expired"
    REDEMPTION_LIMIT_REACHED = "redemption-limit-reached"


@dataclass(frozen=True)
class CouponValidity:
    valid: bool
    reason: InvalidReason | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def check_validity(coupon, now: datetime | None = None) -> CouponValidity:
    """Return the first failing check, in order: active, started, expiry, limit."""
    now = as_utc(now or _utcnow())
    if not coupon.active:
        return CouponValidity(False, InvalidReason.DEACTIVATED)
    starts_at = as_utc(coupon.starts_at)
    if starts_at is not None and now < starts_at:
        return CouponValidity(False, InvalidReason.NOT_YET_STARTED)
    if now >= as_utc(coupon.expires_at):
        return CouponValidity(False, InvalidReason.EXPIRED)
    if coupon.max_redemptions is not None and (coupon.current_redemptions or 0) >= coupon.max_redemptions:
        return CouponValidity(False, InvalidReason.REDEMPTION_LIMIT_REACHED)
    return CouponValidity(True)


def calculate_discount(coupon, subtotal) -> Decimal:
    """Percentage of ``subtotal`` or the fixed amount, bounded by the cap.

    Not bounded by the subtotal; the total policy handles overshoot.
    """
    if coupon.kind == PERCENTAGE:
        discount = to_money(to_money(subtotal) * Decimal(str(coupon.percentage or 0)) / HUNDRED)
    else:
        discount = to_money(coupon.fixed_amount)
    if coupon.discount_cap is not None:
        discount = min(discount, to_money(coupon.discount_cap))
    return discount


def register_redemption(
    db: Session,
    coupon_id: int,
    redeemer_id: str,
    *,
    order_id: int | None = None,
    now: datetime | None = None,
) -> bool:
    """Increment the counter and append a ledger row in one transaction.

    Returns False when the coupon ran out between validation and redemption.
    """
    repo = CouponRepository(db)
    if not repo.increment_redemptions_if_available(coupon_id):
        db.rollback()
        return False
    repo.append_redemption(coupon_id, redeemer_id, now or _utcnow(), order_id=order_id)
    db.commit()
    logger.info(
        "coupon redeemed coupon_id=%s order_id=%s redeemer=%s",
        coupon_id,
        order_id,
        redeemer_id,
    )
    return True


def claim_redemption(db: Session, coupon_id: int) -> None:
    """Take one redemption inside the caller's open transaction.

    Nothing is committed here; the caller commits the claim together with
    whatever it is paying for, or rolls both back.
    """
    if not CouponRepository(db).increment_redemptions_if_available(coupon_id):
        db.rollback()
        raise InvalidInputError(f"Coupon is not valid: {InvalidReason.REDEMPTION_LIMIT_REACHED.value}")


def append_redemption_entry(
    db: Session,
    coupon_id: int,
    redeemer_id: str,
    *,
    order_id: int | None = None,
    now: datetime | None = None,
) -> None:
    """Write the ledger row for a redemption whose counter was already claimed."""
    CouponRepository(db).append_redemption(coupon_id, redeemer_id, now or _utcnow(), order_id=order_id)
    db.commit()
    logger.info(
        "coupon redeemed coupon_id=%s order_id=%s redeemer=%s",
        coupon_id,
        order_id,
        redeemer_id,
    )


def resolve_coupon_for_order(
    db: Session,
    code: str,
    restaurant_id: int,
    subtotal,
    *,
    now: datetime | None = None,
) -> tuple[Coupon, Decimal]:
    """Look up ``code`` and check it against an order; returns the coupon and its discount."""
    coupon = CouponRepository(db).find_coupon_by_code(normalize_code(code))
    if not coupon or not coupon.active:
        raise NotFoundError("Coupon not found")
    if coupon.restaurant_id is not None and coupon.restaurant_id != restaurant_id:
        raise ConflictError("Coupon does not apply to this restaurant")

    validity = check_validity(coupon, now)
    if not validity.valid:
        raise InvalidInputError(f"Coupon is not valid: {validity.reason.value}")

    subtotal = to_money(subtotal)
    minimum = to_money(coupon.minimum_subtotal)
    if subtotal < minimum:
        raise InvalidInputError(f"Order subtotal must be at least {minimum} to use this coupon")
    return coupon, calculate_discount(coupon, subtotal)


def validate_coupon(
    db: Session,
    code: str,
    subtotal,
    restaurant_id: int,
    *,
    now: datetime | None = None,
    total_policy: TotalPolicy | None = None,
) -> dict:
    try:
        _, discount = resolve_coupon_for_order(db, code, restaurant_id, subtotal, now=now)
    except ConflictError as exc:
        # a coupon scoped elsewhere is just not usable here
        raise InvalidInputError(exc.message) from exc
    return {
        "valid": True,
        "discount": discount,
        "final_amount": compute_total(subtotal, ZERO, ZERO, discount, policy=total_policy),
    }


def _validate_terms(
    *,
    kind: str,
    percentage,
    fixed_amount,
    starts_at: datetime,
    expires_at: datetime,
    max_redemptions: int | None,
    minimum_subtotal,
    discount_cap,
    now: datetime,
    check_future_expiry: bool,
) -> None:
    if kind not in DISCOUNT_KINDS:
        raise InvalidInputError(f"Invalid discount kind: {kind}")
    if kind == PERCENTAGE:
        if percentage is None or not (ZERO <= to_money(percentage) <= HUNDRED):
            raise InvalidInputError("Percentage must be between 0 and 100")
    elif fixed_amount is None or to_money(fixed_amount) <= ZERO:
        raise InvalidInputError("Fixed amount must be greater than 0")

    if check_future_expiry and expires_at <= now:
        raise InvalidInputError("Expiry date must be in the future")
    if starts_at > expires_at:
        raise InvalidInputError("Start date must not be after the expiry date")
    if max_redemptions is not None and max_redemptions < 1:
        raise InvalidInputError("Maximum redemptions must be at least 1")
    if minimum_subtotal is not None and to_money(minimum_subtotal) < ZERO:
        raise InvalidInputError("Minimum subtotal cannot be negative")
    if discount_cap is not None and to_money(discount_cap) < ZERO:
        raise InvalidInputError("Discount cap cannot be negative")


def _checked_code(code: str | None) -> str:
    normalized = normalize_code(code)
    if not COUPON_CODE_PATTERN.match(normalized):
        raise InvalidInputError("Coupon code must be 3-20 characters of letters, digits or '-'")
    return normalized


def _commit(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("A coupon with this code already exists") from exc


def create_coupon(db: Session, data: dict, *, now: datetime | None = None) -> Coupon:
    now = as_utc(now or _utcnow())
    repo = CouponRepository(db)
    code = _checked_code(data.get("code"))
    if repo.code_exists(code):
        raise ConflictError("A coupon with this code already exists")

    kind = normalize_code(data.get("kind") or PERCENTAGE)
    starts_at = as_utc(data.get("starts_at")) or now
    expires_at = as_utc(data.get("expires_at"))
    if expires_at is None:
        raise InvalidInputError("Expiry date is required")

    _validate_terms(
        kind=kind,
        percentage=data.get("percentage"),
        fixed_amount=data.get("fixed_amount"),
        starts_at=starts_at,
        expires_at=expires_at,
        max_redemptions=data.get("max_redemptions"),
        minimum_subtotal=data.get("minimum_subtotal"),
        discount_cap=data.get("discount_cap"),
        now=now,
        check_future_expiry=True,
    )

    coupon = Coupon(
        code=code,
        description=data.get("description"),
        kind=kind,
        percentage=to_money(data["percentage"]) if kind == PERCENTAGE else None,
        fixed_amount=to_money(data["fixed_amount"]) if kind == FIXED_AMOUNT else None,
        starts_at=starts_at,
        expires_at=expires_at,
        max_redemptions=data.get("max_redemptions"),
        current_redemptions=0,
        minimum_subtotal=to_money(data.get("minimum_subtotal")),
        discount_cap=to_money(data["discount_cap"]) if data.get("discount_cap") is not None else None,
        restaurant_id=data.get("restaurant_id"),
        active=True,
    )
    repo.save_coupon(coupon)
    _commit(db)
    db.refresh(coupon)
    logger.info("coupon created", extra={"coupon_code": coupon.code})
    return coupon


def get_coupon(db: Session, coupon_id: int) -> Coupon:
    coupon = CouponRepository(db).find_coupon_by_id(coupon_id)
    if not coupon:
        raise NotFoundError("Coupon not found")
    return coupon


def get_coupon_by_code(db: Session, code: str, *, now: datetime | None = None) -> Coupon:
    coupon = CouponRepository(db).find_coupon_by_code(normalize_code(code))
    if not coupon or not coupon.active:
        raise NotFoundError("Coupon not found")
    validity = check_validity(coupon, now)
    if not validity.valid:
        raise InvalidInputError(f"Coupon is not valid: {validity.reason.value}")
    return coupon


def list_coupons(
    db: Session,
    *,
    restaurant_id: int | None = None,
    active: bool | None = True,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Coupon], int]:
    return CouponRepository(db).list_coupons(
        restaurant_id=restaurant_id, active=active, page=page, limit=limit
    )


def list_current_coupons(db: Session, restaurant_id: int, *, now: datetime | None = None) -> list[Coupon]:
    return CouponRepository(db).list_current_for_restaurant(restaurant_id, now or _utcnow())


def update_coupon(db: Session, coupon_id: int, changes: dict, *, now: datetime | None = None) -> Coupon:
    now = as_utc(now or _utcnow())
    repo = CouponRepository(db)
    coupon = get_coupon(db, coupon_id)

    if "code" in changes and changes["code"] is not None:
        code = _checked_code(changes["code"])
        if repo.code_exists(code, exclude_id=coupon.id):
            raise ConflictError("A coupon with this code already exists")
        changes = {**changes, "code": code}
    if changes.get("kind") is not None:
        changes = {**changes, "kind": normalize_code(changes["kind"])}

    merged = {
        "kind": coupon.kind,
        "percentage": coupon.percentage,
        "fixed_amount": coupon.fixed_amount,
        "starts_at": as_utc(coupon.starts_at),
        "expires_at": as_utc(coupon.expires_at),
        "max_redemptions": coupon.max_redemptions,
        "minimum_subtotal": coupon.minimum_subtotal,
        "discount_cap": coupon.discount_cap,
    }
    for key in merged:
        if key in changes and (changes[key] is not None or key in {"max_redemptions", "discount_cap"}):
            merged[key] = as_utc(changes[key]) if isinstance(changes[key], datetime) else changes[key]

    _validate_terms(
        **merged,
        now=now,
        check_future_expiry="expires_at" in changes and changes["expires_at"] is not None,
    )
    if merged["max_redemptions"] is not None and merged["max_redemptions"] < (coupon.current_redemptions or 0):
        raise InvalidInputError("Maximum redemptions cannot be lower than the redemptions already made")

    for field in ("code", "description", "restaurant_id"):
        if field in changes and changes[field] is not None:
            setattr(coupon, field, changes[field])
    coupon.kind = merged["kind"]
    coupon.percentage = to_money(merged["percentage"]) if merged["kind"] == PERCENTAGE else None
    coupon.fixed_amount = to_money(merged["fixed_amount"]) if merged["kind"] == FIXED_AMOUNT else None
    coupon.starts_at = merged["starts_at"]
    coupon.expires_at = merged["expires_at"]
    coupon.max_redemptions = merged["max_redemptions"]
    coupon.minimum_subtotal = to_money(merged["minimum_subtotal"])
    coupon.discount_cap = to_money(merged["discount_cap"]) if merged["discount_cap"] is not None else None

    _commit(db)
    db.refresh(coupon)
    logger.info("coupon updated", extra={"coupon_code": coupon.code})
    return coupon


def set_coupon_active(db: Session, coupon_id: int, command: ActivationCommand) -> Coupon:
    coupon = apply_activation(db, get_coupon(db, coupon_id), command)
    logger.info("coupon %sd", command.value, extra={"coupon_code": coupon.code})
    return coupon


def delete_coupon(db: Session, coupon_id: int) -> None:
    coupon = get_coupon(db, coupon_id)
    code = coupon.code
    try:
        CouponRepository(db).delete_coupon(coupon)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info("coupon deleted", extra={"coupon_code": code})
