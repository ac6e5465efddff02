"""Restaurant promotions: time-boxed offers on a set of menu items.

Unlike coupons they carry no code; a promotion is advertised for a restaurant
and used directly. ``status`` tracks the lifecycle (ACTIVE, INACTIVE when
paused, FINISHED once the window closed or the uses ran out) and ``active``
is the soft delete.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import desc
from sqlalchemy.orm import Session

from restaurant_api.core.errors import InvalidInputError, NotFoundError
from restaurant_api.models.coupon import DISCOUNT_KINDS, PERCENTAGE
from restaurant_api.models.menu_item import MenuItem
from restaurant_api.models.promotion import (
    DEFAULT_CONDITIONS,
    PROMOTION_KINDS,
    PROMOTION_STATUSES,
    STATUS_ACTIVE,
    STATUS_FINISHED,
    STATUS_INACTIVE,
    Promotion,
)
from restaurant_api.repositories import PromotionRepository, paginate
from restaurant_api.services.activation import ActivationCommand
from restaurant_api.services.catalog import get_restaurant
from restaurant_api.services.coupons import as_utc
from restaurant_api.services.pricing import ZERO, to_money

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _utc(value: datetime) -> datetime:
    # the window is stored in UTC whatever offset the caller sent
    return as_utc(value).astimezone(timezone.utc)


def _choice(value: str | None, allowed: tuple[str, ...], label: str) -> str:
    choice = (value or "").strip().upper()
    if choice not in allowed:
        raise InvalidInputError(f"Invalid {label}: {value}. Expected one of {', '.join(allowed)}")
    return choice


def _text(value: str | None, label: str, low: int, high: int) -> str:
    text = (value or "").strip()
    if not low <= len(text) <= high:
        raise InvalidInputError(f"{label} must be between {low} and {high} characters")
    return text


def _menu_item_ids(db: Session, restaurant_id: int, ids) -> list[int]:
    wanted = list(dict.fromkeys(ids or []))
    if not wanted:
        raise InvalidInputError("A promotion needs at least one menu item")
    found = {
        row.id
        for row in db.query(MenuItem.id).filter(
            MenuItem.id.in_(wanted),
            MenuItem.restaurant_id == restaurant_id,
            MenuItem.active.is_(True),
        )
    }
    missing = [str(item_id) for item_id in wanted if item_id not in found]
    if missing:
        raise NotFoundError(f"Menu items not found: {', '.join(missing)}")
    return wanted


def _validate_terms(*, discount_kind: str, discount_value, starts_at, ends_at, minimum_purchase, max_uses) -> None:
    value = to_money(discount_value)
    if value < ZERO:
        raise InvalidInputError("Discount value cannot be negative")
    if discount_kind == PERCENTAGE and value > HUNDRED:
        raise InvalidInputError("Percentage discount cannot exceed 100")
    if as_utc(ends_at) <= as_utc(starts_at):
        raise InvalidInputError("End date must be after the start date")
    if to_money(minimum_purchase) < ZERO:
        raise InvalidInputError("Minimum purchase cannot be negative")
    if max_uses is not None and max_uses < 1:
        raise InvalidInputError("Maximum uses must be at least 1")


def _exhausted(promotion: Promotion) -> bool:
    return promotion.max_uses is not None and (promotion.current_uses or 0) >= promotion.max_uses


def _sync_status(promotion: Promotion, now: datetime) -> None:
    if as_utc(promotion.ends_at) < now or _exhausted(promotion):
        promotion.status = STATUS_FINISHED


def is_current(promotion: Promotion, now: datetime | None = None) -> bool:
    now = as_utc(now or _utcnow())
    return (
        bool(promotion.active)
        and promotion.status == STATUS_ACTIVE
        and as_utc(promotion.starts_at) <= now <= as_utc(promotion.ends_at)
    )


def can_be_used(promotion: Promotion, now: datetime | None = None) -> bool:
    return is_current(promotion, now) and not _exhausted(promotion)


def create_promotion(db: Session, data: dict, *, created_by: str, now: datetime | None = None) -> Promotion:
    now = as_utc(now or _utcnow())
    restaurant = get_restaurant(db, data["restaurant_id"])
    discount_kind = _choice(data.get("discount_kind") or PERCENTAGE, DISCOUNT_KINDS, "discount kind")
    terms = {
        "discount_kind": discount_kind,
        "discount_value": data["discount_value"],
        "starts_at": _utc(data["starts_at"]),
        "ends_at": _utc(data["ends_at"]),
        "minimum_purchase": data.get("minimum_purchase") or ZERO,
        "max_uses": data.get("max_uses"),
    }
    _validate_terms(**terms)

    promotion = Promotion(
        restaurant_id=restaurant.id,
        name=_text(data.get("name"), "Name", 3, 100),
        description=_text(data.get("description"), "Description", 10, 500),
        kind=_choice(data.get("kind"), PROMOTION_KINDS, "promotion kind"),
        discount_kind=discount_kind,
        discount_value=to_money(terms["discount_value"]),
        starts_at=terms["starts_at"],
        ends_at=terms["ends_at"],
        menu_item_ids=_menu_item_ids(db, restaurant.id, data.get("menu_item_ids")),
        conditions=(data.get("conditions") or "").strip() or DEFAULT_CONDITIONS,
        image_url=data.get("image_url"),
        minimum_purchase=to_money(terms["minimum_purchase"]),
        max_uses=terms["max_uses"],
        current_uses=0,
        status=STATUS_ACTIVE,
        active=True,
        created_by=created_by,
    )
    _sync_status(promotion, now)
    db.add(promotion)
    db.commit()
    db.refresh(promotion)
    logger.info(
        "promotion created id=%s kind=%s status=%s",
        promotion.id,
        promotion.kind,
        promotion.status,
        extra={"restaurant_id": promotion.restaurant_id},
    )
    return promotion


def get_promotion(db: Session, promotion_id: int) -> Promotion:
    promotion = PromotionRepository(db).find_promotion_by_id(promotion_id)
    if not promotion or not promotion.active:
        raise NotFoundError("Promotion not found")
    return promotion


def list_promotions(
    db: Session,
    *,
    restaurant_id: int | None = None,
    kind: str | None = None,
    status: str | None = None,
    current_only: bool = False,
    page: int = 1,
    limit: int = 10,
    now: datetime | None = None,
) -> tuple[list[Promotion], int]:
    query = db.query(Promotion).filter(Promotion.active.is_(True))
    if restaurant_id is not None:
        query = query.filter(Promotion.restaurant_id == restaurant_id)
    if kind:
        query = query.filter(Promotion.kind == _choice(kind, PROMOTION_KINDS, "promotion kind"))
    if status:
        query = query.filter(Promotion.status == _choice(status, PROMOTION_STATUSES, "status"))
    if current_only:
        now = now or _utcnow()
        query = query.filter(
            Promotion.status == STATUS_ACTIVE,
            Promotion.starts_at <= now,
            Promotion.ends_at >= now,
        )
    return paginate(query.order_by(desc(Promotion.created_at), desc(Promotion.id)), page, limit)


def list_current_promotions(db: Session, restaurant_id: int, *, now: datetime | None = None) -> list[Promotion]:
    """Running promotions of one restaurant, the ones ending soonest first."""
    return PromotionRepository(db).list_current_for_restaurant(restaurant_id, now or _utcnow())


def update_promotion(db: Session, promotion_id: int, changes: dict, *, now: datetime | None = None) -> Promotion:
    """Restaurant and author are fixed at creation and never change."""
    now = as_utc(now or _utcnow())
    promotion = get_promotion(db, promotion_id)

    terms = {
        "discount_kind": promotion.discount_kind,
        "discount_value": promotion.discount_value,
        "starts_at": as_utc(promotion.starts_at),
        "ends_at": as_utc(promotion.ends_at),
        "minimum_purchase": promotion.minimum_purchase,
        "max_uses": promotion.max_uses,
    }
    for key in terms:
        if key in changes and (changes[key] is not None or key == "max_uses"):
            terms[key] = changes[key]
    terms["discount_kind"] = _choice(terms["discount_kind"], DISCOUNT_KINDS, "discount kind")
    terms["starts_at"] = _utc(terms["starts_at"])
    terms["ends_at"] = _utc(terms["ends_at"])
    _validate_terms(**terms)
    if terms["max_uses"] is not None and terms["max_uses"] < (promotion.current_uses or 0):
        raise InvalidInputError("Maximum uses cannot be lower than the uses already made")

    if changes.get("name") is not None:
        promotion.name = _text(changes["name"], "Name", 3, 100)
    if changes.get("description") is not None:
        promotion.description = _text(changes["description"], "Description", 10, 500)
    if changes.get("kind") is not None:
        promotion.kind = _choice(changes["kind"], PROMOTION_KINDS, "promotion kind")
    if changes.get("menu_item_ids") is not None:
        promotion.menu_item_ids = _menu_item_ids(db, promotion.restaurant_id, changes["menu_item_ids"])
    if changes.get("conditions") is not None:
        promotion.conditions = changes["conditions"].strip() or DEFAULT_CONDITIONS
    if "image_url" in changes:
        promotion.image_url = changes["image_url"]

    promotion.discount_kind = terms["discount_kind"]
    promotion.discount_value = to_money(terms["discount_value"])
    promotion.starts_at = terms["starts_at"]
    promotion.ends_at = terms["ends_at"]
    promotion.minimum_purchase = to_money(terms["minimum_purchase"])
    promotion.max_uses = terms["max_uses"]
    _sync_status(promotion, now)
    db.commit()
    db.refresh(promotion)
    return promotion


def set_promotion_status(
    db: Session,
    promotion_id: int,
    command: ActivationCommand,
    *,
    now: datetime | None = None,
) -> Promotion:
    """Pause or resume; a promotion that already ended stays FINISHED."""
    now = as_utc(now or _utcnow())
    promotion = get_promotion(db, promotion_id)
    if ActivationCommand(command) == ActivationCommand.ACTIVATE:
        promotion.status = STATUS_ACTIVE
    else:
        promotion.status = STATUS_INACTIVE
    _sync_status(promotion, now)
    db.commit()
    db.refresh(promotion)
    logger.info(
        "promotion %s status=%s",
        promotion.id,
        promotion.status,
        extra={"restaurant_id": promotion.restaurant_id},
    )
    return promotion


def delete_promotion(db: Session, promotion_id: int) -> Promotion:
    promotion = get_promotion(db, promotion_id)
    promotion.active = False
    db.commit()
    db.refresh(promotion)
    logger.info("promotion removed id=%s", promotion.id, extra={"restaurant_id": promotion.restaurant_id})
    return promotion


def use_promotion(db: Session, promotion_id: int, *, now: datetime | None = None) -> Promotion:
    """Count one use; the last allowed use finishes the promotion."""
    now = as_utc(now or _utcnow())
    promotion = get_promotion(db, promotion_id)
    if not can_be_used(promotion, now):
        raise InvalidInputError("Promotion cannot be used right now")

    repo = PromotionRepository(db)
    if not repo.increment_uses_if_available(promotion.id):
        db.rollback()
        raise InvalidInputError("Promotion cannot be used right now")
    db.commit()
    db.refresh(promotion)

    if _exhausted(promotion):
        promotion.status = STATUS_FINISHED
        db.commit()
        db.refresh(promotion)
    logger.info(
        "promotion used id=%s uses=%s",
        promotion.id,
        promotion.current_uses,
        extra={"restaurant_id": promotion.restaurant_id},
    )
    return promotion
