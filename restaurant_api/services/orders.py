from __future__ import annotations

import logging
import random
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from restaurant_api.core.config import ANONYMOUS_REDEEMER_ID
from restaurant_api.core.errors import ConflictError, InvalidInputError, NotFoundError
from restaurant_api.fsm.order_states import (
    OrderStatus,
    PaymentMethod,
    cancel,
    ensure_editable,
    normalize_status,
    pay,
    transition,
)
from restaurant_api.models.order import Order
from restaurant_api.models.order_item import OrderItem
from restaurant_api.repositories import CatalogLookup, CouponRepository, OrderRepository, SqlCatalogLookup
from restaurant_api.services.coupons import (
    append_redemption_entry,
    calculate_discount,
    claim_redemption,
    resolve_coupon_for_order,
)
from restaurant_api.services.order_events import (
    emit_coupon_redemption_failed,
    emit_order_created,
    emit_order_status_changed,
)
from restaurant_api.services.order_numbers import generate_order_number, is_valid_order_number
from restaurant_api.services.pricing import (
    ZERO,
    TotalPolicy,
    compute_subtotal,
    compute_total,
    line_subtotal,
    to_money,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _commit(db: Session) -> None:
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConflictError("Order was modified by another request, reload and try again") from exc
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Order conflicts with an existing record") from exc


def _non_negative(value, field: str):
    amount = to_money(value)
    if amount < ZERO:
        raise InvalidInputError(f"{field} cannot be negative")
    return amount


def _snapshot_items(catalog: CatalogLookup, restaurant_id: int, requested: list[dict]) -> list[OrderItem]:
    if not requested:
        raise InvalidInputError("An order needs at least one item")

    checked = []
    for entry in requested:
        quantity = int(entry.get("quantity") or 0)
        if quantity < 1:
            raise InvalidInputError("Item quantity must be at least 1")
        note = (entry.get("note") or "").strip() or None
        if note and len(note) > 200:
            raise InvalidInputError("Item note must be at most 200 characters")
        checked.append((entry.get("menu_item_id"), quantity, note))

    # every rejected item is reported, not just the first one
    missing: list[str] = []
    refused: list[str] = []
    resolved = []
    for menu_item_id, quantity, note in checked:
        menu_item = catalog.get_menu_item_by_id(menu_item_id)
        if not menu_item or not menu_item.active:
            missing.append(f"{menu_item_id} (not found)")
        elif menu_item.restaurant_id != restaurant_id:
            refused.append(f"{menu_item.name} (belongs to another restaurant)")
        elif not menu_item.available:
            refused.append(f"{menu_item.name} (not available)")
        else:
            resolved.append((menu_item, quantity, note))

    if missing or refused:
        message = "Menu items cannot be ordered: " + ", ".join(missing + refused)
        raise NotFoundError(message) if missing else ConflictError(message)

    lines: list[OrderItem] = []
    for menu_item, quantity, note in resolved:
        unit_price = to_money(menu_item.price)
        lines.append(
            OrderItem(
                menu_item_id=menu_item.id,
                name=menu_item.name,
                unit_price=unit_price,
                quantity=quantity,
                subtotal=line_subtotal(quantity, unit_price),
                note=note,
            )
        )
    return lines


def _resolve_table(catalog: CatalogLookup, restaurant_id: int, table_id: int):
    table = catalog.get_table_by_id(table_id)
    if not table or not table.active or table.restaurant_id != restaurant_id:
        raise NotFoundError("Table not found")
    return table


def _record_coupon_redemption(
    db: Session,
    *,
    coupon_id: int,
    order_id: int,
    redeemer_id: str,
    now: datetime,
) -> None:
    """Ledger row after the order is committed; failures never undo the order.

    The redemption counter was already claimed in the order's transaction.
    """
    try:
        append_redemption_entry(db, coupon_id, redeemer_id, order_id=order_id, now=now)
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "coupon ledger write failed coupon_id=%s",
            coupon_id,
            extra={"order_id": order_id},
        )
        emit_coupon_redemption_failed(
            coupon_id=coupon_id, order_id=order_id, redeemer_id=redeemer_id, reason="error"
        )


def create_order(
    db: Session,
    payload: dict,
    *,
    redeemer_id: str | None = None,
    catalog: CatalogLookup | None = None,
    now: datetime | None = None,
    rng: random.Random | None = None,
    total_policy: TotalPolicy | None = None,
    max_attempts: int | None = None,
) -> Order:
    now = now or _utcnow()
    catalog = catalog or SqlCatalogLookup(db)
    orders = OrderRepository(db)

    restaurant_id = payload["restaurant_id"]
    customer_name = (payload.get("customer_name") or "").strip()
    if not 2 <= len(customer_name) <= 100:
        raise InvalidInputError("Customer name must be between 2 and 100 characters")
    tax = _non_negative(payload.get("tax"), "Tax")
    manual_discount = _non_negative(payload.get("discount"), "Discount")

    table = _resolve_table(catalog, restaurant_id, payload["table_id"])
    lines = _snapshot_items(catalog, restaurant_id, payload.get("items") or [])
    subtotal = compute_subtotal(line.subtotal for line in lines)

    coupon = None
    coupon_discount = ZERO
    if payload.get("coupon_code"):
        coupon, coupon_discount = resolve_coupon_for_order(
            db, payload["coupon_code"], restaurant_id, subtotal, now=now
        )

    order = Order(
        order_number=generate_order_number(
            orders.order_number_exists, now=now, rng=rng, max_attempts=max_attempts
        ),
        restaurant_id=restaurant_id,
        table_id=table.id,
        customer_name=customer_name,
        customer_phone=(payload.get("customer_phone") or "").strip() or None,
        subtotal=subtotal,
        tax=tax,
        manual_discount=manual_discount,
        coupon_discount=coupon_discount,
        total=compute_total(subtotal, tax, manual_discount, coupon_discount, policy=total_policy),
        coupon_id=coupon.id if coupon else None,
        coupon_code=coupon.code if coupon else None,
        status=OrderStatus.PENDING.value,
        payment_method=PaymentMethod.PENDING.value,
        notes=(payload.get("notes") or "").strip() or None,
        is_active=True,
        items=lines,
    )
    orders.save_order(order)
    if coupon is not None:
        claim_redemption(db, coupon.id)
    _commit(db)
    db.refresh(order)
    logger.info(
        "order created total=%s items=%s",
        order.total,
        len(lines),
        extra={"order_id": order.id, "order_number": order.order_number, "restaurant_id": restaurant_id},
    )

    if coupon is not None:
        _record_coupon_redemption(
            db,
            coupon_id=coupon.id,
            order_id=order.id,
            redeemer_id=redeemer_id or ANONYMOUS_REDEEMER_ID,
            now=now,
        )
        db.refresh(order)

    emit_order_created(order)
    return order


def get_order(db: Session, order_id: int) -> Order:
    order = OrderRepository(db).find_order_by_id(order_id)
    if not order or not order.is_active:
        raise NotFoundError("Order not found")
    return order


def get_order_by_number(db: Session, order_number: str) -> Order:
    order_number = (order_number or "").strip().upper()
    if not is_valid_order_number(order_number):
        raise InvalidInputError("Order number must look like ORD-YYYYMMDD-NNNNN")
    order = OrderRepository(db).find_order_by_number(order_number)
    if not order or not order.is_active:
        raise NotFoundError("Order not found")
    return order


def list_orders(
    db: Session,
    *,
    restaurant_id: int | None = None,
    table_id: int | None = None,
    status: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Order], int]:
    status_value = normalize_status(status).value if status else None
    return OrderRepository(db).list_orders(
        restaurant_id=restaurant_id,
        table_id=table_id,
        status=status_value,
        page=page,
        limit=limit,
    )


def update_order(
    db: Session,
    order_id: int,
    changes: dict,
    *,
    catalog: CatalogLookup | None = None,
    total_policy: TotalPolicy | None = None,
) -> Order:
    """Edit a PENDING order. Items are re-snapshotted and the coupon re-priced, never re-redeemed."""
    order = get_order(db, order_id)
    ensure_editable(order)
    catalog = catalog or SqlCatalogLookup(db)

    customer_name = order.customer_name
    if changes.get("customer_name") is not None:
        customer_name = changes["customer_name"].strip()
        if not 2 <= len(customer_name) <= 100:
            raise InvalidInputError("Customer name must be between 2 and 100 characters")
    tax = _non_negative(changes["tax"], "Tax") if changes.get("tax") is not None else order.tax
    manual_discount = (
        _non_negative(changes["discount"], "Discount")
        if changes.get("discount") is not None
        else order.manual_discount
    )
    lines = None
    if changes.get("items") is not None:
        lines = _snapshot_items(catalog, order.restaurant_id, changes["items"])

    subtotal = compute_subtotal(line.subtotal for line in (lines if lines is not None else order.items))
    coupon_discount = order.coupon_discount
    if order.coupon_id is not None:
        coupon = CouponRepository(db).find_coupon_by_id(order.coupon_id)
        if coupon is not None:
            minimum = to_money(coupon.minimum_subtotal)
            if subtotal < minimum:
                raise InvalidInputError(f"Order subtotal must be at least {minimum} to use this coupon")
            coupon_discount = calculate_discount(coupon, subtotal)

    order.customer_name = customer_name
    if "customer_phone" in changes:
        order.customer_phone = (changes["customer_phone"] or "").strip() or None
    if "notes" in changes:
        order.notes = (changes["notes"] or "").strip() or None
    if lines is not None:
        order.items = lines
    order.tax = tax
    order.manual_discount = manual_discount
    order.coupon_discount = coupon_discount
    order.subtotal = subtotal
    order.total = compute_total(subtotal, tax, manual_discount, coupon_discount, policy=total_policy)
    _commit(db)
    db.refresh(order)
    logger.info(
        "order updated total=%s",
        order.total,
        extra={"order_id": order.id, "order_number": order.order_number},
    )
    return order


def update_order_status(db: Session, order_id: int, target, *, now: datetime | None = None) -> Order:
    order = get_order(db, order_id)
    previous = transition(order, target, now=now or _utcnow())
    _commit(db)
    db.refresh(order)
    logger.info(
        "order status changed %s -> %s",
        previous.value,
        order.status,
        extra={"order_id": order.id, "order_number": order.order_number},
    )
    emit_order_status_changed(order, previous)
    return order


def pay_order(db: Session, order_id: int, payment_method, *, now: datetime | None = None) -> Order:
    order = get_order(db, order_id)
    previous = pay(order, payment_method, now=now or _utcnow())
    _commit(db)
    db.refresh(order)
    logger.info(
        "order paid method=%s total=%s",
        order.payment_method,
        order.total,
        extra={"order_id": order.id, "order_number": order.order_number},
    )
    emit_order_status_changed(order, previous)
    return order


def cancel_order(db: Session, order_id: int, reason: str | None = None) -> Order:
    order = get_order(db, order_id)
    previous = cancel(order, reason)
    _commit(db)
    db.refresh(order)
    logger.info(
        "order cancelled from %s",
        previous.value,
        extra={"order_id": order.id, "order_number": order.order_number},
    )
    emit_order_status_changed(order, previous)
    return order


def delete_order_permanent(db: Session, order_id: int) -> None:
    """Hard delete, ignoring state and the soft-active flag."""
    repo = OrderRepository(db)
    order = repo.find_order_by_id(order_id)
    if not order:
        raise NotFoundError("Order not found")
    order_number = order.order_number
    repo.delete_order(order)
    _commit(db)
    logger.warning(
        "order permanently deleted",
        extra={"order_id": order_id, "order_number": order_number},
    )
