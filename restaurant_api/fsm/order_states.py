"""Order lifecycle.

PENDING -> IN_PREPARATION -> READY -> SERVED -> PAID, or -> CANCELLED from any
non-terminal state. The status-advance guard is a terminal lock, not an
adjacency check: any target may be reached from a non-terminal state.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from restaurant_api.core.errors import ConflictError, InvalidInputError


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    IN_PREPARATION = "IN_PREPARATION"
    READY = "READY"
    SERVED = "SERVED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    PENDING = "PENDING"


TERMINAL_STATUSES = frozenset({OrderStatus.PAID, OrderStatus.CANCELLED})


def normalize_status(status) -> OrderStatus:
    if isinstance(status, OrderStatus):
        return status
    try:
        return OrderStatus((status or "").strip().upper())
    except ValueError as exc:
        raise InvalidInputError(f"Invalid order status: {status}") from exc


def normalize_payment_method(method) -> PaymentMethod:
    if isinstance(method, PaymentMethod):
        return method
    try:
        return PaymentMethod((method or "").strip().upper())
    except ValueError as exc:
        raise InvalidInputError(f"Invalid payment method: {method}") from exc


def is_terminal(status) -> bool:
    return normalize_status(status) in TERMINAL_STATUSES


def ensure_editable(order) -> None:
    if normalize_status(order.status) != OrderStatus.PENDING:
        raise InvalidInputError("Only PENDING orders can be edited")


def ensure_not_terminal(order) -> None:
    current = normalize_status(order.status)
    if current in TERMINAL_STATUSES:
        raise ConflictError(f"Cannot change the status of a {current.value.lower()} order")


def transition(order, target, *, now: datetime | None = None) -> OrderStatus:
    """Move ``order`` to ``target`` and stamp the transition timestamps.

    Returns the previous status.
    """
    target_status = normalize_status(target)
    ensure_not_terminal(order)
    previous = normalize_status(order.status)
    now = now or datetime.now(timezone.utc)

    order.status = target_status.value
    if target_status == OrderStatus.READY:
        order.delivered_at = now
    elif target_status == OrderStatus.PAID:
        order.paid_at = now
    return previous


def pay(order, payment_method, *, now: datetime | None = None) -> OrderStatus:
    current = normalize_status(order.status)
    if current == OrderStatus.CANCELLED:
        raise ConflictError("Cannot pay a cancelled order")
    if current == OrderStatus.PAID:
        raise ConflictError("Order has already been paid")

    method = normalize_payment_method(payment_method)
    if method == PaymentMethod.PENDING:
        raise InvalidInputError("A payment method is required to pay an order")

    previous = transition(order, OrderStatus.PAID, now=now)
    order.payment_method = method.value
    return previous


def cancel(order, reason: str | None = None) -> OrderStatus:
    current = normalize_status(order.status)
    if current == OrderStatus.PAID:
        raise ConflictError("Cannot cancel an order that has already been paid")
    if current == OrderStatus.CANCELLED:
        raise ConflictError("Order is already cancelled")

    order.status = OrderStatus.CANCELLED.value
    reason = (reason or "").strip()
    if reason:
        order.notes = f"{order.notes} | Cancelled: {reason}" if order.notes else f"Cancelled: {reason}"
    return current
