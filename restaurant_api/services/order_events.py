from __future__ import annotations

from restaurant_api.models.order import Order
from restaurant_api.services.event_bus import event_bus

ORDER_CREATED = "order.created"
ORDER_STATUS_CHANGED = "order.status.changed"
ORDER_PAID = "order.paid"
ORDER_CANCELLED = "order.cancelled"
COUPON_REDEMPTION_FAILED = "coupon.redemption_failed"


def _status_value(status) -> str | None:
    if status is None:
        return None
    return str(getattr(status, "value", status)).strip().upper()


def build_order_payload(order: Order, previous_status=None) -> dict:
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "restaurant_id": order.restaurant_id,
        "table_id": order.table_id,
        "status": _status_value(order.status),
        "previous_status": _status_value(previous_status),
        "payment_method": order.payment_method,
        "customer_name": order.customer_name,
        "total": str(order.total),
        "coupon_code": order.coupon_code,
    }


def emit_order_created(order: Order) -> None:
    event_bus.emit(ORDER_CREATED, build_order_payload(order))


def emit_order_status_changed(order: Order, previous_status) -> None:
    if _status_value(previous_status) == _status_value(order.status):
        return
    payload = build_order_payload(order, previous_status=previous_status)
    event_bus.emit(ORDER_STATUS_CHANGED, payload)
    if payload["status"] == "PAID":
        event_bus.emit(ORDER_PAID, payload)
    elif payload["status"] == "CANCELLED":
        event_bus.emit(ORDER_CANCELLED, payload)


def emit_coupon_redemption_failed(
    *,
    coupon_id: int,
    order_id: int,
    redeemer_id: str,
    reason: str,
) -> None:
    event_bus.emit(
        COUPON_REDEMPTION_FAILED,
        {
            "coupon_id": coupon_id,
            "order_id": order_id,
            "redeemer_id": redeemer_id,
            "reason": reason,
        },
    )
