from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from restaurant_api.core import database
from restaurant_api.services.coupons import append_redemption_entry
from restaurant_api.services.event_bus import event_bus
from restaurant_api.services.order_events import (
    COUPON_REDEMPTION_FAILED,
    ORDER_CANCELLED,
    ORDER_CREATED,
    ORDER_PAID,
    ORDER_STATUS_CHANGED,
)

logger = logging.getLogger(__name__)

REASON_ERROR = "error"


def _with_session(handler):
    def wrapper(payload: dict) -> None:
        db: Session = database.SessionLocal()
        try:
            handler(db, payload)
        finally:
            db.close()

    wrapper.__name__ = handler.__name__
    return wrapper


def handle_order_event(payload: dict) -> None:
    logger.info(
        "order event status=%s previous=%s",
        payload.get("status"),
        payload.get("previous_status"),
        extra={
            "order_id": payload.get("order_id"),
            "order_number": payload.get("order_number"),
            "restaurant_id": payload.get("restaurant_id"),
        },
    )


@_with_session
def handle_coupon_redemption_failed(db: Session, payload: dict) -> None:
    """Write the missing ledger row once; the counter was taken with the order."""
    if payload.get("reason") != REASON_ERROR:
        logger.warning(
            "coupon redemption event ignored reason=%s coupon_id=%s",
            payload.get("reason"),
            payload.get("coupon_id"),
            extra={"order_id": payload.get("order_id")},
        )
        return

    try:
        append_redemption_entry(
            db,
            payload["coupon_id"],
            payload["redeemer_id"],
            order_id=payload.get("order_id"),
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "coupon ledger retry failed coupon_id=%s",
            payload.get("coupon_id"),
            extra={"order_id": payload.get("order_id")},
        )


def register_event_handlers() -> None:
    for event_name in (ORDER_CREATED, ORDER_STATUS_CHANGED, ORDER_PAID, ORDER_CANCELLED):
        event_bus.subscribe(event_name, handle_order_event)
    event_bus.subscribe(COUPON_REDEMPTION_FAILED, handle_coupon_redemption_failed)
