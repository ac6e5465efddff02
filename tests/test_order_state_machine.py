from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import update

from restaurant_api.core.errors import CONFLICT, VALIDATION, DomainError
from restaurant_api.fsm.order_states import OrderStatus, cancel, ensure_editable, pay, transition
from restaurant_api.models.coupon import CouponRedemption
from restaurant_api.models.order import Order
from restaurant_api.services.orders import (
    cancel_order,
    create_order,
    pay_order,
    update_order,
    update_order_status,
)
from tests.fixtures_data import FRIES_ID, SOLD_OUT_PIE_ID, add_coupon, build_session, order_payload, seed_catalog

NOW = datetime(2026, 2, 2, 19, 45, tzinfo=timezone.utc)


def _order(status="PENDING", notes=None):
    return SimpleNamespace(
        status=status,
        notes=notes,
        payment_method="PENDING",
        delivered_at=None,
        paid_at=None,
    )


@pytest.mark.parametrize("target", list(OrderStatus))
def test_pending_order_can_move_to_any_state(target):
    order = _order()

    previous = transition(order, target, now=NOW)

    assert previous == OrderStatus.PENDING
    assert order.status == target.value


def test_states_can_be_skipped():
    order = _order()

    transition(order, "served", now=NOW)

    assert order.status == "SERVED"


@pytest.mark.parametrize("terminal", ["PAID", "CANCELLED"])
@pytest.mark.parametrize("target", list(OrderStatus))
def test_terminal_orders_reject_every_transition(terminal, target):
    order = _order(status=terminal)

    with pytest.raises(DomainError) as exc_info:
        transition(order, target, now=NOW)

    assert exc_info.value.kind == CONFLICT
    assert order.status == terminal


@pytest.mark.parametrize("terminal", ["PAID", "CANCELLED"])
def test_terminal_orders_reject_cancel(terminal):
    with pytest.raises(DomainError) as exc_info:
        cancel(_order(status=terminal), "too late")

    assert exc_info.value.kind == CONFLICT


def test_ready_stamps_delivery_time_and_paid_stamps_payment_time():
    order = _order()

    transition(order, OrderStatus.READY, now=NOW)
    pay(order, "CARD", now=NOW)

    assert order.delivered_at == NOW
    assert order.paid_at == NOW
    assert order.status == "PAID"
    assert order.payment_method == "CARD"


def test_paying_twice_is_a_conflict():
    order = _order(status="PAID")

    with pytest.raises(DomainError) as exc_info:
        pay(order, "CASH", now=NOW)

    assert exc_info.value.kind == CONFLICT


def test_paying_requires_a_real_payment_method():
    order = _order(status="SERVED")

    with pytest.raises(DomainError) as exc_info:
        pay(order, "PENDING", now=NOW)
    with pytest.raises(DomainError) as bogus_info:
        pay(order, "BITCOIN", now=NOW)

    assert exc_info.value.kind == VALIDATION
    assert bogus_info.value.kind == VALIDATION
    assert order.status == "SERVED"


def test_unknown_status_is_a_validation_error():
    with pytest.raises(DomainError) as exc_info:
        transition(_order(), "DELIVERING", now=NOW)

    assert exc_info.value.kind == VALIDATION


@pytest.mark.parametrize("status", ["PENDING", "IN_PREPARATION", "READY", "SERVED"])
def test_cancel_from_non_terminal_states(status):
    order = _order(status=status, notes="window seat")

    cancel(order, "customer left")

    assert order.status == "CANCELLED"
    assert order.notes == "window seat | Cancelled: customer left"


def test_cancel_without_notes_or_reason():
    with_reason = _order()
    without_reason = _order()

    cancel(with_reason, "kitchen closed")
    cancel(without_reason)

    assert with_reason.notes == "Cancelled: kitchen closed"
    assert without_reason.notes is None


def test_only_pending_orders_are_editable():
    ensure_editable(_order())

    with pytest.raises(DomainError) as exc_info:
        ensure_editable(_order(status="IN_PREPARATION"))

    assert exc_info.value.kind == VALIDATION


@pytest.fixture
def db():
    session = build_session()
    seed_catalog(session)
    yield session
    session.close()


def test_status_changes_are_persisted_with_timestamps(db):
    order = create_order(db, order_payload())

    update_order_status(db, order.id, "IN_PREPARATION")
    update_order_status(db, order.id, "READY")
    paid = pay_order(db, order.id, "CASH")

    assert paid.status == "PAID"
    assert paid.payment_method == "CASH"
    assert paid.delivered_at is not None
    assert paid.paid_at is not None

    with pytest.raises(DomainError) as exc_info:
        cancel_order(db, order.id, "changed mind")
    assert exc_info.value.kind == CONFLICT


def test_concurrent_modification_is_a_conflict(db):
    order = create_order(db, order_payload())
    assert order.version_id == 1

    # Another writer bumps the row behind this session's back.
    db.execute(
        update(Order)
        .where(Order.id == order.id)
        .values(version_id=Order.version_id + 1, notes="edited elsewhere")
        .execution_options(synchronize_session=False)
    )

    with pytest.raises(DomainError) as exc_info:
        update_order_status(db, order.id, "IN_PREPARATION")

    assert exc_info.value.kind == CONFLICT
    fresh = db.query(Order).filter(Order.id == order.id).one()
    db.refresh(fresh)
    assert fresh.status == "PENDING"


def test_each_successful_write_bumps_the_version(db):
    order = create_order(db, order_payload())

    updated = update_order_status(db, order.id, "IN_PREPARATION")

    assert updated.version_id == 2


def test_pending_order_update_resnapshots_items_and_reprices_coupon(db):
    coupon = add_coupon(db, "TENOFF", percentage=Decimal("10"))
    order = create_order(db, order_payload(coupon_code="TENOFF"))
    assert order.total == Decimal("25.00")

    updated = update_order(
        db,
        order.id,
        {
            "items": [{"menu_item_id": FRIES_ID, "quantity": 4}],
            "tax": "1.00",
            "customer_name": "Maria L.",
        },
    )

    assert [(item.name, item.quantity) for item in updated.items] == [("Fries", 4)]
    assert updated.subtotal == Decimal("20.00")
    assert updated.coupon_discount == Decimal("2.00")
    assert updated.total == Decimal("19.00")
    assert updated.customer_name == "Maria L."
    db.refresh(coupon)
    assert coupon.current_redemptions == 1
    assert db.query(CouponRedemption).count() == 1


def test_pending_order_update_rechecks_coupon_minimum(db):
    add_coupon(db, "MIN20", minimum_subtotal=Decimal("20.00"))
    order = create_order(db, order_payload(coupon_code="MIN20"))

    with pytest.raises(DomainError) as exc_info:
        update_order(db, order.id, {"items": [{"menu_item_id": FRIES_ID, "quantity": 1}]})

    assert exc_info.value.kind == VALIDATION


def test_update_rejects_unavailable_items(db):
    order = create_order(db, order_payload())

    with pytest.raises(DomainError) as exc_info:
        update_order(db, order.id, {"items": [{"menu_item_id": SOLD_OUT_PIE_ID, "quantity": 1}]})

    assert exc_info.value.kind == CONFLICT


def test_non_pending_order_cannot_be_edited(db):
    order = create_order(db, order_payload())
    update_order_status(db, order.id, "IN_PREPARATION")

    with pytest.raises(DomainError) as exc_info:
        update_order(db, order.id, {"tax": "3.00"})

    assert exc_info.value.kind == VALIDATION
