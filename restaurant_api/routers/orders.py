from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.deps import get_caller_id, require_platform_admin
from restaurant_api.fsm.order_states import OrderStatus, PaymentMethod
from restaurant_api.models.order import Order
from restaurant_api.services import orders as order_service

router = APIRouter(prefix="/api/orders", tags=["orders"])


class OrderItemIn(BaseModel):
    menu_item_id: int
    quantity: int = Field(..., ge=1)
    note: Optional[str] = Field(default=None, max_length=200)


class OrderCreate(BaseModel):
    restaurant_id: int
    table_id: int
    customer_name: str = Field(..., min_length=2, max_length=100)
    customer_phone: Optional[str] = Field(default=None, max_length=20)
    items: List[OrderItemIn] = Field(..., min_length=1)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    coupon_code: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class OrderUpdate(BaseModel):
    customer_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    customer_phone: Optional[str] = Field(default=None, max_length=20)
    items: Optional[List[OrderItemIn]] = Field(default=None, min_length=1)
    tax: Optional[Decimal] = Field(default=None, ge=0)
    discount: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=500)


class StatusUpdate(BaseModel):
    status: OrderStatus


class PayOrder(BaseModel):
    payment_method: PaymentMethod


class CancelOrder(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=200)


def _money(value) -> float:
    return float(value or 0)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _order_to_dict(o: Order) -> Dict[str, Any]:
    return {
        "id": o.id,
        "order_number": o.order_number,
        "restaurant_id": o.restaurant_id,
        "table_id": o.table_id,
        "customer_name": o.customer_name,
        "customer_phone": o.customer_phone,
        "items": [
            {
                "id": item.id,
                "menu_item_id": item.menu_item_id,
                "name": item.name,
                "quantity": item.quantity,
                "unit_price": _money(item.unit_price),
                "subtotal": _money(item.subtotal),
                "note": item.note,
            }
            for item in o.items
        ],
        "subtotal": _money(o.subtotal),
        "tax": _money(o.tax),
        "manual_discount": _money(o.manual_discount),
        "coupon_discount": _money(o.coupon_discount),
        "discount": _money(o.discount),
        "total": _money(o.total),
        "coupon_code": o.coupon_code,
        "status": o.status,
        "payment_method": o.payment_method,
        "notes": o.notes,
        "delivered_at": _iso(o.delivered_at),
        "paid_at": _iso(o.paid_at),
        "is_active": o.is_active,
        "created_at": _iso(o.created_at),
        "updated_at": _iso(o.updated_at),
    }


def _page_to_dict(rows: list, total: int, page: int, limit: int) -> Dict[str, Any]:
    return {
        "data": [_order_to_dict(o) for o in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


@router.post("", status_code=201)
def create_order(
    payload: OrderCreate,
    redeemer_id: str = Depends(get_caller_id),
    db: Session = Depends(get_db),
):
    order = order_service.create_order(db, payload.model_dump(), redeemer_id=redeemer_id)
    return _order_to_dict(order)


@router.get("")
def list_orders(
    restaurant_id: Optional[int] = None,
    table_id: Optional[int] = None,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    rows, total = order_service.list_orders(
        db,
        restaurant_id=restaurant_id,
        table_id=table_id,
        status=status,
        page=page,
        limit=limit,
    )
    return _page_to_dict(rows, total, page, limit)


@router.get("/number/{order_number}")
def get_order_by_number(order_number: str, db: Session = Depends(get_db)):
    return _order_to_dict(order_service.get_order_by_number(db, order_number))


@router.get("/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db)):
    return _order_to_dict(order_service.get_order(db, order_id))


@router.put("/{order_id}")
def update_order(order_id: int, payload: OrderUpdate, db: Session = Depends(get_db)):
    order = order_service.update_order(db, order_id, payload.model_dump(exclude_unset=True))
    return _order_to_dict(order)


@router.patch("/{order_id}/status")
def update_status(order_id: int, payload: StatusUpdate, db: Session = Depends(get_db)):
    return _order_to_dict(order_service.update_order_status(db, order_id, payload.status))


@router.patch("/{order_id}/pay")
def pay_order(order_id: int, payload: PayOrder, db: Session = Depends(get_db)):
    return _order_to_dict(order_service.pay_order(db, order_id, payload.payment_method))


@router.post("/{order_id}/cancel")
def cancel_order(order_id: int, payload: Optional[CancelOrder] = None, db: Session = Depends(get_db)):
    reason = payload.reason if payload else None
    return _order_to_dict(order_service.cancel_order(db, order_id, reason))


@router.delete("/{order_id}/permanent")
def delete_order_permanent(
    order_id: int,
    _admin=Depends(require_platform_admin),
    db: Session = Depends(get_db),
):
    order_service.delete_order_permanent(db, order_id)
    return {"ok": True, "deleted_id": order_id}
