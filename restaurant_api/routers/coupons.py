from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.models.coupon import Coupon
from restaurant_api.services import coupons as coupon_service
from restaurant_api.services.activation import ActivationCommand

router = APIRouter(prefix="/api/coupons", tags=["coupons"])


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=3, max_length=20)
    description: Optional[str] = Field(default=None, max_length=500)
    kind: str = "PERCENTAGE"
    percentage: Optional[Decimal] = None
    fixed_amount: Optional[Decimal] = None
    starts_at: Optional[datetime] = None
    expires_at: datetime
    max_redemptions: Optional[int] = None
    minimum_subtotal: Decimal = Field(default=Decimal("0"))
    discount_cap: Optional[Decimal] = None
    restaurant_id: Optional[int] = None


class CouponUpdate(BaseModel):
    code: Optional[str] = Field(default=None, min_length=3, max_length=20)
    description: Optional[str] = Field(default=None, max_length=500)
    kind: Optional[str] = None
    percentage: Optional[Decimal] = None
    fixed_amount: Optional[Decimal] = None
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    max_redemptions: Optional[int] = None
    minimum_subtotal: Optional[Decimal] = None
    discount_cap: Optional[Decimal] = None
    restaurant_id: Optional[int] = None


class CouponValidateRequest(BaseModel):
    code: str
    subtotal: Decimal = Field(..., ge=0)
    restaurant_id: int


def _money(value) -> Optional[float]:
    return float(value) if value is not None else None


def _coupon_to_dict(c: Coupon) -> Dict[str, Any]:
    return {
        "id": c.id,
        "code": c.code,
        "description": c.description,
        "kind": c.kind,
        "percentage": _money(c.percentage),
        "fixed_amount": _money(c.fixed_amount),
        "starts_at": c.starts_at.isoformat() if c.starts_at else None,
        "expires_at": c.expires_at.isoformat() if c.expires_at else None,
        "max_redemptions": c.max_redemptions,
        "current_redemptions": c.current_redemptions,
        "minimum_subtotal": _money(c.minimum_subtotal),
        "discount_cap": _money(c.discount_cap),
        "restaurant_id": c.restaurant_id,
        "active": c.active,
    }


@router.post("", status_code=201)
def create_coupon(payload: CouponCreate, db: Session = Depends(get_db)):
    return _coupon_to_dict(coupon_service.create_coupon(db, payload.model_dump()))


@router.get("")
def list_coupons(
    restaurant_id: Optional[int] = None,
    active: Optional[bool] = True,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    rows, total = coupon_service.list_coupons(
        db, restaurant_id=restaurant_id, active=active, page=page, limit=limit
    )
    return {
        "data": [_coupon_to_dict(c) for c in rows],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit},
    }


@router.post("/validate")
def validate_coupon(payload: CouponValidateRequest, db: Session = Depends(get_db)):
    result = coupon_service.validate_coupon(db, payload.code, payload.subtotal, payload.restaurant_id)
    return {
        "valid": result["valid"],
        "discount": float(result["discount"]),
        "final_amount": float(result["final_amount"]),
    }


@router.get("/restaurant/{restaurant_id}/current")
def list_current_coupons(restaurant_id: int, db: Session = Depends(get_db)):
    return [_coupon_to_dict(c) for c in coupon_service.list_current_coupons(db, restaurant_id)]


@router.get("/code/{code}")
def get_coupon_by_code(code: str, db: Session = Depends(get_db)):
    return _coupon_to_dict(coupon_service.get_coupon_by_code(db, code))


@router.get("/{coupon_id}")
def get_coupon(coupon_id: int, db: Session = Depends(get_db)):
    return _coupon_to_dict(coupon_service.get_coupon(db, coupon_id))


@router.put("/{coupon_id}")
def update_coupon(coupon_id: int, payload: CouponUpdate, db: Session = Depends(get_db)):
    coupon = coupon_service.update_coupon(db, coupon_id, payload.model_dump(exclude_unset=True))
    return _coupon_to_dict(coupon)


@router.patch("/{coupon_id}/activate")
def activate_coupon(coupon_id: int, db: Session = Depends(get_db)):
    return _coupon_to_dict(coupon_service.set_coupon_active(db, coupon_id, ActivationCommand.ACTIVATE))


@router.patch("/{coupon_id}/deactivate")
def deactivate_coupon(coupon_id: int, db: Session = Depends(get_db)):
    return _coupon_to_dict(coupon_service.set_coupon_active(db, coupon_id, ActivationCommand.DEACTIVATE))


@router.delete("/{coupon_id}")
def delete_coupon(coupon_id: int, db: Session = Depends(get_db)):
    coupon_service.delete_coupon(db, coupon_id)
    return {"ok": True, "deleted_id": coupon_id}
