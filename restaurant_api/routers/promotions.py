from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.deps import get_caller_id
from restaurant_api.models.promotion import Promotion
from restaurant_api.services import promotions as promotion_service
from restaurant_api.services.activation import ActivationCommand

router = APIRouter(prefix="/api/promotions", tags=["promotions"])


class PromotionCreate(BaseModel):
    restaurant_id: int
    name: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=10, max_length=500)
    kind: str
    discount_kind: str = "PERCENTAGE"
    discount_value: Decimal = Field(..., ge=0)
    starts_at: datetime
    ends_at: datetime
    menu_item_ids: List[int] = Field(..., min_length=1)
    conditions: Optional[str] = Field(default=None, max_length=500)
    image_url: Optional[str] = Field(default=None, max_length=500)
    minimum_purchase: Decimal = Field(default=Decimal("0"), ge=0)
    max_uses: Optional[int] = Field(default=None, ge=1)


class PromotionUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=3, max_length=100)
    description: Optional[str] = Field(default=None, min_length=10, max_length=500)
    kind: Optional[str] = None
    discount_kind: Optional[str] = None
    discount_value: Optional[Decimal] = Field(default=None, ge=0)
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    menu_item_ids: Optional[List[int]] = Field(default=None, min_length=1)
    conditions: Optional[str] = Field(default=None, max_length=500)
    image_url: Optional[str] = Field(default=None, max_length=500)
    minimum_purchase: Optional[Decimal] = Field(default=None, ge=0)
    max_uses: Optional[int] = Field(default=None, ge=1)


def _money(value) -> Optional[float]:
    return float(value) if value is not None else None


def _promotion_to_dict(p: Promotion) -> Dict[str, Any]:
    return {
        "id": p.id,
        "restaurant_id": p.restaurant_id,
        "name": p.name,
        "description": p.description,
        "kind": p.kind,
        "discount_kind": p.discount_kind,
        "discount_value": _money(p.discount_value),
        "starts_at": p.starts_at.isoformat() if p.starts_at else None,
        "ends_at": p.ends_at.isoformat() if p.ends_at else None,
        "menu_item_ids": list(p.menu_item_ids or []),
        "conditions": p.conditions,
        "image_url": p.image_url,
        "minimum_purchase": _money(p.minimum_purchase),
        "max_uses": p.max_uses,
        "current_uses": p.current_uses,
        "status": p.status,
        "created_by": p.created_by,
    }


@router.post("", status_code=201)
def create_promotion(
    payload: PromotionCreate,
    created_by: str = Depends(get_caller_id),
    db: Session = Depends(get_db),
):
    promotion = promotion_service.create_promotion(db, payload.model_dump(), created_by=created_by)
    return _promotion_to_dict(promotion)


@router.get("")
def list_promotions(
    restaurant_id: Optional[int] = None,
    kind: Optional[str] = None,
    status: Optional[str] = None,
    current: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    rows, total = promotion_service.list_promotions(
        db,
        restaurant_id=restaurant_id,
        kind=kind,
        status=status,
        current_only=current,
        page=page,
        limit=limit,
    )
    return {
        "data": [_promotion_to_dict(p) for p in rows],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit},
    }


@router.get("/restaurant/{restaurant_id}/current")
def list_current_promotions(restaurant_id: int, db: Session = Depends(get_db)):
    return [_promotion_to_dict(p) for p in promotion_service.list_current_promotions(db, restaurant_id)]


@router.get("/{promotion_id}")
def get_promotion(promotion_id: int, db: Session = Depends(get_db)):
    return _promotion_to_dict(promotion_service.get_promotion(db, promotion_id))


@router.put("/{promotion_id}")
def update_promotion(promotion_id: int, payload: PromotionUpdate, db: Session = Depends(get_db)):
    promotion = promotion_service.update_promotion(db, promotion_id, payload.model_dump(exclude_unset=True))
    return _promotion_to_dict(promotion)


@router.patch("/{promotion_id}/activate")
def activate_promotion(promotion_id: int, db: Session = Depends(get_db)):
    promotion = promotion_service.set_promotion_status(db, promotion_id, ActivationCommand.ACTIVATE)
    return _promotion_to_dict(promotion)


@router.patch("/{promotion_id}/deactivate")
def deactivate_promotion(promotion_id: int, db: Session = Depends(get_db)):
    promotion = promotion_service.set_promotion_status(db, promotion_id, ActivationCommand.DEACTIVATE)
    return _promotion_to_dict(promotion)


@router.post("/{promotion_id}/use")
def use_promotion(promotion_id: int, db: Session = Depends(get_db)):
    promotion = promotion_service.use_promotion(db, promotion_id)
    return {
        "promotion": _promotion_to_dict(promotion),
        "discount": {"kind": promotion.discount_kind, "value": _money(promotion.discount_value)},
    }


@router.delete("/{promotion_id}")
def delete_promotion(promotion_id: int, db: Session = Depends(get_db)):
    promotion = promotion_service.delete_promotion(db, promotion_id)
    return {"ok": True, "deleted_id": promotion.id}
