from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.models.inventory import InventoryItem
from restaurant_api.services import inventory as inventory_service

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


class InventoryItemCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    stock: Decimal = Field(default=Decimal("0"), ge=0)
    unit: str


class InventoryItemUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    stock: Optional[Decimal] = Field(default=None, ge=0)
    unit: Optional[str] = None


def _pagination(total: int, page: int, limit: int) -> Dict[str, int]:
    return {"page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit}


def _item_to_dict(item: InventoryItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "name": item.name,
        "stock": float(item.stock or 0),
        "unit": item.unit,
        "active": item.active,
        "created_at": item.created_at.isoformat() if item.created_at else None,
        "updated_at": item.updated_at.isoformat() if item.updated_at else None,
    }


@router.post("", status_code=201)
def create_inventory_item(payload: InventoryItemCreate, db: Session = Depends(get_db)):
    return _item_to_dict(inventory_service.create_inventory_item(db, payload.model_dump()))


@router.get("")
def list_inventory_items(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    rows, total = inventory_service.list_inventory_items(db, page=page, limit=limit)
    return {"data": [_item_to_dict(item) for item in rows], "pagination": _pagination(total, page, limit)}


@router.get("/{item_id}")
def get_inventory_item(item_id: int, db: Session = Depends(get_db)):
    return _item_to_dict(inventory_service.get_inventory_item(db, item_id))


@router.put("/{item_id}")
def update_inventory_item(item_id: int, payload: InventoryItemUpdate, db: Session = Depends(get_db)):
    item = inventory_service.update_inventory_item(db, item_id, payload.model_dump(exclude_unset=True))
    return _item_to_dict(item)


@router.delete("/{item_id}")
def delete_inventory_item(item_id: int, db: Session = Depends(get_db)):
    item = inventory_service.delete_inventory_item(db, item_id)
    return {"ok": True, "deleted_id": item.id}
