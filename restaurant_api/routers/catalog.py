from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.models.menu_item import MenuItem
from restaurant_api.models.restaurant import Restaurant
from restaurant_api.models.table import DiningTable
from restaurant_api.services import catalog as catalog_service
from restaurant_api.services.activation import ActivationCommand

restaurants_router = APIRouter(prefix="/api/restaurants", tags=["restaurants"])
menu_items_router = APIRouter(prefix="/api/menu-items", tags=["menu-items"])
tables_router = APIRouter(prefix="/api/tables", tags=["tables"])


class RestaurantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    address: str = Field(..., min_length=1, max_length=200)
    category: str
    schedule: Optional[str] = None


class RestaurantUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    address: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[str] = None
    schedule: Optional[str] = None


class MenuItemCreate(BaseModel):
    restaurant_id: int
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    category: str
    ingredients: List[str] = Field(default_factory=list)
    photo_url: Optional[str] = Field(default=None, max_length=500)
    available: bool = True


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    category: Optional[str] = None
    ingredients: Optional[List[str]] = None
    photo_url: Optional[str] = Field(default=None, max_length=500)


class AvailabilityUpdate(BaseModel):
    available: bool


class TableCreate(BaseModel):
    restaurant_id: int
    number: int = Field(..., ge=1)
    capacity: int = Field(..., ge=1)
    location: Optional[str] = Field(default=None, max_length=100)
    joinable: bool = True


class TableUpdate(BaseModel):
    number: Optional[int] = Field(default=None, ge=1)
    capacity: Optional[int] = Field(default=None, ge=1)
    location: Optional[str] = Field(default=None, max_length=100)
    joinable: Optional[bool] = None


def _pagination(total: int, page: int, limit: int) -> Dict[str, int]:
    return {"page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit}


def _restaurant_to_dict(r: Restaurant) -> Dict[str, Any]:
    return {
        "id": r.id,
        "name": r.name,
        "address": r.address,
        "category": r.category,
        "schedule": r.schedule,
        "active": r.active,
    }


def _menu_item_to_dict(m: MenuItem) -> Dict[str, Any]:
    return {
        "id": m.id,
        "restaurant_id": m.restaurant_id,
        "name": m.name,
        "description": m.description,
        "price": float(m.price or 0),
        "category": m.category,
        "ingredients": list(m.ingredients or []),
        "photo_url": m.photo_url,
        "active": m.active,
        "available": m.available,
    }


def _table_to_dict(t: DiningTable) -> Dict[str, Any]:
    return {
        "id": t.id,
        "restaurant_id": t.restaurant_id,
        "number": t.number,
        "capacity": t.capacity,
        "location": t.location,
        "joinable": t.joinable,
        "active": t.active,
    }


# Restaurants


@restaurants_router.post("", status_code=201)
def create_restaurant(payload: RestaurantCreate, db: Session = Depends(get_db)):
    return _restaurant_to_dict(catalog_service.create_restaurant(db, payload.model_dump()))


@restaurants_router.get("")
def list_restaurants(
    active: Optional[bool] = True,
    category: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    rows, total = catalog_service.list_restaurants(db, active=active, category=category, page=page, limit=limit)
    return {"data": [_restaurant_to_dict(r) for r in rows], "pagination": _pagination(total, page, limit)}


@restaurants_router.get("/{restaurant_id}")
def get_restaurant(restaurant_id: int, db: Session = Depends(get_db)):
    return _restaurant_to_dict(catalog_service.get_restaurant(db, restaurant_id))


@restaurants_router.put("/{restaurant_id}")
def update_restaurant(restaurant_id: int, payload: RestaurantUpdate, db: Session = Depends(get_db)):
    restaurant = catalog_service.update_restaurant(db, restaurant_id, payload.model_dump(exclude_unset=True))
    return _restaurant_to_dict(restaurant)


@restaurants_router.patch("/{restaurant_id}/activate")
def activate_restaurant(restaurant_id: int, db: Session = Depends(get_db)):
    restaurant = catalog_service.set_restaurant_active(db, restaurant_id, ActivationCommand.ACTIVATE)
    return _restaurant_to_dict(restaurant)


@restaurants_router.patch("/{restaurant_id}/deactivate")
def deactivate_restaurant(restaurant_id: int, db: Session = Depends(get_db)):
    restaurant = catalog_service.set_restaurant_active(db, restaurant_id, ActivationCommand.DEACTIVATE)
    return _restaurant_to_dict(restaurant)


# Menu items


@menu_items_router.post("", status_code=201)
def create_menu_item(payload: MenuItemCreate, db: Session = Depends(get_db)):
    return _menu_item_to_dict(catalog_service.create_menu_item(db, payload.model_dump()))


@menu_items_router.get("")
def list_menu_items(
    restaurant_id: Optional[int] = None,
    category: Optional[str] = None,
    active: Optional[bool] = True,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    rows, total = catalog_service.list_menu_items(
        db,
        restaurant_id=restaurant_id,
        category=category,
        active=active,
        page=page,
        limit=limit,
    )
    return {"data": [_menu_item_to_dict(m) for m in rows], "pagination": _pagination(total, page, limit)}


@menu_items_router.get("/{item_id}")
def get_menu_item(item_id: int, db: Session = Depends(get_db)):
    return _menu_item_to_dict(catalog_service.get_menu_item(db, item_id))


@menu_items_router.put("/{item_id}")
def update_menu_item(item_id: int, payload: MenuItemUpdate, db: Session = Depends(get_db)):
    item = catalog_service.update_menu_item(db, item_id, payload.model_dump(exclude_unset=True))
    return _menu_item_to_dict(item)


@menu_items_router.patch("/{item_id}/availability")
def set_menu_item_availability(item_id: int, payload: AvailabilityUpdate, db: Session = Depends(get_db)):
    return _menu_item_to_dict(catalog_service.set_menu_item_availability(db, item_id, payload.available))


@menu_items_router.patch("/{item_id}/activate")
def activate_menu_item(item_id: int, db: Session = Depends(get_db)):
    return _menu_item_to_dict(catalog_service.set_menu_item_active(db, item_id, ActivationCommand.ACTIVATE))


@menu_items_router.patch("/{item_id}/deactivate")
def deactivate_menu_item(item_id: int, db: Session = Depends(get_db)):
    return _menu_item_to_dict(catalog_service.set_menu_item_active(db, item_id, ActivationCommand.DEACTIVATE))


# Tables


@tables_router.post("", status_code=201)
def create_table(payload: TableCreate, db: Session = Depends(get_db)):
    return _table_to_dict(catalog_service.create_table(db, payload.model_dump()))


@tables_router.get("")
def list_tables(
    restaurant_id: Optional[int] = None,
    active: Optional[bool] = True,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    rows, total = catalog_service.list_tables(db, restaurant_id=restaurant_id, active=active, page=page, limit=limit)
    return {"data": [_table_to_dict(t) for t in rows], "pagination": _pagination(total, page, limit)}


@tables_router.get("/{table_id}")
def get_table(table_id: int, db: Session = Depends(get_db)):
    return _table_to_dict(catalog_service.get_table(db, table_id))


@tables_router.put("/{table_id}")
def update_table(table_id: int, payload: TableUpdate, db: Session = Depends(get_db)):
    return _table_to_dict(catalog_service.update_table(db, table_id, payload.model_dump(exclude_unset=True)))


@tables_router.patch("/{table_id}/activate")
def activate_table(table_id: int, db: Session = Depends(get_db)):
    return _table_to_dict(catalog_service.set_table_active(db, table_id, ActivationCommand.ACTIVATE))


@tables_router.patch("/{table_id}/deactivate")
def deactivate_table(table_id: int, db: Session = Depends(get_db)):
    return _table_to_dict(catalog_service.set_table_active(db, table_id, ActivationCommand.DEACTIVATE))
