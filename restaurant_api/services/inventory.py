"""Kitchen stock items: raw ingredients counted in a fixed set of units."""
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from restaurant_api.core.errors import ConflictError, InvalidInputError, NotFoundError
from restaurant_api.models.inventory import INVENTORY_UNITS, InventoryItem
from restaurant_api.repositories import paginate

logger = logging.getLogger(__name__)

STOCK_QUANTUM = Decimal("0.001")


def _name(value: str | None) -> str:
    name = (value or "").strip().lower()
    if not 2 <= len(name) <= 100:
        raise InvalidInputError("Inventory item name must be between 2 and 100 characters")
    return name


def _unit(value: str | None) -> str:
    unit = (value or "").strip().lower()
    if unit not in INVENTORY_UNITS:
        raise InvalidInputError(f"Invalid unit: {value}. Expected one of {', '.join(INVENTORY_UNITS)}")
    return unit


def _stock(value) -> Decimal:
    try:
        stock = Decimal(str(value if value is not None else 0)).quantize(STOCK_QUANTUM)
    except InvalidOperation as exc:
        raise InvalidInputError("Stock must be a number") from exc
    if stock < 0:
        raise InvalidInputError("Stock cannot be negative")
    return stock


def _name_taken(db: Session, name: str, exclude_id: int | None = None) -> bool:
    query = db.query(InventoryItem.id).filter(InventoryItem.name == name)
    if exclude_id is not None:
        query = query.filter(InventoryItem.id != exclude_id)
    return query.first() is not None


def _commit(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("An inventory item with this name already exists") from exc


def create_inventory_item(db: Session, data: dict) -> InventoryItem:
    name = _name(data.get("name"))
    if _name_taken(db, name):
        raise ConflictError("An inventory item with this name already exists")
    item = InventoryItem(
        name=name,
        stock=_stock(data.get("stock")),
        unit=_unit(data.get("unit")),
        active=True,
    )
    db.add(item)
    _commit(db)
    db.refresh(item)
    logger.info("inventory item created id=%s name=%s", item.id, item.name)
    return item


def get_inventory_item(db: Session, item_id: int) -> InventoryItem:
    item = db.query(InventoryItem).filter(InventoryItem.id == item_id).first()
    if not item or not item.active:
        raise NotFoundError("Inventory item not found")
    return item


def list_inventory_items(db: Session, *, page: int = 1, limit: int = 10) -> tuple[list[InventoryItem], int]:
    query = db.query(InventoryItem).filter(InventoryItem.active.is_(True))
    return paginate(query.order_by(InventoryItem.name, InventoryItem.id), page, limit)


def update_inventory_item(db: Session, item_id: int, changes: dict) -> InventoryItem:
    item = get_inventory_item(db, item_id)
    if changes.get("name") is not None:
        name = _name(changes["name"])
        if _name_taken(db, name, exclude_id=item.id):
            raise ConflictError("An inventory item with this name already exists")
        item.name = name
    if changes.get("stock") is not None:
        item.stock = _stock(changes["stock"])
    if changes.get("unit") is not None:
        item.unit = _unit(changes["unit"])
    _commit(db)
    db.refresh(item)
    return item


def delete_inventory_item(db: Session, item_id: int) -> InventoryItem:
    """Retire the item; the row stays and keeps its name reserved."""
    item = get_inventory_item(db, item_id)
    item.active = False
    db.commit()
    db.refresh(item)
    logger.info("inventory item retired id=%s", item.id)
    return item
