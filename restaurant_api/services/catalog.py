"""Restaurant, menu item and table administration."""
from __future__ import annotations

import logging

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from restaurant_api.core.errors import ConflictError, InvalidInputError, NotFoundError
from restaurant_api.models.menu_item import MENU_CATEGORIES, MenuItem
from restaurant_api.models.restaurant import RESTAURANT_CATEGORIES, Restaurant
from restaurant_api.models.table import DiningTable
from restaurant_api.repositories import paginate
from restaurant_api.services.activation import ActivationCommand, apply_activation
from restaurant_api.services.pricing import ZERO, to_money

logger = logging.getLogger(__name__)


def _category(value: str | None, allowed: tuple[str, ...]) -> str:
    category = (value or "").strip().upper()
    if category not in allowed:
        raise InvalidInputError(f"Invalid category: {value}. Expected one of {', '.join(allowed)}")
    return category


def _apply(entity, changes: dict, fields: tuple[str, ...]) -> None:
    for field in fields:
        if field in changes and changes[field] is not None:
            setattr(entity, field, changes[field])


# Restaurants


def create_restaurant(db: Session, data: dict) -> Restaurant:
    restaurant = Restaurant(
        name=data["name"].strip(),
        address=data["address"].strip(),
        category=_category(data.get("category"), RESTAURANT_CATEGORIES),
        schedule=(data.get("schedule") or "").strip(),
        active=True,
    )
    db.add(restaurant)
    db.commit()
    db.refresh(restaurant)
    logger.info("restaurant created id=%s", restaurant.id, extra={"restaurant_id": restaurant.id})
    return restaurant


def get_restaurant(db: Session, restaurant_id: int) -> Restaurant:
    restaurant = db.query(Restaurant).filter(Restaurant.id == restaurant_id).first()
    if not restaurant:
        raise NotFoundError("Restaurant not found")
    return restaurant


def list_restaurants(
    db: Session,
    *,
    active: bool | None = True,
    category: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Restaurant], int]:
    query = db.query(Restaurant)
    if active is not None:
        query = query.filter(Restaurant.active.is_(active))
    if category:
        query = query.filter(Restaurant.category == _category(category, RESTAURANT_CATEGORIES))
    return paginate(query.order_by(desc(Restaurant.created_at), desc(Restaurant.id)), page, limit)


def update_restaurant(db: Session, restaurant_id: int, changes: dict) -> Restaurant:
    restaurant = get_restaurant(db, restaurant_id)
    if changes.get("category") is not None:
        changes = {**changes, "category": _category(changes["category"], RESTAURANT_CATEGORIES)}
    _apply(restaurant, changes, ("name", "address", "category", "schedule"))
    db.commit()
    db.refresh(restaurant)
    return restaurant


def set_restaurant_active(db: Session, restaurant_id: int, command: ActivationCommand) -> Restaurant:
    restaurant = apply_activation(db, get_restaurant(db, restaurant_id), command)
    logger.info("restaurant %sd", command.value, extra={"restaurant_id": restaurant.id})
    return restaurant


# Menu items


def create_menu_item(db: Session, data: dict) -> MenuItem:
    get_restaurant(db, data["restaurant_id"])
    price = to_money(data["price"])
    if price < ZERO:
        raise InvalidInputError("Price cannot be negative")
    item = MenuItem(
        restaurant_id=data["restaurant_id"],
        name=data["name"].strip(),
        description=data.get("description"),
        price=price,
        category=_category(data.get("category"), MENU_CATEGORIES),
        ingredients=list(data.get("ingredients") or []),
        photo_url=data.get("photo_url"),
        active=True,
        available=data.get("available", True),
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info("menu item created id=%s", item.id, extra={"restaurant_id": item.restaurant_id})
    return item


def get_menu_item(db: Session, item_id: int) -> MenuItem:
    item = db.query(MenuItem).filter(MenuItem.id == item_id).first()
    if not item:
        raise NotFoundError("Menu item not found")
    return item


def list_menu_items(
    db: Session,
    *,
    restaurant_id: int | None = None,
    category: str | None = None,
    active: bool | None = True,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[MenuItem], int]:
    query = db.query(MenuItem)
    if restaurant_id is not None:
        query = query.filter(MenuItem.restaurant_id == restaurant_id)
    if category:
        query = query.filter(MenuItem.category == _category(category, MENU_CATEGORIES))
    if active is not None:
        query = query.filter(MenuItem.active.is_(active))
    return paginate(query.order_by(desc(MenuItem.created_at), desc(MenuItem.id)), page, limit)


def update_menu_item(db: Session, item_id: int, changes: dict) -> MenuItem:
    """Price changes never touch existing orders; their lines are snapshots."""
    item = get_menu_item(db, item_id)
    if changes.get("price") is not None:
        price = to_money(changes["price"])
        if price < ZERO:
            raise InvalidInputError("Price cannot be negative")
        changes = {**changes, "price": price}
    if changes.get("category") is not None:
        changes = {**changes, "category": _category(changes["category"], MENU_CATEGORIES)}
    if changes.get("ingredients") is not None:
        changes = {**changes, "ingredients": list(changes["ingredients"])}
    _apply(item, changes, ("name", "description", "price", "category", "ingredients", "photo_url"))
    db.commit()
    db.refresh(item)
    return item


def set_menu_item_availability(db: Session, item_id: int, available: bool) -> MenuItem:
    item = get_menu_item(db, item_id)
    item.available = bool(available)
    db.commit()
    db.refresh(item)
    logger.info("menu item %s available=%s", item.id, item.available, extra={"restaurant_id": item.restaurant_id})
    return item


def set_menu_item_active(db: Session, item_id: int, command: ActivationCommand) -> MenuItem:
    item = apply_activation(db, get_menu_item(db, item_id), command)
    logger.info("menu item %s %sd", item.id, command.value, extra={"restaurant_id": item.restaurant_id})
    return item


# Tables


def _commit_table(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("A table with this number already exists in the restaurant") from exc


def _table_number_taken(db: Session, restaurant_id: int, number: int, exclude_id: int | None = None) -> bool:
    query = db.query(DiningTable.id).filter(
        DiningTable.restaurant_id == restaurant_id,
        DiningTable.number == number,
    )
    if exclude_id is not None:
        query = query.filter(DiningTable.id != exclude_id)
    return query.first() is not None


def create_table(db: Session, data: dict) -> DiningTable:
    get_restaurant(db, data["restaurant_id"])
    if _table_number_taken(db, data["restaurant_id"], data["number"]):
        raise ConflictError("A table with this number already exists in the restaurant")
    table = DiningTable(
        restaurant_id=data["restaurant_id"],
        number=data["number"],
        capacity=data["capacity"],
        location=(data.get("location") or "").strip(),
        joinable=data.get("joinable", True),
        active=True,
    )
    db.add(table)
    _commit_table(db)
    db.refresh(table)
    logger.info("table created number=%s", table.number, extra={"restaurant_id": table.restaurant_id})
    return table


def get_table(db: Session, table_id: int) -> DiningTable:
    table = db.query(DiningTable).filter(DiningTable.id == table_id).first()
    if not table:
        raise NotFoundError("Table not found")
    return table


def list_tables(
    db: Session,
    *,
    restaurant_id: int | None = None,
    active: bool | None = True,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[DiningTable], int]:
    query = db.query(DiningTable)
    if restaurant_id is not None:
        query = query.filter(DiningTable.restaurant_id == restaurant_id)
    if active is not None:
        query = query.filter(DiningTable.active.is_(active))
    return paginate(query.order_by(DiningTable.restaurant_id, DiningTable.number), page, limit)


def update_table(db: Session, table_id: int, changes: dict) -> DiningTable:
    table = get_table(db, table_id)
    number = changes.get("number")
    if number is not None and _table_number_taken(db, table.restaurant_id, number, exclude_id=table.id):
        raise ConflictError("A table with this number already exists in the restaurant")
    _apply(table, changes, ("number", "capacity", "location", "joinable"))
    _commit_table(db)
    db.refresh(table)
    return table


def set_table_active(db: Session, table_id: int, command: ActivationCommand) -> DiningTable:
    table = apply_activation(db, get_table(db, table_id), command)
    logger.info("table %s %sd", table.number, command.value, extra={"restaurant_id": table.restaurant_id})
    return table
