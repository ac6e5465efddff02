"""Reusable data set and database helpers for backend test scenarios."""
from __future__ import annotations

from copy import deepcopy
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import restaurant_api.models  # noqa: F401
from restaurant_api.core.database import Base, get_db
from restaurant_api.core.errors import register_exception_handlers
from restaurant_api.models.coupon import PERCENTAGE, Coupon
from restaurant_api.models.menu_item import MenuItem
from restaurant_api.models.restaurant import Restaurant
from restaurant_api.models.table import DiningTable
from restaurant_api.routers.catalog import menu_items_router, restaurants_router, tables_router
from restaurant_api.routers.coupons import router as coupons_router
from restaurant_api.routers.inventory import router as inventory_router
from restaurant_api.routers.orders import router as orders_router
from restaurant_api.routers.promotions import router as promotions_router

HAPPY_PATH_ORDER_PAYLOAD = {
    "restaurant_id": 1,
    "table_id": 1,
    "customer_name": "Maria Lopez",
    "customer_phone": "5551234567",
    "items": [
        {"menu_item_id": 1, "quantity": 2},
        {"menu_item_id": 2, "quantity": 1, "note": "no salt"},
    ],
    "tax": "2.50",
    "discount": "0",
    "notes": "window seat",
}

PLATFORM_ADMIN_USER = SimpleNamespace(id=1, role="PLATFORM_ADMIN", email="root@example.com")
STAFF_USER = SimpleNamespace(id=42, role="STAFF", email="staff@example.com")

BURGER_ID = 1
FRIES_ID = 2
SOLD_OUT_PIE_ID = 3
RETIRED_SOUP_ID = 4
OTHER_RESTAURANT_ITEM_ID = 5

INACTIVE_TABLE_ID = 2
OTHER_RESTAURANT_TABLE_ID = 3


def order_payload(**overrides) -> dict:
    payload = deepcopy(HAPPY_PATH_ORDER_PAYLOAD)
    payload.update(overrides)
    return payload


def build_session_factory(url: str = "sqlite+pysqlite:///:memory:"):
    engine_kwargs = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in url:
        engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["connect_args"]["timeout"] = 30
    engine = create_engine(url, **engine_kwargs)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def build_session():
    return build_session_factory()()


def seed_catalog(db) -> None:
    db.add(Restaurant(id=1, name="Casa Lopez", address="Main St 1", category="TRADITIONAL", schedule="12-23"))
    db.add(Restaurant(id=2, name="Sushi Go", address="Harbor Rd 9", category="ASIAN", schedule="18-23"))
    db.add(DiningTable(id=1, restaurant_id=1, number=1, capacity=4, location="window"))
    db.add(DiningTable(id=INACTIVE_TABLE_ID, restaurant_id=1, number=2, capacity=2, active=False))
    db.add(DiningTable(id=OTHER_RESTAURANT_TABLE_ID, restaurant_id=2, number=1, capacity=6))
    db.add(MenuItem(id=BURGER_ID, restaurant_id=1, name="Burger", price=Decimal("10.00"), category="MAIN"))
    db.add(MenuItem(id=FRIES_ID, restaurant_id=1, name="Fries", price=Decimal("5.00"), category="STARTER"))
    db.add(
        MenuItem(
            id=SOLD_OUT_PIE_ID,
            restaurant_id=1,
            name="Seasonal Pie",
            price=Decimal("6.00"),
            category="DESSERT",
            available=False,
        )
    )
    db.add(
        MenuItem(
            id=RETIRED_SOUP_ID,
            restaurant_id=1,
            name="Old Soup",
            price=Decimal("4.00"),
            category="STARTER",
            active=False,
        )
    )
    db.add(
        MenuItem(id=OTHER_RESTAURANT_ITEM_ID, restaurant_id=2, name="Nigiri", price=Decimal("8.00"), category="MAIN")
    )
    db.commit()


def add_coupon(db, code: str, **fields) -> Coupon:
    now = datetime.now(timezone.utc)
    values = {
        "kind": PERCENTAGE,
        "percentage": Decimal("10"),
        "starts_at": now - timedelta(days=1),
        "expires_at": now + timedelta(days=30),
        "current_redemptions": 0,
        "minimum_subtotal": Decimal("0"),
        "active": True,
    }
    values.update(fields)
    coupon = Coupon(code=code, **values)
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    return coupon


def build_client(db, user=None) -> TestClient:
    app = FastAPI()

    @app.middleware("http")
    async def _inject_user(request, call_next):
        request.state.user = user
        return await call_next(request)

    register_exception_handlers(app)
    app.include_router(orders_router)
    app.include_router(coupons_router)
    app.include_router(restaurants_router)
    app.include_router(menu_items_router)
    app.include_router(tables_router)
    app.include_router(inventory_router)
    app.include_router(promotions_router)
    app.dependency_overrides[get_db] = lambda: db
    return TestClient(app)
