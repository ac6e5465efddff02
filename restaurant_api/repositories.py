"""SQLAlchemy-backed data access for orders, coupons, promotions and the catalog."""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import desc, func, or_, update
from sqlalchemy.orm import Session

from restaurant_api.models.coupon import Coupon, CouponRedemption
from restaurant_api.models.menu_item import MenuItem
from restaurant_api.models.order import Order
from restaurant_api.models.promotion import STATUS_ACTIVE, Promotion
from restaurant_api.models.table import DiningTable


class CatalogLookup(Protocol):
    def get_table_by_id(self, table_id: int) -> Optional[DiningTable]: ...

    def get_menu_item_by_id(self, menu_item_id: int) -> Optional[MenuItem]: ...


class SqlCatalogLookup:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_table_by_id(self, table_id: int) -> Optional[DiningTable]:
        return self.db.query(DiningTable).filter(DiningTable.id == table_id).first()

    def get_menu_item_by_id(self, menu_item_id: int) -> Optional[MenuItem]:
        return self.db.query(MenuItem).filter(MenuItem.id == menu_item_id).first()


def paginate(query, page: int, limit: int) -> tuple[list, int]:
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, total


class OrderRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_order_by_id(self, order_id: int) -> Optional[Order]:
        return self.db.query(Order).filter(Order.id == order_id).first()

    def find_order_by_number(self, order_number: str) -> Optional[Order]:
        return self.db.query(Order).filter(Order.order_number == order_number).first()

    def order_number_exists(self, order_number: str) -> bool:
        return (
            self.db.query(Order.id).filter(Order.order_number == order_number).first()
            is not None
        )

    def save_order(self, order: Order) -> Order:
        self.db.add(order)
        return order

    def delete_order(self, order: Order) -> None:
        self.db.delete(order)

    def list_orders(
        self,
        *,
        restaurant_id: int | None = None,
        table_id: int | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Order], int]:
        query = self.db.query(Order).filter(Order.is_active.is_(True))
        if restaurant_id is not None:
            query = query.filter(Order.restaurant_id == restaurant_id)
        if table_id is not None:
            query = query.filter(Order.table_id == table_id)
        if status:
            query = query.filter(Order.status == status)
        query = query.order_by(desc(Order.created_at), desc(Order.id))
        return paginate(query, page, limit)


class CouponRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_coupon_by_code(self, code: str) -> Optional[Coupon]:
        return self.db.query(Coupon).filter(Coupon.code == code).first()

    def find_coupon_by_id(self, coupon_id: int) -> Optional[Coupon]:
        return self.db.query(Coupon).filter(Coupon.id == coupon_id).first()

    def code_exists(self, code: str, *, exclude_id: int | None = None) -> bool:
        query = self.db.query(Coupon.id).filter(Coupon.code == code)
        if exclude_id is not None:
            query = query.filter(Coupon.id != exclude_id)
        return query.first() is not None

    def save_coupon(self, coupon: Coupon) -> Coupon:
        self.db.add(coupon)
        return coupon

    def delete_coupon(self, coupon: Coupon) -> None:
        self.db.delete(coupon)

    def list_coupons(
        self,
        *,
        restaurant_id: int | None = None,
        active: bool | None = True,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Coupon], int]:
        query = self.db.query(Coupon)
        if active is not None:
            query = query.filter(Coupon.active.is_(active))
        if restaurant_id is not None:
            query = query.filter(Coupon.restaurant_id == restaurant_id)
        query = query.order_by(desc(Coupon.created_at), desc(Coupon.id))
        return paginate(query, page, limit)

    def list_current_for_restaurant(self, restaurant_id: int, now: datetime) -> list[Coupon]:
        return (
            self.db.query(Coupon)
            .filter(
                or_(Coupon.restaurant_id == restaurant_id, Coupon.restaurant_id.is_(None)),
                Coupon.active.is_(True),
                Coupon.starts_at <= now,
                Coupon.expires_at > now,
            )
            .order_by(desc(Coupon.created_at), desc(Coupon.id))
            .all()
        )

    def increment_redemptions_if_available(self, coupon_id: int) -> bool:
        """Single conditional UPDATE; False when the coupon is already exhausted."""
        result = self.db.execute(
            update(Coupon)
            .where(
                Coupon.id == coupon_id,
                or_(
                    Coupon.max_redemptions.is_(None),
                    Coupon.current_redemptions < Coupon.max_redemptions,
                ),
            )
            .values(
                current_redemptions=Coupon.current_redemptions + 1,
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def append_redemption(
        self,
        coupon_id: int,
        redeemer_id: str,
        redeemed_at: datetime,
        order_id: int | None = None,
    ) -> CouponRedemption:
        redemption = CouponRedemption(
            coupon_id=coupon_id,
            redeemer_id=redeemer_id,
            order_id=order_id,
            redeemed_at=redeemed_at,
        )
        self.db.add(redemption)
        return redemption


class PromotionRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_promotion_by_id(self, promotion_id: int) -> Optional[Promotion]:
        return self.db.query(Promotion).filter(Promotion.id == promotion_id).first()

    def list_current_for_restaurant(self, restaurant_id: int, now: datetime) -> list[Promotion]:
        return (
            self.db.query(Promotion)
            .filter(
                Promotion.restaurant_id == restaurant_id,
                Promotion.active.is_(True),
                Promotion.status == STATUS_ACTIVE,
                Promotion.starts_at <= now,
                Promotion.ends_at >= now,
            )
            .order_by(Promotion.ends_at, Promotion.id)
            .all()
        )

    def increment_uses_if_available(self, promotion_id: int) -> bool:
        """Same conditional UPDATE as coupons; False when the promotion is used up or stopped."""
        result = self.db.execute(
            update(Promotion)
            .where(
                Promotion.id == promotion_id,
                Promotion.active.is_(True),
                Promotion.status == STATUS_ACTIVE,
                or_(Promotion.max_uses.is_(None), Promotion.current_uses < Promotion.max_uses),
            )
            .values(current_uses=Promotion.current_uses + 1, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
