from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func
from sqlalchemy.orm import relationship

from restaurant_api.core.database import Base


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_restaurant_status", "restaurant_id", "status"),
        Index("ix_orders_table_status", "table_id", "status"),
    )

    id = Column(Integer, primary_key=True)
    order_number = Column(String(20), nullable=False, unique=True, index=True)

    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), index=True, nullable=False)
    table_id = Column(Integer, ForeignKey("dining_tables.id"), index=True, nullable=False)

    customer_name = Column(String(100), nullable=False)
    customer_phone = Column(String(20), nullable=True)

    # Recomputed only while the order is PENDING
    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    tax = Column(Numeric(10, 2), nullable=False, default=0)
    manual_discount = Column(Numeric(10, 2), nullable=False, default=0)
    coupon_discount = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False, default=0)

    coupon_id = Column(Integer, ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True)
    coupon_code = Column(String(20), nullable=True)

    status = Column(String(20), nullable=False, default="PENDING", index=True)
    payment_method = Column(String(20), nullable=False, default="PENDING")
    notes = Column(Text, nullable=True)

    delivered_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    version_id = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def discount(self):
        return (self.manual_discount or 0) + (self.coupon_discount or 0)
