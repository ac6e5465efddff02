from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import relationship

from restaurant_api.core.database import Base

PERCENTAGE = "PERCENTAGE"
FIXED_AMOUNT = "FIXED_AMOUNT"
DISCOUNT_KINDS = (PERCENTAGE, FIXED_AMOUNT)


class Coupon(Base):
    __tablename__ = "coupons"
    __table_args__ = (
        CheckConstraint(
            "max_redemptions IS NULL OR current_redemptions <= max_redemptions",
            name="ck_coupons_redemptions_within_limit",
        ),
    )

    id = Column(Integer, primary_key=True)
    code = Column(String(20), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    kind = Column(String(20), nullable=False, default=PERCENTAGE)
    percentage = Column(Numeric(5, 2), nullable=True)
    fixed_amount = Column(Numeric(10, 2), nullable=True)
    starts_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    max_redemptions = Column(Integer, nullable=True)  # None = unlimited
    current_redemptions = Column(Integer, nullable=False, default=0)
    minimum_subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    discount_cap = Column(Numeric(10, 2), nullable=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=True, index=True)  # None = global
    active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    redemptions = relationship(
        "CouponRedemption",
        back_populates="coupon",
        cascade="all, delete-orphan",
        order_by="CouponRedemption.id",
    )


class CouponRedemption(Base):
    __tablename__ = "coupon_redemptions"

    id = Column(Integer, primary_key=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=False, index=True)
    redeemer_id = Column(String(64), nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)
    redeemed_at = Column(DateTime(timezone=True), nullable=False)

    coupon = relationship("Coupon", back_populates="redemptions")
