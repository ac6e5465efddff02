import sqlalchemy as sa
from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func

from restaurant_api.core.database import Base
from restaurant_api.models.coupon import PERCENTAGE

PROMOTION_KINDS = ("PROMOTION", "DISCOUNT", "COMBO", "HAPPY_HOUR", "SPECIAL_EVENT", "LIMITED_OFFER")

STATUS_ACTIVE = "ACTIVE"
STATUS_INACTIVE = "INACTIVE"
STATUS_FINISHED = "FINISHED"
PROMOTION_STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE, STATUS_FINISHED)

DEFAULT_CONDITIONS = "No additional conditions"


class Promotion(Base):
    __tablename__ = "promotions"
    __table_args__ = (
        CheckConstraint("max_uses IS NULL OR current_uses <= max_uses", name="ck_promotions_uses_within_limit"),
        Index("ix_promotions_restaurant_window", "restaurant_id", "starts_at", "ends_at"),
    )

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), index=True, nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    kind = Column(String(20), nullable=False)
    discount_kind = Column(String(20), nullable=False, default=PERCENTAGE)
    discount_value = Column(Numeric(10, 2), nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    menu_item_ids = Column(sa.JSON, nullable=False, default=list)
    conditions = Column(String(500), nullable=False, default=DEFAULT_CONDITIONS)
    image_url = Column(String(500), nullable=True)
    minimum_purchase = Column(Numeric(10, 2), nullable=False, default=0)
    max_uses = Column(Integer, nullable=True)  # None = unlimited
    current_uses = Column(Integer, nullable=False, default=0)

    # status follows the window and the usage count; active is the soft delete
    status = Column(String(20), nullable=False, default=STATUS_ACTIVE, index=True)
    active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(64), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
