from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String, func

from restaurant_api.core.database import Base

INVENTORY_UNITS = ("kg", "g", "l", "ml", "unit", "package")


class InventoryItem(Base):
    __tablename__ = "inventory_items"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_inventory_items_stock_non_negative"),)

    id = Column(Integer, primary_key=True)
    # stored lower-case; unique across active and retired items
    name = Column(String(100), nullable=False, unique=True, index=True)
    stock = Column(Numeric(12, 3), nullable=False, default=0)
    unit = Column(String(20), nullable=False)
    active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
