import sqlalchemy as sa
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func

from restaurant_api.core.database import Base

MENU_CATEGORIES = ("STARTER", "MAIN", "DESSERT", "DRINK")


class MenuItem(Base):
    __tablename__ = "menu_items"
    __table_args__ = (Index("ix_menu_items_restaurant_category", "restaurant_id", "category"),)

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), index=True, nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String(20), nullable=False)
    ingredients = Column(sa.JSON, nullable=False, default=list)
    photo_url = Column(String(500), nullable=True)

    # active = soft delete; available = temporarily out (sold out, kitchen closed)
    active = Column(Boolean, default=True, nullable=False)
    available = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
