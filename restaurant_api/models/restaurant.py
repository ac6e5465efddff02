from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func

from restaurant_api.core.database import Base

RESTAURANT_CATEGORIES = ("FAST_FOOD", "TRADITIONAL", "ITALIAN", "MEXICAN", "ASIAN", "OTHER")


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    address = Column(String(200), nullable=False)
    category = Column(String(20), nullable=False, index=True)
    schedule = Column(Text, nullable=False, default="")
    active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
