"""Product model"""
import enum

from sqlalchemy import Column, String, Text, Boolean, DateTime, Enum, JSON

from grocery_catalog.core.database import Base, new_id, utcnow


class ProductCategory(str, enum.Enum):
    PRODUCE = "PRODUCE"
    DAIRY = "DAIRY"
    BUTCHER = "BUTCHER"
    GROCERY = "GROCERY"
    BAKERY = "BAKERY"
    BEVERAGES = "BEVERAGES"
    FROZEN = "FROZEN"
    HOUSEHOLD = "HOUSEHOLD"
    PERSONAL_CARE = "PERSONAL_CARE"
    OTHER = "OTHER"


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), unique=True, nullable=False)
    description = Column(Text)
    category = Column(Enum(ProductCategory, name="product_category"), nullable=False, index=True)
    units = Column(JSON, nullable=False, default=list)  # e.g. ["kg", "500 g"]
    is_typically_branded = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
