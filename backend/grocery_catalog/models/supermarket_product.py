"""SupermarketProduct model (priced listing)"""
from sqlalchemy import (
    Column,
    String,
    Numeric,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
)

from grocery_catalog.core.database import Base, new_id, utcnow

LISTING_UNIQUE_CONSTRAINT = "uq_listing_supermarket_brand_product_unit"
UNIT_MAX_LENGTH = 50


class SupermarketProduct(Base):
    """
    One priced, stocked offer of a BrandProduct at one Supermarket in one unit.

    Price and stock are mutated in place. The row carries no history;
    every change is recorded as a ProductContribution.
    """
    __tablename__ = "supermarket_products"

    id = Column(String(36), primary_key=True, default=new_id)
    supermarket_id = Column(String(36), ForeignKey("supermarkets.id"), nullable=False, index=True)
    brand_product_id = Column(String(36), ForeignKey("brand_products.id"), nullable=False, index=True)

    unit = Column(String(UNIT_MAX_LENGTH), nullable=False)  # canonical, see services.units
    price = Column(Numeric(10, 2), nullable=False, index=True)
    in_stock = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "supermarket_id", "brand_product_id", "unit",
            name=LISTING_UNIQUE_CONSTRAINT,
        ),
        CheckConstraint("price > 0", name="ck_listing_price_positive"),
    )
