"""BrandProduct model (sellable offer identity)"""
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint

from grocery_catalog.core.database import Base, new_id, utcnow


class BrandProduct(Base):
    __tablename__ = "brand_products"

    id = Column(String(36), primary_key=True, default=new_id)
    # Never null: unbranded items point at UNBRANDED_BRAND_ID
    brand_id = Column(String(36), ForeignKey("brands.id"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("brand_id", "product_id", name="uq_brand_product_brand_product"),
    )
