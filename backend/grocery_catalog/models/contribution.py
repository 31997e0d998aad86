"""Product Contribution model (append-only audit log)"""
import enum

from sqlalchemy import Column, String, DateTime, Enum, ForeignKey, JSON, Index

from grocery_catalog.core.database import Base, new_id, utcnow


class ContributionType(str, enum.Enum):
    NEW_PRODUCT = "NEW_PRODUCT"
    PRICE_UPDATE = "PRICE_UPDATE"
    AVAILABILITY_UPDATE = "AVAILABILITY_UPDATE"


class ProductContribution(Base):
    """
    Who changed a listing, how, and when.

    Rows are inserted in the same transaction as the listing change they
    describe and are never updated or deleted afterwards.
    """
    __tablename__ = "product_contributions"

    id = Column(String(36), primary_key=True, default=new_id)
    supermarket_product_id = Column(
        String(36), ForeignKey("supermarket_products.id"), nullable=False, index=True
    )
    # Users are owned by the auth service; the id is opaque here
    user_id = Column(String(36), nullable=False, index=True)

    type = Column(Enum(ContributionType, name="contribution_type"), nullable=False)
    old_value = Column(JSON, nullable=True)   # {"price": "1.89"} / {"inStock": true}
    new_value = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_contribution_listing_created", "supermarket_product_id", "created_at"),
    )
