"""Supermarket model"""
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, JSON, UniqueConstraint

from grocery_catalog.core.database import Base, new_id, utcnow


class Supermarket(Base):
    __tablename__ = "supermarkets"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False, index=True)
    city = Column(String(100), nullable=False, index=True)
    address = Column(String, nullable=False)
    latitude = Column(Numeric(10, 7))
    longitude = Column(Numeric(10, 7))
    opening_hours = Column(JSON, nullable=False, default=dict)  # {"monday": "09:00-21:00", ...}
    phone_number = Column(String(32))
    website = Column(String(512))
    franchise_id = Column(String(36), ForeignKey("franchises.id"), index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("name", "address", name="uq_supermarket_name_address"),
    )
