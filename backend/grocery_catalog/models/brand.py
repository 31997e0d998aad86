"""Brand and Franchise models"""
from sqlalchemy import Column, String, DateTime

from grocery_catalog.core.database import Base, new_id, utcnow

# Reserved brand row for generic/unbranded products. Bootstrap creates it.
UNBRANDED_BRAND_ID = "00000000-0000-0000-0000-000000000000"
UNBRANDED_BRAND_NAME = "Unbranded"


class Brand(Base):
    __tablename__ = "brands"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), unique=True, nullable=False)
    logo = Column(String(512))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def is_unbranded(self) -> bool:
        return self.id == UNBRANDED_BRAND_ID


class Franchise(Base):
    __tablename__ = "franchises"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), unique=True, nullable=False)
    logo = Column(String(512))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
