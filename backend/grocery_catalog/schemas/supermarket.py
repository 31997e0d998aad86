"""Supermarket schemas"""
from typing import Dict, List, Optional
from decimal import Decimal

from pydantic import Field

from grocery_catalog.schemas.listing import CamelModel


class SupermarketResponse(CamelModel):
    id: str
    name: str
    city: str
    address: str
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None
    opening_hours: Dict[str, str] = {}
    phone_number: Optional[str] = None
    website: Optional[str] = None
    franchise_id: Optional[str] = None


class SupermarketListResponse(CamelModel):
    supermarkets: List[SupermarketResponse]
    count: int


class SupermarketCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    address: str = Field(..., min_length=1)
    opening_hours: Dict[str, str] = Field(default_factory=dict, description='e.g. {"monday": "09:00-21:00"}')
    franchise_id: Optional[str] = Field(None, max_length=36)
    latitude: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(None, ge=-180, le=180)
    phone_number: Optional[str] = Field(None, max_length=32)
    website: Optional[str] = Field(None, max_length=512, pattern=r"^https?://")
