"""Listing request/response schemas"""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from grocery_catalog.models.contribution import ContributionType

# Exact in Python, a JSON number on the wire
Price = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ListingRow(CamelModel):
    """One search result with denormalized display fields"""
    id: str
    brand: str
    product: str
    unit: str
    price: Price
    supermarket: str
    city: str
    in_stock: bool
    supermarket_id: str
    brand_product_id: str
    created_at: datetime
    updated_at: datetime


class PageMeta(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int


class ListingPage(CamelModel):
    data: List[ListingRow]
    meta: PageMeta


class ContributionResponse(CamelModel):
    id: str
    supermarket_product_id: str
    user_id: str
    type: ContributionType
    old_value: Optional[Dict[str, Any]] = None
    new_value: Dict[str, Any]
    created_at: datetime


class ListingDetail(ListingRow):
    contributions: List[ContributionResponse] = Field(default_factory=list)


class ListingResponse(CamelModel):
    """A listing row as stored (returned by write endpoints)"""
    id: str
    supermarket_id: str
    brand_product_id: str
    unit: str
    price: Price
    in_stock: bool
    created_at: datetime
    updated_at: datetime


class ListingCreateRequest(CamelModel):
    supermarket_id: str = Field(..., min_length=1, max_length=36)
    brand_product_id: str = Field(..., min_length=1, max_length=36)
    unit: Optional[str] = Field(None, max_length=50, description="Raw unit, e.g. '500ml'")
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    in_stock: bool = True


class PriceUpdateRequest(CamelModel):
    new_price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)


class StockUpdateRequest(CamelModel):
    in_stock: bool


class BrandProductCreateRequest(CamelModel):
    product_id: str = Field(..., min_length=1, max_length=36)
    brand_id: Optional[str] = Field(None, max_length=36, description="Omit for unbranded products")


class BrandProductResponse(CamelModel):
    id: str
    brand_id: str
    product_id: str
    created_at: datetime
