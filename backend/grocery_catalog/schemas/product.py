"""Product and BrandProduct schemas"""
from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import Field

from grocery_catalog.models.product import ProductCategory
from grocery_catalog.schemas.listing import CamelModel, PageMeta

DeclaredUnit = Annotated[str, Field(min_length=1, max_length=50)]


class BrandRef(CamelModel):
    id: str
    name: str


class ProductRef(CamelModel):
    id: str
    name: str


class ProductBrandProduct(CamelModel):
    """A brand the product is sold under"""
    id: str
    brand: BrandRef


class ProductResponse(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    category: ProductCategory
    units: List[str]
    is_typically_branded: bool
    brand_products: List[ProductBrandProduct] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ProductPage(CamelModel):
    data: List[ProductResponse]
    meta: PageMeta


class ProductCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: ProductCategory
    units: List[DeclaredUnit] = Field(default_factory=list, description="Declared units, first is the default")
    is_typically_branded: bool = False


class BrandProductDetail(CamelModel):
    id: str
    brand: BrandRef
    product: ProductRef
    created_at: datetime
    updated_at: datetime


class BrandProductPage(CamelModel):
    data: List[BrandProductDetail]
    meta: PageMeta
