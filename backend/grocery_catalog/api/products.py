"""Product endpoints"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from grocery_catalog.api.deps import get_current_user_id, get_query_engine, get_store
from grocery_catalog.core.rate_limit import WRITE_RATE_LIMIT, limiter
from grocery_catalog.schemas.product import ProductCreateRequest, ProductPage, ProductResponse
from grocery_catalog.services.catalog_store import CatalogStore
from grocery_catalog.services.query_engine import ProductSearchCriteria, QueryEngine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=ProductPage)
async def list_products(
    name: Optional[str] = Query(None, description="Product name (substring, case-insensitive)"),
    category: Optional[str] = Query(None, description="Product category, e.g. DAIRY"),
    is_typically_branded: Optional[bool] = Query(None, alias="isTypicallyBranded"),
    brand_name: Optional[str] = Query(None, alias="brandName", description="Sold under a brand matching this name"),
    unit: Optional[str] = Query(None, description="A declared unit, matched exactly"),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    engine: QueryEngine = Depends(get_query_engine),
):
    criteria = ProductSearchCriteria(
        name=name,
        category=category,
        is_typically_branded=is_typically_branded,
        brand_name=brand_name,
        unit=unit,
        page=page,
    )
    if limit is not None:
        criteria.limit = limit
    return await engine.search_products(criteria)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    engine: QueryEngine = Depends(get_query_engine),
):
    """Get a product with the brands it is sold under."""
    return await engine.get_product(product_id)


@router.post("/", response_model=ProductResponse, status_code=201)
@limiter.limit(WRITE_RATE_LIMIT)
async def create_product(
    request: Request,
    data: ProductCreateRequest,
    user_id: str = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_store),
):
    """Create a product. Names are unique across the catalog."""
    async with store.atomic():
        product = await store.create_product(
            name=data.name,
            category=data.category,
            units=data.units,
            description=data.description,
            is_typically_branded=data.is_typically_branded,
        )

    logger.info("Product %s (%s) created by user %s", product.id, product.name, user_id)
    return ProductResponse.model_validate(product)
