"""BrandProduct endpoints"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from grocery_catalog.api.deps import get_current_user_id, get_query_engine, get_store
from grocery_catalog.core.rate_limit import WRITE_RATE_LIMIT, limiter
from grocery_catalog.schemas.listing import BrandProductCreateRequest, BrandProductResponse
from grocery_catalog.schemas.product import BrandProductDetail, BrandProductPage
from grocery_catalog.services.catalog_store import CatalogStore
from grocery_catalog.services.query_engine import BrandProductSearchCriteria, QueryEngine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", response_model=BrandProductResponse, status_code=201)
@limiter.limit(WRITE_RATE_LIMIT)
async def create_brand_product(
    request: Request,
    data: BrandProductCreateRequest,
    user_id: str = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_store),
):
    """
    Pair a product with a brand.

    Leave brandId out for unbranded products; the unbranded brand is used.
    """
    async with store.atomic():
        brand_product = await store.create_brand_product(data.product_id, data.brand_id)

    logger.info(
        "BrandProduct %s created (brand=%s, product=%s) by user %s",
        brand_product.id, brand_product.brand_id, brand_product.product_id, user_id,
    )
    return BrandProductResponse.model_validate(brand_product)


@router.get("/", response_model=BrandProductPage)
async def list_brand_products(
    product_id: Optional[str] = Query(None, alias="productId"),
    brand_id: Optional[str] = Query(None, alias="brandId"),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    engine: QueryEngine = Depends(get_query_engine),
):
    criteria = BrandProductSearchCriteria(product_id=product_id, brand_id=brand_id, page=page)
    if limit is not None:
        criteria.limit = limit
    return await engine.list_brand_products(criteria)


@router.get("/{brand_product_id}", response_model=BrandProductDetail)
async def get_brand_product(
    brand_product_id: str,
    engine: QueryEngine = Depends(get_query_engine),
):
    return await engine.get_brand_product(brand_product_id)
