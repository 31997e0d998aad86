"""Listing endpoints - search, detail, and audited price/stock writes"""
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from grocery_catalog.api.deps import get_current_user_id, get_ledger, get_query_engine
from grocery_catalog.core.rate_limit import WRITE_RATE_LIMIT, limiter
from grocery_catalog.schemas.listing import (
    ContributionResponse,
    ListingCreateRequest,
    ListingDetail,
    ListingPage,
    ListingResponse,
    PriceUpdateRequest,
    StockUpdateRequest,
)
from grocery_catalog.services.contribution_ledger import ContributionLedger
from grocery_catalog.services.query_engine import ListingSearchCriteria, QueryEngine

router = APIRouter()


def _split_ids(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


@router.get("/", response_model=ListingPage)
async def search_listings(
    city: Optional[str] = Query(None, description="Supermarket city (substring, case-insensitive)"),
    supermarket_name: Optional[str] = Query(None, alias="supermarketName"),
    product_name: Optional[str] = Query(None, alias="productName"),
    brand_name: Optional[str] = Query(None, alias="brandName"),
    unit: Optional[str] = Query(None, description="Unit, normalized before exact match (e.g. '500ml')"),
    in_stock: Optional[bool] = Query(None, alias="inStock"),
    min_price: Optional[Decimal] = Query(None, alias="minPrice"),
    max_price: Optional[Decimal] = Query(None, alias="maxPrice"),
    supermarket_ids: Optional[str] = Query(None, alias="supermarketIds", description="Comma-separated"),
    brand_product_ids: Optional[str] = Query(None, alias="brandProductIds", description="Comma-separated"),
    brand_ids: Optional[str] = Query(None, alias="brandIds", description="Comma-separated"),
    sort_by: str = Query("price", alias="sortBy", description="price, createdAt or updatedAt"),
    sort_order: str = Query("asc", alias="sortOrder", description="asc or desc"),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    engine: QueryEngine = Depends(get_query_engine),
):
    """
    Search listings across supermarkets.

    Every filter is optional and they combine with AND. Results are sorted
    and paginated; meta.total counts all matches regardless of page.
    """
    criteria = ListingSearchCriteria(
        city=city,
        supermarket_name=supermarket_name,
        product_name=product_name,
        brand_name=brand_name,
        unit=unit,
        in_stock=in_stock,
        min_price=min_price,
        max_price=max_price,
        supermarket_ids=_split_ids(supermarket_ids),
        brand_product_ids=_split_ids(brand_product_ids),
        brand_ids=_split_ids(brand_ids),
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
    )
    if limit is not None:
        criteria.limit = limit
    return await engine.search(criteria)


@router.get("/{listing_id}", response_model=ListingDetail)
async def get_listing(
    listing_id: str,
    engine: QueryEngine = Depends(get_query_engine),
):
    """Get a listing with its contribution history."""
    return await engine.get_listing(listing_id)


@router.get("/{listing_id}/contributions", response_model=List[ContributionResponse])
async def list_contributions(
    listing_id: str,
    ledger: ContributionLedger = Depends(get_ledger),
):
    contributions = await ledger.list_contributions(listing_id)
    return [ContributionResponse.model_validate(c) for c in contributions]


@router.post("/", response_model=ListingResponse, status_code=201)
@limiter.limit(WRITE_RATE_LIMIT)
async def create_listing(
    request: Request,
    data: ListingCreateRequest,
    user_id: str = Depends(get_current_user_id),
    ledger: ContributionLedger = Depends(get_ledger),
):
    """Create a listing. Records a NEW_PRODUCT contribution in the same transaction."""
    listing = await ledger.create_listing(
        supermarket_id=data.supermarket_id,
        brand_product_id=data.brand_product_id,
        unit=data.unit,
        price=data.price,
        in_stock=data.in_stock,
        user_id=user_id,
    )
    return ListingResponse.model_validate(listing)


@router.patch("/{listing_id}/price", response_model=ListingResponse)
@limiter.limit(WRITE_RATE_LIMIT)
async def update_price(
    request: Request,
    listing_id: str,
    data: PriceUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    ledger: ContributionLedger = Depends(get_ledger),
):
    listing = await ledger.update_price(listing_id, data.new_price, user_id)
    return ListingResponse.model_validate(listing)


@router.patch("/{listing_id}/stock", response_model=ListingResponse)
@limiter.limit(WRITE_RATE_LIMIT)
async def update_stock(
    request: Request,
    listing_id: str,
    data: StockUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    ledger: ContributionLedger = Depends(get_ledger),
):
    listing = await ledger.update_stock(listing_id, data.in_stock, user_id)
    return ListingResponse.model_validate(listing)
