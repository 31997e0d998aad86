"""Supermarket endpoints"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request

from grocery_catalog.api.deps import get_current_user_id, get_store
from grocery_catalog.core.errors import NotFoundError
from grocery_catalog.core.rate_limit import WRITE_RATE_LIMIT, limiter
from grocery_catalog.schemas.supermarket import (
    SupermarketCreateRequest,
    SupermarketListResponse,
    SupermarketResponse,
)
from grocery_catalog.services.catalog_store import CatalogStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=SupermarketListResponse)
async def list_supermarkets(
    city: Optional[str] = Query(None, description="Filter by city (substring)"),
    name: Optional[str] = Query(None, description="Filter by supermarket name (substring)"),
    limit: int = Query(20, ge=1, le=100),
    store: CatalogStore = Depends(get_store),
):
    """List supermarkets, optionally filtered by city or name."""
    supermarkets = await store.list_supermarkets(city=city, name=name, limit=limit)

    return SupermarketListResponse(
        supermarkets=[SupermarketResponse.model_validate(s) for s in supermarkets],
        count=len(supermarkets),
    )


@router.get("/{supermarket_id}", response_model=SupermarketResponse)
async def get_supermarket(
    supermarket_id: str,
    store: CatalogStore = Depends(get_store),
):
    """Get a specific supermarket by ID."""
    supermarket = await store.get_supermarket(supermarket_id)
    if supermarket is None:
        raise NotFoundError("Supermarket", supermarket_id)

    return SupermarketResponse.model_validate(supermarket)


@router.post("/", response_model=SupermarketResponse, status_code=201)
@limiter.limit(WRITE_RATE_LIMIT)
async def create_supermarket(
    request: Request,
    data: SupermarketCreateRequest,
    user_id: str = Depends(get_current_user_id),
    store: CatalogStore = Depends(get_store),
):
    """Create a supermarket. Name and address together must be unique."""
    async with store.atomic():
        supermarket = await store.create_supermarket(**data.model_dump())

    logger.info("Supermarket %s (%s, %s) created by user %s",
                supermarket.id, supermarket.name, supermarket.city, user_id)
    return SupermarketResponse.model_validate(supermarket)
