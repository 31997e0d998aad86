"""Request dependencies shared by the routers"""
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from grocery_catalog.core.database import get_db
from grocery_catalog.core.errors import AuthenticationError
from grocery_catalog.services.catalog_store import CatalogStore
from grocery_catalog.services.contribution_ledger import ContributionLedger
from grocery_catalog.services.query_engine import QueryEngine


def get_store(db: AsyncSession = Depends(get_db)) -> CatalogStore:
    return CatalogStore(db)


def get_query_engine(store: CatalogStore = Depends(get_store)) -> QueryEngine:
    return QueryEngine(store)


def get_ledger(store: CatalogStore = Depends(get_store)) -> ContributionLedger:
    return ContributionLedger(store)


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, description="Acting user id, set by the auth gateway"),
) -> str:
    """
    Acting user for audited writes.

    Authentication happens upstream; the gateway forwards the verified user
    id in X-User-Id. A request without it never reaches the ledger.
    """
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationError("X-User-Id header is required")
    return x_user_id.strip()
