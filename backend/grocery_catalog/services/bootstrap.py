"""Bootstrap service - reserved rows the catalog relies on"""
import logging

from grocery_catalog.core.database import AsyncSessionLocal
from grocery_catalog.services.catalog_store import CatalogStore

logger = logging.getLogger(__name__)


async def ensure_reserved_rows(session_factory=AsyncSessionLocal):
    """Create the unbranded sentinel brand if it is missing."""
    async with session_factory() as db:
        store = CatalogStore(db)
        async with store.atomic():
            brand = await store.ensure_unbranded_brand()
        logger.info("Reserved rows present (unbranded brand %s)", brand.id)
