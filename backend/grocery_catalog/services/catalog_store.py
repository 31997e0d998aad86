"""Catalog Store - persistence boundary for catalog entities"""
import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy import ColumnElement, Select, select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from grocery_catalog.core.errors import (
    CatalogError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from grocery_catalog.models import (
    Brand,
    BrandProduct,
    ContributionType,
    Franchise,
    Product,
    ProductCategory,
    ProductContribution,
    Supermarket,
    SupermarketProduct,
    UNBRANDED_BRAND_ID,
    UNBRANDED_BRAND_NAME,
)
from grocery_catalog.services.units import is_canonical_unit

logger = logging.getLogger(__name__)


PG_UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when the driver reports a unique-key failure."""
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if sqlstate is not None:
        return sqlstate == PG_UNIQUE_VIOLATION
    # SQLite carries no SQLSTATE, only the message
    return "unique constraint failed" in str(exc.orig).lower()


class CatalogStore:
    """
    Looks up and persists catalog entities for one unit of work.

    Wraps a single AsyncSession. Storage errors are translated into the
    catalog error taxonomy here so callers only ever see CatalogError:
    - unique violations become ConflictError
    - any other SQLAlchemy failure becomes InternalError

    Writes must run inside ``atomic()``, which commits on success and rolls
    back everything on any exception, cancellation included.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator["CatalogStore"]:
        try:
            yield self
            await self.db.commit()
        except CatalogError:
            await self.db.rollback()
            raise
        except IntegrityError as exc:
            await self.db.rollback()
            if is_unique_violation(exc):
                logger.warning("Unique constraint violated on commit: %s", exc.orig)
                raise ConflictError("The record conflicts with an existing one") from exc
            logger.exception("Integrity failure, transaction rolled back")
            raise InternalError() from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.exception("Storage failure, transaction rolled back")
            raise InternalError() from exc
        except BaseException:
            # Includes asyncio.CancelledError: nothing partial may survive
            await self.db.rollback()
            raise

    async def _flush(self, conflict_message: str, **context: Any) -> None:
        try:
            await self.db.flush()
        except IntegrityError as exc:
            if is_unique_violation(exc):
                raise ConflictError(conflict_message, **context) from exc
            raise

    # Existence checks

    async def supermarket_exists(self, supermarket_id: str) -> bool:
        result = await self.db.execute(
            select(Supermarket.id).where(Supermarket.id == supermarket_id)
        )
        return result.scalar_one_or_none() is not None

    async def brand_product_exists(self, brand_product_id: str) -> bool:
        result = await self.db.execute(
            select(BrandProduct.id).where(BrandProduct.id == brand_product_id)
        )
        return result.scalar_one_or_none() is not None

    # Lookups

    async def get_supermarket(self, supermarket_id: str) -> Optional[Supermarket]:
        return await self.db.get(Supermarket, supermarket_id)

    async def get_brand(self, brand_id: str) -> Optional[Brand]:
        return await self.db.get(Brand, brand_id)

    async def get_product(self, product_id: str) -> Optional[Product]:
        return await self.db.get(Product, product_id)

    async def get_brand_product(self, brand_product_id: str) -> Optional[BrandProduct]:
        return await self.db.get(BrandProduct, brand_product_id)

    async def get_product_for_brand_product(self, brand_product_id: str) -> Optional[Product]:
        result = await self.db.execute(
            select(Product)
            .join(BrandProduct, BrandProduct.product_id == Product.id)
            .where(BrandProduct.id == brand_product_id)
        )
        return result.scalar_one_or_none()

    async def list_supermarkets(
        self,
        city: Optional[str] = None,
        name: Optional[str] = None,
        limit: int = 20,
    ) -> List[Supermarket]:
        query = select(Supermarket)
        if city:
            query = query.where(Supermarket.city.ilike(f"%{escape_like(city)}%", escape="\\"))
        if name:
            query = query.where(Supermarket.name.ilike(f"%{escape_like(name)}%", escape="\\"))
        query = query.order_by(Supermarket.name, Supermarket.id).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # Listings

    async def get_listing(
        self, listing_id: str, for_update: bool = False
    ) -> Optional[SupermarketProduct]:
        query = (
            select(SupermarketProduct)
            .where(SupermarketProduct.id == listing_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def find_listing(
        self, supermarket_id: str, brand_product_id: str, unit: str
    ) -> Optional[SupermarketProduct]:
        result = await self.db.execute(
            select(SupermarketProduct).where(
                SupermarketProduct.supermarket_id == supermarket_id,
                SupermarketProduct.brand_product_id == brand_product_id,
                SupermarketProduct.unit == unit,
            )
        )
        return result.scalar_one_or_none()

    async def insert_listing(
        self,
        supermarket_id: str,
        brand_product_id: str,
        unit: str,
        price: Decimal,
        in_stock: bool,
    ) -> SupermarketProduct:
        if not is_canonical_unit(unit):
            raise ValidationError(f"unit '{unit}' is not in canonical form", field="unit")
        listing = SupermarketProduct(
            supermarket_id=supermarket_id,
            brand_product_id=brand_product_id,
            unit=unit,
            price=price,
            in_stock=in_stock,
        )
        self.db.add(listing)
        await self._flush(
            "A listing for this supermarket, brand product and unit already exists",
            supermarket_id=supermarket_id,
            brand_product_id=brand_product_id,
            unit=unit,
        )
        return listing

    async def update_listing(self, listing: SupermarketProduct, **values: Any) -> SupermarketProduct:
        for key, value in values.items():
            setattr(listing, key, value)
        await self.db.flush()
        return listing

    def listing_select(self, *columns: Any) -> Select:
        """SELECT over the listing join graph (listing, supermarket, brand, product)."""
        if not columns:
            columns = (
                SupermarketProduct,
                Brand.name.label("brand_name"),
                Product.name.label("product_name"),
                Supermarket.name.label("supermarket_name"),
                Supermarket.city.label("city"),
            )
        return (
            select(*columns)
            .select_from(SupermarketProduct)
            .join(Supermarket, Supermarket.id == SupermarketProduct.supermarket_id)
            .join(BrandProduct, BrandProduct.id == SupermarketProduct.brand_product_id)
            .join(Brand, Brand.id == BrandProduct.brand_id)
            .join(Product, Product.id == BrandProduct.product_id)
        )

    async def search_listings(
        self,
        conditions: Sequence[ColumnElement],
        order_by: Sequence[ColumnElement],
        offset: int,
        limit: int,
    ) -> List[Any]:
        query = (
            self.listing_select()
            .where(*conditions)
            .order_by(*order_by)
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.all())

    async def count_listings(self, conditions: Sequence[ColumnElement]) -> int:
        query = self.listing_select(func.count(SupermarketProduct.id)).where(*conditions)
        result = await self.db.execute(query)
        return int(result.scalar_one())

    async def get_listing_row(self, listing_id: str) -> Optional[Any]:
        result = await self.db.execute(
            self.listing_select().where(SupermarketProduct.id == listing_id)
        )
        return result.one_or_none()

    # Contributions (append-only: insert and read, nothing else)

    async def insert_contribution(
        self,
        supermarket_product_id: str,
        user_id: str,
        type: ContributionType,
        new_value: Dict[str, Any],
        old_value: Optional[Dict[str, Any]] = None,
    ) -> ProductContribution:
        contribution = ProductContribution(
            supermarket_product_id=supermarket_product_id,
            user_id=user_id,
            type=type,
            old_value=old_value,
            new_value=new_value,
        )
        self.db.add(contribution)
        await self.db.flush()
        return contribution

    async def contributions_for(self, supermarket_product_id: str) -> List[ProductContribution]:
        result = await self.db.execute(
            select(ProductContribution)
            .where(ProductContribution.supermarket_product_id == supermarket_product_id)
            .order_by(ProductContribution.created_at, ProductContribution.id)
        )
        return list(result.scalars().all())

    # Brand products

    async def create_brand_product(
        self, product_id: str, brand_id: Optional[str] = None
    ) -> BrandProduct:
        """Create a BrandProduct, substituting the unbranded sentinel when no brand is given."""
        brand_id = brand_id or UNBRANDED_BRAND_ID

        if await self.get_product(product_id) is None:
            raise NotFoundError("Product", product_id)
        if await self.get_brand(brand_id) is None:
            raise NotFoundError("Brand", brand_id)

        existing = await self.db.execute(
            select(BrandProduct.id).where(
                BrandProduct.brand_id == brand_id,
                BrandProduct.product_id == product_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(
                "A BrandProduct with this brand and product already exists",
                brand_id=brand_id,
                product_id=product_id,
            )

        brand_product = BrandProduct(brand_id=brand_id, product_id=product_id)
        self.db.add(brand_product)
        await self._flush(
            "A BrandProduct with this brand and product already exists",
            brand_id=brand_id,
            product_id=product_id,
        )
        return brand_product

    def brand_product_select(self) -> Select:
        """SELECT over brand products with their brand and product names."""
        return (
            select(
                BrandProduct,
                Brand.name.label("brand_name"),
                Product.name.label("product_name"),
            )
            .join(Brand, Brand.id == BrandProduct.brand_id)
            .join(Product, Product.id == BrandProduct.product_id)
        )

    async def search_brand_products(
        self, conditions: Sequence[ColumnElement], offset: int, limit: int
    ) -> List[Any]:
        query = (
            self.brand_product_select()
            .where(*conditions)
            .order_by(BrandProduct.created_at, BrandProduct.id)
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.all())

    async def count_brand_products(self, conditions: Sequence[ColumnElement]) -> int:
        result = await self.db.execute(
            select(func.count(BrandProduct.id)).where(*conditions)
        )
        return int(result.scalar_one())

    async def get_brand_product_row(self, brand_product_id: str) -> Optional[Any]:
        result = await self.db.execute(
            self.brand_product_select().where(BrandProduct.id == brand_product_id)
        )
        return result.one_or_none()

    async def brands_for_products(self, product_ids: Sequence[str]) -> List[Any]:
        """(BrandProduct, Brand) pairs for the given products, oldest pairing first."""
        if not product_ids:
            return []
        result = await self.db.execute(
            select(BrandProduct, Brand)
            .join(Brand, Brand.id == BrandProduct.brand_id)
            .where(BrandProduct.product_id.in_(product_ids))
            .order_by(BrandProduct.created_at, BrandProduct.id)
        )
        return list(result.all())

    # Products

    async def create_product(
        self,
        name: str,
        category: ProductCategory,
        units: Optional[List[str]] = None,
        description: Optional[str] = None,
        is_typically_branded: bool = False,
    ) -> Product:
        existing = await self.db.execute(select(Product.id).where(Product.name == name))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("A product with this name already exists", name=name)

        product = Product(
            name=name,
            category=category,
            units=list(units or []),
            description=description,
            is_typically_branded=is_typically_branded,
        )
        self.db.add(product)
        await self._flush("A product with this name already exists", name=name)
        return product

    async def search_products(
        self, conditions: Sequence[ColumnElement], offset: int, limit: int
    ) -> List[Product]:
        result = await self.db.execute(
            select(Product)
            .where(*conditions)
            .order_by(Product.name, Product.id)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_products(self, conditions: Sequence[ColumnElement]) -> int:
        result = await self.db.execute(select(func.count(Product.id)).where(*conditions))
        return int(result.scalar_one())

    # Supermarkets

    async def get_franchise(self, franchise_id: str) -> Optional[Franchise]:
        return await self.db.get(Franchise, franchise_id)

    async def create_supermarket(
        self,
        name: str,
        city: str,
        address: str,
        opening_hours: Optional[Dict[str, str]] = None,
        franchise_id: Optional[str] = None,
        latitude: Optional[Decimal] = None,
        longitude: Optional[Decimal] = None,
        phone_number: Optional[str] = None,
        website: Optional[str] = None,
    ) -> Supermarket:
        """Create a supermarket. Name and address together identify it."""
        if franchise_id is not None and await self.get_franchise(franchise_id) is None:
            raise NotFoundError("Franchise", franchise_id)

        existing = await self.db.execute(
            select(Supermarket.id).where(
                Supermarket.name == name,
                Supermarket.address == address,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(
                "A supermarket with this name and address already exists",
                name=name,
                address=address,
            )

        supermarket = Supermarket(
            name=name,
            city=city,
            address=address,
            opening_hours=dict(opening_hours or {}),
            franchise_id=franchise_id,
            latitude=latitude,
            longitude=longitude,
            phone_number=phone_number,
            website=website,
        )
        self.db.add(supermarket)
        await self._flush(
            "A supermarket with this name and address already exists",
            name=name,
            address=address,
        )
        return supermarket

    async def ensure_unbranded_brand(self) -> Brand:
        brand = await self.get_brand(UNBRANDED_BRAND_ID)
        if brand is None:
            brand = Brand(id=UNBRANDED_BRAND_ID, name=UNBRANDED_BRAND_NAME, logo=None)
            self.db.add(brand)
            await self._flush("Brand name 'Unbranded' is taken by another brand")
            logger.info("Created unbranded sentinel brand %s", UNBRANDED_BRAND_ID)
        return brand


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user text matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
