"""Query Engine - filtered, sorted, paginated catalog search"""
import json
import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy import ColumnElement, String, cast, select

from grocery_catalog.core.config import settings
from grocery_catalog.core.errors import NotFoundError, ValidationError
from grocery_catalog.models import (
    Brand,
    BrandProduct,
    Product,
    ProductCategory,
    Supermarket,
    SupermarketProduct,
)
from grocery_catalog.schemas.listing import (
    ContributionResponse,
    ListingDetail,
    ListingPage,
    ListingRow,
    PageMeta,
)
from grocery_catalog.schemas.product import (
    BrandProductDetail,
    BrandProductPage,
    BrandRef,
    ProductBrandProduct,
    ProductPage,
    ProductRef,
    ProductResponse,
)
from grocery_catalog.services.catalog_store import CatalogStore, escape_like
from grocery_catalog.services.units import normalize_unit

logger = logging.getLogger(__name__)


@dataclass
class ListingSearchCriteria:
    """Optional search criteria. A field left as None imposes no constraint."""
    city: Optional[str] = None
    supermarket_name: Optional[str] = None
    product_name: Optional[str] = None
    brand_name: Optional[str] = None
    unit: Optional[str] = None
    in_stock: Optional[bool] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    supermarket_ids: List[str] = field(default_factory=list)
    brand_product_ids: List[str] = field(default_factory=list)
    brand_ids: List[str] = field(default_factory=list)
    sort_by: str = "price"
    sort_order: str = "asc"
    page: int = 1
    limit: int = field(default_factory=lambda: settings.DEFAULT_PAGE_SIZE)


@dataclass
class ProductSearchCriteria:
    name: Optional[str] = None
    category: Optional[Any] = None
    is_typically_branded: Optional[bool] = None
    brand_name: Optional[str] = None
    unit: Optional[str] = None  # a declared unit, matched exactly
    page: int = 1
    limit: int = field(default_factory=lambda: settings.DEFAULT_PAGE_SIZE)


@dataclass
class BrandProductSearchCriteria:
    product_id: Optional[str] = None
    brand_id: Optional[str] = None
    page: int = 1
    limit: int = field(default_factory=lambda: settings.DEFAULT_PAGE_SIZE)


class QueryEngine:
    """
    Answers "which listings match these criteria" across the join graph
    listing -> supermarket, listing -> brand product -> brand / product.

    Criteria are combined into one conjunctive predicate which is applied
    twice: once for the page of rows (sorted, offset, limited) and once for
    an independent count, so the total never depends on the page asked for.
    """

    # Only these columns may drive ORDER BY
    SORT_COLUMNS = {
        "price": SupermarketProduct.price,
        "createdAt": SupermarketProduct.created_at,
        "updatedAt": SupermarketProduct.updated_at,
    }
    SORT_ORDERS = ("asc", "desc")

    def __init__(self, store: CatalogStore):
        self.store = store

    async def search(self, criteria: ListingSearchCriteria) -> ListingPage:
        self.validate(criteria)

        conditions = self.build_conditions(criteria)
        order_by = self._order_by(criteria.sort_by, criteria.sort_order)
        offset = (criteria.page - 1) * criteria.limit

        rows = await self.store.search_listings(conditions, order_by, offset, criteria.limit)
        total = await self.store.count_listings(conditions)

        logger.debug(
            "Listing search matched %d (page %d, limit %d, %d filters)",
            total, criteria.page, criteria.limit, len(conditions),
        )

        return ListingPage(
            data=[self._to_row(row) for row in rows],
            meta=_page_meta(total, criteria.page, criteria.limit),
        )

    async def get_listing(self, listing_id: str) -> ListingDetail:
        """One listing with its display fields and full contribution history."""
        row = await self.store.get_listing_row(listing_id)
        if row is None:
            raise NotFoundError("SupermarketProduct", listing_id)

        contributions = await self.store.contributions_for(listing_id)
        return ListingDetail(
            **self._to_row(row).model_dump(),
            contributions=[ContributionResponse.model_validate(c) for c in contributions],
        )

    # Products and brand products

    async def search_products(self, criteria: ProductSearchCriteria) -> ProductPage:
        """Products matching every supplied criterion, each with the brands it is sold under."""
        _validate_window(criteria.page, criteria.limit)
        category = _parse_category(criteria.category)

        conditions: List[ColumnElement] = []
        if criteria.name:
            conditions.append(_contains(Product.name, criteria.name))
        if category is not None:
            conditions.append(Product.category == category)
        if criteria.is_typically_branded is not None:
            conditions.append(Product.is_typically_branded == criteria.is_typically_branded)
        if criteria.brand_name:
            conditions.append(Product.id.in_(
                select(BrandProduct.product_id)
                .join(Brand, Brand.id == BrandProduct.brand_id)
                .where(_contains(Brand.name, criteria.brand_name))
            ))
        unit = (criteria.unit or "").strip()
        if unit:
            # units is stored as a JSON array; match one whole element
            conditions.append(
                cast(Product.units, String).like(f"%{escape_like(json.dumps(unit))}%", escape="\\")
            )

        offset = (criteria.page - 1) * criteria.limit
        products = await self.store.search_products(conditions, offset, criteria.limit)
        total = await self.store.count_products(conditions)
        brands = await self._brands_by_product([p.id for p in products])

        return ProductPage(
            data=[_to_product(p, brands.get(p.id, [])) for p in products],
            meta=_page_meta(total, criteria.page, criteria.limit),
        )

    async def get_product(self, product_id: str) -> ProductResponse:
        product = await self.store.get_product(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        brands = await self._brands_by_product([product.id])
        return _to_product(product, brands.get(product.id, []))

    async def list_brand_products(self, criteria: BrandProductSearchCriteria) -> BrandProductPage:
        _validate_window(criteria.page, criteria.limit)

        conditions: List[ColumnElement] = []
        if criteria.product_id:
            conditions.append(BrandProduct.product_id == criteria.product_id)
        if criteria.brand_id:
            conditions.append(BrandProduct.brand_id == criteria.brand_id)

        offset = (criteria.page - 1) * criteria.limit
        rows = await self.store.search_brand_products(conditions, offset, criteria.limit)
        total = await self.store.count_brand_products(conditions)

        return BrandProductPage(
            data=[_to_brand_product(row) for row in rows],
            meta=_page_meta(total, criteria.page, criteria.limit),
        )

    async def get_brand_product(self, brand_product_id: str) -> BrandProductDetail:
        row = await self.store.get_brand_product_row(brand_product_id)
        if row is None:
            raise NotFoundError("BrandProduct", brand_product_id)
        return _to_brand_product(row)

    async def _brands_by_product(self, product_ids: List[str]) -> Dict[str, List[ProductBrandProduct]]:
        grouped: Dict[str, List[ProductBrandProduct]] = defaultdict(list)
        for brand_product, brand in await self.store.brands_for_products(product_ids):
            grouped[brand_product.product_id].append(
                ProductBrandProduct(id=brand_product.id, brand=BrandRef(id=brand.id, name=brand.name))
            )
        return grouped

    def validate(self, criteria: ListingSearchCriteria) -> None:
        _validate_window(criteria.page, criteria.limit)
        if criteria.sort_by not in self.SORT_COLUMNS:
            raise ValidationError(
                f"sortBy must be one of: {', '.join(self.SORT_COLUMNS)}",
                field="sortBy",
            )
        if criteria.sort_order not in self.SORT_ORDERS:
            raise ValidationError("sortOrder must be 'asc' or 'desc'", field="sortOrder")

        for name in ("min_price", "max_price"):
            value = getattr(criteria, name)
            if value is None:
                continue
            try:
                value = Decimal(str(value))
            except InvalidOperation:
                raise ValidationError(f"{name} must be a number", field=name)
            if not value.is_finite() or value < 0:
                raise ValidationError(f"{name} must be a non-negative number", field=name)
            setattr(criteria, name, value)

    def build_conditions(self, criteria: ListingSearchCriteria) -> List[ColumnElement]:
        """One predicate per supplied criterion; absent criteria add nothing."""
        conditions: List[ColumnElement] = []

        if criteria.city:
            conditions.append(_contains(Supermarket.city, criteria.city))
        if criteria.supermarket_name:
            conditions.append(_contains(Supermarket.name, criteria.supermarket_name))
        if criteria.product_name:
            conditions.append(_contains(Product.name, criteria.product_name))
        if criteria.brand_name:
            conditions.append(_contains(Brand.name, criteria.brand_name))

        # Stored units are canonical, so compare canonical to canonical
        unit = normalize_unit(criteria.unit)
        if unit:
            conditions.append(SupermarketProduct.unit == unit)

        if criteria.in_stock is not None:
            conditions.append(SupermarketProduct.in_stock == criteria.in_stock)

        # Explicit None checks: a 0 bound is still a bound
        if criteria.min_price is not None:
            conditions.append(SupermarketProduct.price >= criteria.min_price)
        if criteria.max_price is not None:
            conditions.append(SupermarketProduct.price <= criteria.max_price)

        if criteria.supermarket_ids:
            conditions.append(SupermarketProduct.supermarket_id.in_(criteria.supermarket_ids))
        if criteria.brand_product_ids:
            conditions.append(SupermarketProduct.brand_product_id.in_(criteria.brand_product_ids))
        if criteria.brand_ids:
            conditions.append(BrandProduct.brand_id.in_(criteria.brand_ids))

        return conditions

    def _order_by(self, sort_by: str, sort_order: str) -> List[ColumnElement]:
        column = self.SORT_COLUMNS[sort_by]
        primary = column.desc() if sort_order == "desc" else column.asc()
        # Listing id as tie-breaker keeps pages stable
        return [primary, SupermarketProduct.id.asc()]

    @staticmethod
    def _to_row(row: Any) -> ListingRow:
        listing = row.SupermarketProduct
        return ListingRow(
            id=listing.id,
            brand=row.brand_name,
            product=row.product_name,
            unit=listing.unit,
            price=listing.price,
            supermarket=row.supermarket_name,
            city=row.city,
            in_stock=listing.in_stock,
            supermarket_id=listing.supermarket_id,
            brand_product_id=listing.brand_product_id,
            created_at=listing.created_at,
            updated_at=listing.updated_at,
        )


def _contains(column: Any, text: str) -> ColumnElement:
    """Case-insensitive literal substring match."""
    return column.ilike(f"%{escape_like(text)}%", escape="\\")


def _validate_window(page: Optional[int], limit: Optional[int]) -> None:
    if page is None or page < 1:
        raise ValidationError("page must be greater than or equal to 1", field="page")
    if limit is None or limit < 1:
        raise ValidationError("limit must be greater than or equal to 1", field="limit")


def _page_meta(total: int, page: int, limit: int) -> PageMeta:
    return PageMeta(total=total, page=page, limit=limit, total_pages=math.ceil(total / limit))


def _parse_category(value: Any) -> Optional[ProductCategory]:
    if value is None or value == "":
        return None
    if isinstance(value, ProductCategory):
        return value
    try:
        return ProductCategory(str(value).upper())
    except ValueError:
        raise ValidationError(
            f"category must be one of: {', '.join(c.value for c in ProductCategory)}",
            field="category",
        )


def _to_product(product: Product, brand_products: List[ProductBrandProduct]) -> ProductResponse:
    return ProductResponse(
        id=product.id,
        name=product.name,
        description=product.description,
        category=product.category,
        units=list(product.units or []),
        is_typically_branded=product.is_typically_branded,
        brand_products=brand_products,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


def _to_brand_product(row: Any) -> BrandProductDetail:
    brand_product = row.BrandProduct
    return BrandProductDetail(
        id=brand_product.id,
        brand=BrandRef(id=brand_product.brand_id, name=row.brand_name),
        product=ProductRef(id=brand_product.product_id, name=row.product_name),
        created_at=brand_product.created_at,
        updated_at=brand_product.updated_at,
    )
