"""Contribution Ledger - audited writes to listing price and availability"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

from grocery_catalog.core.errors import ConflictError, NotFoundError, ValidationError
from grocery_catalog.models import (
    ContributionType,
    ProductContribution,
    SupermarketProduct,
    UNIT_MAX_LENGTH,
)
from grocery_catalog.services.catalog_store import CatalogStore
from grocery_catalog.services.units import normalize_unit

logger = logging.getLogger(__name__)

MAX_PRICE = Decimal("99999999.99")  # Numeric(10, 2)
CENTS = Decimal("0.01")


class ContributionLedger:
    """
    Every write to a listing's price or stock flag, paired with its audit row.

    Implements the audit-trail pattern:
    - Listing row and ProductContribution are written in one transaction
    - Contributions are append-only (insert, never update or delete)
    - Any failure rolls back both rows, so neither exists without the other

    Snapshots store prices as decimal strings so the trail is exact.
    """

    def __init__(self, store: CatalogStore):
        self.store = store

    async def create_listing(
        self,
        supermarket_id: str,
        brand_product_id: str,
        unit: Optional[str],
        price: Any,
        in_stock: bool = True,
        user_id: Optional[str] = None,
    ) -> SupermarketProduct:
        """
        Create a listing and its NEW_PRODUCT contribution atomically.

        Raises NotFoundError naming the missing Supermarket or BrandProduct,
        ConflictError if the (supermarket, brand product, unit) triple is
        taken, including when a concurrent insert wins the race.
        """
        price = _validate_price(price, "price")
        _validate_user(user_id)
        canonical_unit = _validate_unit(normalize_unit(unit))

        async with self.store.atomic():
            if not await self.store.supermarket_exists(supermarket_id):
                raise NotFoundError("Supermarket", supermarket_id)
            if not await self.store.brand_product_exists(brand_product_id):
                raise NotFoundError("BrandProduct", brand_product_id)

            if not canonical_unit:
                canonical_unit = await self._default_unit(brand_product_id)

            existing = await self.store.find_listing(supermarket_id, brand_product_id, canonical_unit)
            if existing is not None:
                raise ConflictError(
                    "A listing for this supermarket, brand product and unit already exists",
                    supermarket_id=supermarket_id,
                    brand_product_id=brand_product_id,
                    unit=canonical_unit,
                )

            # The unique constraint stays authoritative if a concurrent insert slips past the check
            listing = await self.store.insert_listing(
                supermarket_id=supermarket_id,
                brand_product_id=brand_product_id,
                unit=canonical_unit,
                price=price,
                in_stock=in_stock,
            )
            await self.store.insert_contribution(
                supermarket_product_id=listing.id,
                user_id=user_id,
                type=ContributionType.NEW_PRODUCT,
                new_value={"price": str(price), "inStock": in_stock},
            )

        logger.info(
            "Listing %s created (unit=%s, price=%s) by user %s",
            listing.id, canonical_unit, price, user_id,
        )
        return listing

    async def update_price(
        self, supermarket_product_id: str, new_price: Any, user_id: Optional[str]
    ) -> SupermarketProduct:
        new_price = _validate_price(new_price, "newPrice")
        _validate_user(user_id)

        async with self.store.atomic():
            listing = await self._locked_listing(supermarket_product_id)
            old_price = listing.price

            await self.store.update_listing(listing, price=new_price)
            await self.store.insert_contribution(
                supermarket_product_id=listing.id,
                user_id=user_id,
                type=ContributionType.PRICE_UPDATE,
                old_value={"price": str(old_price)},
                new_value={"price": str(new_price)},
            )

        logger.info(
            "Listing %s price %s -> %s by user %s",
            listing.id, old_price, new_price, user_id,
        )
        return listing

    async def update_stock(
        self, supermarket_product_id: str, in_stock: bool, user_id: Optional[str]
    ) -> SupermarketProduct:
        if not isinstance(in_stock, bool):
            raise ValidationError("inStock must be a boolean", field="inStock")
        _validate_user(user_id)

        async with self.store.atomic():
            listing = await self._locked_listing(supermarket_product_id)
            was_in_stock = listing.in_stock

            await self.store.update_listing(listing, in_stock=in_stock)
            await self.store.insert_contribution(
                supermarket_product_id=listing.id,
                user_id=user_id,
                type=ContributionType.AVAILABILITY_UPDATE,
                old_value={"inStock": was_in_stock},
                new_value={"inStock": in_stock},
            )

        logger.info(
            "Listing %s inStock %s -> %s by user %s",
            listing.id, was_in_stock, in_stock, user_id,
        )
        return listing

    async def list_contributions(self, supermarket_product_id: str) -> List[ProductContribution]:
        """Audit history for one listing, oldest first."""
        if await self.store.get_listing(supermarket_product_id) is None:
            raise NotFoundError("SupermarketProduct", supermarket_product_id)
        return await self.store.contributions_for(supermarket_product_id)

    async def _locked_listing(self, supermarket_product_id: str) -> SupermarketProduct:
        listing = await self.store.get_listing(supermarket_product_id, for_update=True)
        if listing is None:
            raise NotFoundError("SupermarketProduct", supermarket_product_id)
        return listing

    async def _default_unit(self, brand_product_id: str) -> str:
        """The product's first declared unit, normalized."""
        canonical = ""
        product = await self.store.get_product_for_brand_product(brand_product_id)
        if product is not None and product.units:
            canonical = normalize_unit(product.units[0])
        if not canonical:
            raise ValidationError(
                "unit is required when the product declares no default unit",
                field="unit",
            )
        return _validate_unit(canonical)


def _validate_price(value: Any, field_name: str) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a positive number", field=field_name)
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field_name} must be a positive number", field=field_name)
    if not price.is_finite() or price <= 0:
        raise ValidationError(f"{field_name} must be a positive number", field=field_name)
    if price > MAX_PRICE:
        raise ValidationError(f"{field_name} must not exceed {MAX_PRICE}", field=field_name)
    if price.normalize().as_tuple().exponent < -2:
        raise ValidationError(f"{field_name} must have at most 2 decimal places", field=field_name)
    return price.quantize(CENTS)


def _validate_unit(canonical: str) -> str:
    if len(canonical) > UNIT_MAX_LENGTH:
        raise ValidationError(
            f"unit must be at most {UNIT_MAX_LENGTH} characters once normalized",
            field="unit",
        )
    return canonical


def _validate_user(user_id: Optional[str]) -> None:
    if not user_id:
        raise ValidationError("An acting user id is required", field="userId")
