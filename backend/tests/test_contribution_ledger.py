"""
Tests for ContributionLedger - audited listing writes.

Tests cover:
- Listing creation with its NEW_PRODUCT contribution
- Price and stock updates with old/new snapshots
- NotFound / Conflict / Validation outcomes
- Atomicity under injected storage failures and cancellation
"""
import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from grocery_catalog.core.errors import ConflictError, InternalError, NotFoundError, ValidationError
from grocery_catalog.models import ContributionType
from grocery_catalog.services.contribution_ledger import ContributionLedger
from conftest import USER_ID


class TestCreateListing:

    async def test_creates_listing_with_one_new_product_contribution(self, catalog, ledger, store):
        listing = await ledger.create_listing(
            catalog.mas_por_menos, catalog.bp_corn_oil, "500ml", Decimal("1.99"), True, USER_ID)

        contributions = await store.contributions_for(listing.id)

        assert len(contributions) == 1
        contribution = contributions[0]
        assert contribution.type == ContributionType.NEW_PRODUCT
        assert contribution.user_id == USER_ID
        assert contribution.old_value is None
        assert Decimal(contribution.new_value["price"]) == Decimal("1.99")
        assert contribution.new_value["inStock"] is True

    async def test_unit_is_stored_canonical(self, catalog, ledger, store):
        listing = await ledger.create_listing(
            catalog.mas_por_menos, catalog.bp_flour, "1KG", Decimal("5.99"), True, USER_ID)

        stored = await store.get_listing(listing.id)
        assert stored.unit == "1000 g"
        assert stored.price == Decimal("5.99")

    async def test_float_price_is_recorded_exactly(self, catalog, ledger, store):
        listing = await ledger.create_listing(
            catalog.mas_por_menos, catalog.bp_flour, "1kg", 5.99, True, USER_ID)

        [contribution] = await store.contributions_for(listing.id)
        assert contribution.new_value["price"] == "5.99"

    async def test_missing_unit_falls_back_to_product_unit(self, catalog, ledger):
        listing = await ledger.create_listing(
            catalog.aikoz, catalog.bp_corn_oil, None, Decimal("4.99"), True, USER_ID)
        assert listing.unit == "1000 ml"

    async def test_missing_unit_without_product_default_is_rejected(self, catalog, ledger):
        with pytest.raises(ValidationError) as exc_info:
            await ledger.create_listing(
                catalog.aikoz, catalog.bp_sugar, "", Decimal("2.00"), True, USER_ID)
        assert exc_info.value.field == "unit"

    async def test_missing_supermarket_is_named(self, catalog, ledger):
        with pytest.raises(NotFoundError) as exc_info:
            await ledger.create_listing(
                "no-such-supermarket", catalog.bp_flour, "1kg", Decimal("1.00"), True, USER_ID)

        assert exc_info.value.entity == "Supermarket"
        assert exc_info.value.entity_id == "no-such-supermarket"

    async def test_missing_brand_product_is_named(self, catalog, ledger):
        with pytest.raises(NotFoundError) as exc_info:
            await ledger.create_listing(
                catalog.aikoz, "no-such-brand-product", "1kg", Decimal("1.00"), True, USER_ID)

        assert exc_info.value.entity == "BrandProduct"

    async def test_duplicate_triple_conflicts_and_leaves_first_listing_alone(self, catalog, ledger, store):
        first = await ledger.create_listing(
            catalog.aikoz, catalog.bp_flour, "1kg", Decimal("4.50"), True, USER_ID)
        first_id = first.id

        # "1000g" normalizes to the same unit as "1kg"
        with pytest.raises(ConflictError):
            await ledger.create_listing(
                catalog.aikoz, catalog.bp_flour, "1000g", Decimal("3.00"), False, "other-user")

        stored = await store.get_listing(first_id)
        assert stored.price == Decimal("4.50")
        assert stored.in_stock is True
        contributions = await store.contributions_for(first_id)
        assert [c.type for c in contributions] == [ContributionType.NEW_PRODUCT]

    async def test_same_product_in_another_unit_is_a_new_listing(self, catalog, ledger):
        small = await ledger.create_listing(
            catalog.aikoz, catalog.bp_corn_oil, "500ml", Decimal("2.50"), True, USER_ID)
        large = await ledger.create_listing(
            catalog.aikoz, catalog.bp_corn_oil, "1L", Decimal("4.50"), True, USER_ID)
        assert small.id != large.id

    async def test_storage_unique_violation_wins_over_precheck(self, catalog, ledger, store):
        """A concurrent insert that slips past the pre-check still yields Conflict."""
        first = await ledger.create_listing(
            catalog.aikoz, catalog.bp_flour, "1kg", Decimal("4.50"), True, USER_ID)
        first_id = first.id

        store.find_listing = AsyncMock(return_value=None)

        with pytest.raises(ConflictError):
            await ledger.create_listing(
                catalog.aikoz, catalog.bp_flour, "1kg", Decimal("3.75"), True, USER_ID)

        contributions = await store.contributions_for(first_id)
        assert len(contributions) == 1
        assert (await store.get_listing(first_id)).price == Decimal("4.50")

    async def test_failed_audit_insert_leaves_no_listing(self, catalog, ledger, store):
        store.insert_contribution = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("disk I/O error")))

        with pytest.raises(InternalError) as exc_info:
            await ledger.create_listing(
                catalog.aikoz, catalog.bp_flour, "1kg", Decimal("4.50"), True, USER_ID)

        assert "disk" not in exc_info.value.message
        assert await store.find_listing(catalog.aikoz, catalog.bp_flour, "1000 g") is None

    async def test_cancelled_create_leaves_no_listing(self, catalog, ledger, store):
        store.insert_contribution = AsyncMock(side_effect=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await ledger.create_listing(
                catalog.aikoz, catalog.bp_flour, "1kg", Decimal("4.50"), True, USER_ID)

        assert await store.find_listing(catalog.aikoz, catalog.bp_flour, "1000 g") is None


class TestUpdatePrice:

    async def test_records_old_and_new_price(self, listings, ledger, store):
        listing = listings.flour_caracas

        updated = await ledger.update_price(listing.id, Decimal("6.49"), "merchant-7")

        assert updated.price == Decimal("6.49")
        contributions = await store.contributions_for(listing.id)
        price_updates = [c for c in contributions if c.type == ContributionType.PRICE_UPDATE]
        assert len(price_updates) == 1
        assert price_updates[0].old_value == {"price": "5.99"}
        assert price_updates[0].new_value == {"price": "6.49"}
        assert price_updates[0].user_id == "merchant-7"

    async def test_each_update_appends_a_contribution(self, listings, ledger, store):
        listing = listings.corn_oil_caracas
        for price in ("3.59", "3.39", "3.45"):
            await ledger.update_price(listing.id, Decimal(price), USER_ID)

        contributions = await store.contributions_for(listing.id)
        assert len(contributions) == 4
        new_prices = sorted(c.new_value["price"] for c in contributions if c.type == ContributionType.PRICE_UPDATE)
        assert new_prices == ["3.39", "3.45", "3.59"]

    async def test_missing_listing(self, catalog, ledger):
        with pytest.raises(NotFoundError) as exc_info:
            await ledger.update_price("missing-listing", Decimal("1.00"), USER_ID)
        assert exc_info.value.entity == "SupermarketProduct"

    async def test_aborted_transaction_keeps_price_and_history(self, listings, ledger, store):
        listing_id = listings.flour_valencia.id
        store.insert_contribution = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("boom")))

        with pytest.raises(InternalError):
            await ledger.update_price(listing_id, Decimal("9.99"), USER_ID)

        stored = await store.get_listing(listing_id)
        assert stored.price == Decimal("4.50")
        contributions = await store.contributions_for(listing_id)
        assert [c.type for c in contributions] == [ContributionType.NEW_PRODUCT]


class TestUpdateStock:

    async def test_records_availability_change(self, listings, ledger, store):
        listing = listings.tomatoes_caracas

        updated = await ledger.update_stock(listing.id, True, USER_ID)

        assert updated.in_stock is True
        contributions = await store.contributions_for(listing.id)
        [change] = [c for c in contributions if c.type == ContributionType.AVAILABILITY_UPDATE]
        assert change.old_value == {"inStock": False}
        assert change.new_value == {"inStock": True}

    async def test_missing_listing(self, catalog, ledger):
        with pytest.raises(NotFoundError):
            await ledger.update_stock("missing-listing", False, USER_ID)

    async def test_aborted_transaction_keeps_flag(self, listings, ledger, store):
        listing_id = listings.tomatoes_caracas.id
        store.insert_contribution = AsyncMock(side_effect=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await ledger.update_stock(listing_id, True, USER_ID)

        assert (await store.get_listing(listing_id)).in_stock is False
        assert len(await store.contributions_for(listing_id)) == 1


class TestListContributions:

    async def test_history_for_listing(self, listings, ledger):
        await ledger.update_stock(listings.flour_caracas.id, False, USER_ID)

        history = await ledger.list_contributions(listings.flour_caracas.id)
        assert {c.type for c in history} == {
            ContributionType.NEW_PRODUCT, ContributionType.AVAILABILITY_UPDATE,
        }

    async def test_missing_listing(self, catalog, ledger):
        with pytest.raises(NotFoundError):
            await ledger.list_contributions("missing-listing")


class TestInputValidation:
    """Invalid input never reaches storage."""

    @pytest.fixture
    def untouched_store(self):
        store = MagicMock()
        store.atomic = MagicMock(side_effect=AssertionError("storage must not be touched"))
        return store

    @pytest.mark.parametrize("price", [0, Decimal("-1.00"), "abc", None, float("nan"), Decimal("1.999"), True])
    async def test_bad_price_on_create(self, untouched_store, price):
        ledger = ContributionLedger(untouched_store)
        with pytest.raises(ValidationError) as exc_info:
            await ledger.create_listing("sm", "bp", "1kg", price, True, USER_ID)
        assert exc_info.value.field == "price"

    @pytest.mark.parametrize("price", [0, Decimal("-0.01")])
    async def test_bad_price_on_update(self, untouched_store, price):
        ledger = ContributionLedger(untouched_store)
        with pytest.raises(ValidationError) as exc_info:
            await ledger.update_price("listing", price, USER_ID)
        assert exc_info.value.field == "newPrice"

    async def test_unit_longer_than_column_once_normalized(self, untouched_store):
        ledger = ContributionLedger(untouched_store)
        with pytest.raises(ValidationError) as exc_info:
            await ledger.create_listing("sm", "bp", "9" * 50 + " kg", Decimal("1.00"), True, USER_ID)
        assert exc_info.value.field == "unit"

    async def test_user_is_required(self, untouched_store):
        ledger = ContributionLedger(untouched_store)
        with pytest.raises(ValidationError) as exc_info:
            await ledger.update_stock("listing", True, None)
        assert exc_info.value.field == "userId"

    async def test_stock_flag_must_be_boolean(self, untouched_store):
        ledger = ContributionLedger(untouched_store)
        with pytest.raises(ValidationError):
            await ledger.update_stock("listing", "yes", USER_ID)
