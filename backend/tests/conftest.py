"""
Pytest configuration and fixtures for backend tests.
"""
import os

# Must be set before grocery_catalog.core.config is imported
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from decimal import Decimal
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from grocery_catalog.core.database import Base, get_db
from grocery_catalog.main import app
from grocery_catalog.models import (
    Brand,
    BrandProduct,
    Franchise,
    Product,
    ProductCategory,
    Supermarket,
    UNBRANDED_BRAND_ID,
    UNBRANDED_BRAND_NAME,
)
from grocery_catalog.services.catalog_store import CatalogStore
from grocery_catalog.services.contribution_ledger import ContributionLedger
from grocery_catalog.services.query_engine import QueryEngine

USER_ID = "33333333-3333-3333-3333-333333333333"

# SQLite in-memory database for testing, one per test
SQLALCHEMY_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db_session):
    return CatalogStore(db_session)


@pytest.fixture
def ledger(store):
    return ContributionLedger(store)


@pytest.fixture
def query_engine(store):
    return QueryEngine(store)


@pytest.fixture
async def catalog(db_session):
    """
    Reference data modelled on a small Venezuelan market:
    two supermarkets in Caracas, one in Valencia, branded and unbranded products.
    """
    ids = SimpleNamespace(
        unbranded=UNBRANDED_BRAND_ID,
        nestle="bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb",
        mavesa="cccccccc-cccc-cccc-cccc-cccccccccccc",
        tomatoes="55555555-5555-5555-5555-555555555555",
        flour="88888888-8888-8888-8888-888888888888",
        corn_oil="aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa",
        sugar="99999999-9999-9999-9999-999999999999",
        bp_flour="11111111-aaaa-aaaa-aaaa-aaaaaaaaaaaa",
        bp_corn_oil="22222222-bbbb-bbbb-bbbb-bbbbbbbbbbbb",
        bp_tomatoes="44444444-dddd-dddd-dddd-dddddddddddd",
        bp_sugar="33333333-cccc-cccc-cccc-cccccccccccc",
        franchise="eeeeeeee-eeee-eeee-eeee-eeeeeeeeeeee",
        mas_por_menos="f1940f34-ff22-4117-9e0d-8653ed2f0bcf",
        central_madeirense="0b6c5a3e-43c2-4c8e-9a56-6a3f2e1d0c11",
        aikoz="5d2f9c61-7a1b-4f3e-8c0d-2b9e4a6f1e22",
    )

    db_session.add_all([
        Brand(id=ids.unbranded, name=UNBRANDED_BRAND_NAME),
        Brand(id=ids.nestle, name="Nestle"),
        Brand(id=ids.mavesa, name="Mavesa"),
        Franchise(id=ids.franchise, name="Mas por Menos"),
        Product(id=ids.tomatoes, name="Tomatoes", description="Fresh tomatoes",
                category=ProductCategory.PRODUCE, units=["kg"], is_typically_branded=False),
        Product(id=ids.flour, name="Flour", description="All-purpose flour",
                category=ProductCategory.GROCERY, units=["1 kilo"], is_typically_branded=True),
        Product(id=ids.corn_oil, name="Corn Oil", description="Refined corn oil",
                category=ProductCategory.GROCERY, units=["1 liter"], is_typically_branded=True),
        Product(id=ids.sugar, name="White Granulated Sugar", description=None,
                category=ProductCategory.GROCERY, units=[], is_typically_branded=True),
        Supermarket(id=ids.mas_por_menos, name="Mas por Menos", city="Caracas",
                    address="Av. Principal de Las Mercedes", franchise_id=ids.franchise,
                    latitude=Decimal("10.4806"), longitude=Decimal("-66.9036"),
                    opening_hours={"monday": "08:00-21:00"}),
        Supermarket(id=ids.central_madeirense, name="Central Madeirense", city="Caracas",
                    address="Av. Francisco de Miranda", opening_hours={}),
        Supermarket(id=ids.aikoz, name="Aikoz", city="Valencia",
                    address="Av. Bolivar Norte", opening_hours={}),
    ])
    await db_session.flush()
    db_session.add_all([
        BrandProduct(id=ids.bp_flour, brand_id=ids.nestle, product_id=ids.flour),
        BrandProduct(id=ids.bp_corn_oil, brand_id=ids.mavesa, product_id=ids.corn_oil),
        BrandProduct(id=ids.bp_tomatoes, brand_id=ids.unbranded, product_id=ids.tomatoes),
        BrandProduct(id=ids.bp_sugar, brand_id=ids.nestle, product_id=ids.sugar),
    ])
    await db_session.commit()
    return ids


@pytest.fixture
async def listings(catalog, ledger):
    """Priced listings created through the ledger, so each has its NEW_PRODUCT row."""
    created = SimpleNamespace()
    created.tomatoes_caracas = await ledger.create_listing(
        catalog.mas_por_menos, catalog.bp_tomatoes, "1kg", Decimal("1.99"), False, USER_ID)
    created.flour_caracas = await ledger.create_listing(
        catalog.mas_por_menos, catalog.bp_flour, "1 kilogram", Decimal("5.99"), True, USER_ID)
    created.corn_oil_caracas = await ledger.create_listing(
        catalog.central_madeirense, catalog.bp_corn_oil, "500ml", Decimal("3.49"), True, USER_ID)
    created.corn_oil_caracas_1l = await ledger.create_listing(
        catalog.central_madeirense, catalog.bp_corn_oil, "1L", Decimal("6.00"), True, USER_ID)
    created.flour_valencia = await ledger.create_listing(
        catalog.aikoz, catalog.bp_flour, "1000g", Decimal("4.50"), True, USER_ID)
    return created


@pytest.fixture
async def client(session_factory):
    """HTTP client against the app with the test database."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()
