"""Grocery Catalog - FastAPI Backend"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from grocery_catalog.api import brand_products, health, listings, products, supermarkets
from grocery_catalog.core.config import settings
from grocery_catalog.core.database import engine
from grocery_catalog.core.errors import CatalogError, ErrorKind
from grocery_catalog.core.logging import setup_logging
from grocery_catalog.core.rate_limit import limiter

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)

    # Startup - initialize database
    from grocery_catalog.core.database import init_db
    await init_db()

    # Reserved rows (unbranded brand)
    from grocery_catalog.services.bootstrap import ensure_reserved_rows
    await ensure_reserved_rows()

    logger.info("Grocery catalog started (%s)", settings.ENVIRONMENT)
    yield
    # Shutdown
    await engine.dispose()


app = FastAPI(
    title="Grocery Catalog API",
    description="Supermarket price comparison with an audited price history",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed query or body is a validation failure like any other
    return JSONResponse(
        status_code=STATUS_BY_KIND[ErrorKind.VALIDATION],
        content={
            "error": ErrorKind.VALIDATION.value,
            "message": "Invalid request",
            "context": {"errors": jsonable_encoder(
                [{"loc": e["loc"], "msg": e["msg"], "type": e["type"]} for e in exc.errors()]
            )},
        },
    )


# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(health.router, tags=["Health"])
app.include_router(supermarkets.router, prefix="/api/v1/supermarkets", tags=["Supermarkets"])
app.include_router(products.router, prefix="/api/v1/products", tags=["Products"])
app.include_router(brand_products.router, prefix="/api/v1/brand-products", tags=["Brand Products"])
app.include_router(listings.router, prefix="/api/v1/listings", tags=["Listings"])
