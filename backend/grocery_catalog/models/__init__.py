from grocery_catalog.models.product import Product, ProductCategory
from grocery_catalog.models.brand import Brand, Franchise, UNBRANDED_BRAND_ID, UNBRANDED_BRAND_NAME
from grocery_catalog.models.brand_product import BrandProduct
from grocery_catalog.models.supermarket import Supermarket
from grocery_catalog.models.supermarket_product import SupermarketProduct, UNIT_MAX_LENGTH
from grocery_catalog.models.contribution import ProductContribution, ContributionType

__all__ = [
    "Product",
    "ProductCategory",
    "Brand",
    "Franchise",
    "UNBRANDED_BRAND_ID",
    "UNBRANDED_BRAND_NAME",
    "BrandProduct",
    "Supermarket",
    "SupermarketProduct",
    "UNIT_MAX_LENGTH",
    "ProductContribution",
    "ContributionType",
]
