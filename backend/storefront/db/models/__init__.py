"""Database models package."""
from storefront.db.models.import_job import ImportJob
from storefront.db.models.product import Barcode, PricingTier, Product
from storefront.db.models.taxonomy import Brand, Category, Subcategory

__all__ = [
    "Barcode",
    "Brand",
    "Category",
    "ImportJob",
    "PricingTier",
    "Product",
    "Subcategory",
]
