"""ORM models."""
from pricebook_ingest.db.models.company import Company, DistributorSupplierLink
from pricebook_ingest.db.models.product import Product, ProductVariant, VariantSupplierPrice

__all__ = [
    "Company",
    "DistributorSupplierLink",
    "Product",
    "ProductVariant",
    "VariantSupplierPrice",
]
