"""Domain and validation models."""

# Sheet input
from pricebook_ingest.models.grid import Cell, Row, Grid
from pricebook_ingest.models.classification import LayoutTag, Classification
from pricebook_ingest.models.pricebook import (
    PricebookPage,
    SheetContext,
    PricebookMetadata,
)
from pricebook_ingest.models.variant_record import VariantRecord, identity_key

# Catalog
from pricebook_ingest.models.catalog import (
    CompanyRole,
    Company,
    DistributorSupplierLink,
    ProductDiscount,
    PricingSnapshot,
    SupplierPriceEntry,
    CatalogVariant,
    CatalogProduct,
)

# Ledger and results
from pricebook_ingest.models.ledger import LedgerStatus, LedgerEntry, ImportProgress
from pricebook_ingest.models.results import (
    SheetOutcome,
    ProductImportSummary,
    SheetResult,
    FailedSheet,
    BatchReport,
)

__all__ = [
    "Cell",
    "Row",
    "Grid",
    "LayoutTag",
    "Classification",
    "PricebookPage",
    "SheetContext",
    "PricebookMetadata",
    "VariantRecord",
    "identity_key",
    "CompanyRole",
    "Company",
    "DistributorSupplierLink",
    "ProductDiscount",
    "PricingSnapshot",
    "SupplierPriceEntry",
    "CatalogVariant",
    "CatalogProduct",
    "LedgerStatus",
    "LedgerEntry",
    "ImportProgress",
    "SheetOutcome",
    "ProductImportSummary",
    "SheetResult",
    "FailedSheet",
    "BatchReport",
]
