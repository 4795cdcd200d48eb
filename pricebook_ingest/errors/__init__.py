"""Error handling module."""
from pricebook_ingest.errors.exceptions import (
    DataIngestionError,
    ValidationError,
    SheetSourceError,
    ClassificationError,
    ExtractionError,
    ReconciliationError,
    LedgerError,
)

__all__ = [
    "DataIngestionError",
    "ValidationError",
    "SheetSourceError",
    "ClassificationError",
    "ExtractionError",
    "ReconciliationError",
    "LedgerError",
]
