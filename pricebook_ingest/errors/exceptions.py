"""Custom exception hierarchy for pricebook ingestion errors.

Every error carries a ``kind`` so the import ledger and batch reports can
group failures without parsing messages.
"""
from typing import Any, List, Optional


class DataIngestionError(Exception):
    """Base exception for all data ingestion errors."""

    kind: str = "DataIngestionError"

    def __init__(self, message: str, *args, kind: Optional[str] = None, **kwargs):
        """Initialize error with message and optional kind override."""
        self.message = message
        if kind is not None:
            self.kind = kind
        super().__init__(message, *args, **kwargs)


class ValidationError(DataIngestionError):
    """Raised when input data (batch files, sheet context) fails validation."""
    kind = "ValidationError"


class SheetSourceError(DataIngestionError):
    """Raised when a sheet grid cannot be fetched from its source."""
    kind = "SheetSourceError"


class ClassificationError(DataIngestionError):
    """Raised when no layout signature matches within the scan window.

    Attributes:
        sheet_id: Identifier of the sheet that failed classification
        rows_preview: First rows of the grid as text, for diagnosis
    """
    kind = "NotRecognized"

    def __init__(
        self,
        message: str,
        sheet_id: Optional[str] = None,
        rows_preview: Optional[List[List[str]]] = None,
        **kwargs: Any,
    ):
        self.sheet_id = sheet_id
        self.rows_preview = rows_preview or []
        super().__init__(message, **kwargs)


class ExtractionError(DataIngestionError):
    """Raised when a classified sheet yields no usable variant records."""
    kind = "NoValidVariants"

    NO_VALID_VARIANTS = "NoValidVariants"
    MISSING_COLUMNS = "MissingColumns"
    UNSUPPORTED_LAYOUT = "UnsupportedLayout"

    def __init__(
        self,
        message: str,
        layout: Optional[str] = None,
        row_index: Optional[int] = None,
        **kwargs: Any,
    ):
        self.layout = layout
        self.row_index = row_index
        super().__init__(message, **kwargs)


class ReconciliationError(DataIngestionError):
    """Raised when catalog persistence fails. Safe to retry."""
    kind = "StoreUnavailable"

    STORE_UNAVAILABLE = "StoreUnavailable"
    CONSTRAINT_VIOLATION = "ConstraintViolation"
    VERIFICATION_FAILED = "VerificationFailed"
    EMPTY_BATCH = "EmptyBatch"


class LedgerError(DataIngestionError):
    """Raised when the import ledger cannot record a sheet's status."""
    kind = "LedgerError"
