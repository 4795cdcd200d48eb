"""Base class for layout extractors.

Extractors are pure: they read a grid and its classification and return
variant records, never touching storage.
"""
from abc import ABC, abstractmethod
from typing import ClassVar, List, Optional
import structlog

from pricebook_ingest.errors import ExtractionError
from pricebook_ingest.models.classification import Classification, LayoutTag
from pricebook_ingest.models.grid import Grid
from pricebook_ingest.models.pricebook import SheetContext
from pricebook_ingest.models.variant_record import VariantRecord

logger = structlog.get_logger(__name__)


class LayoutExtractor(ABC):
    """Abstract base class for per-layout extraction strategies.

    All implementations must honor the contract:
        - extract() returns at least one VariantRecord
        - extract() raises ExtractionError (NoValidVariants) when every row
          was filtered out and (MissingColumns) when required columns are
          absent
        - get_extractor_name() returns the layout tag value
    """

    layout: ClassVar[LayoutTag]
    unit_of_measure: ClassVar[str]

    def __init__(self):
        self._log = logger.bind(extractor=self.get_extractor_name())

    @abstractmethod
    def extract(
        self,
        grid: Grid,
        classification: Classification,
        context: SheetContext,
    ) -> List[VariantRecord]:
        """Extract variant records from a classified grid.

        Args:
            grid: Sheet grid
            classification: Result of classifying the grid
            context: Page context (name, sheet discount, manufacturer)

        Returns:
            Variant records in sheet order
        """
        pass

    def get_extractor_name(self) -> str:
        """Layout tag handled by this extractor."""
        return self.layout.value

    def _require_records(
        self,
        records: List[VariantRecord],
        context: SheetContext,
    ) -> List[VariantRecord]:
        if not records:
            raise ExtractionError(
                f"No valid variants found in sheet {context.sheet_id}",
                layout=self.layout.value,
                kind=ExtractionError.NO_VALID_VARIANTS,
            )
        self._log.info(
            "variants_extracted",
            sheet_id=context.sheet_id,
            records=len(records),
        )
        return records

    def _missing_columns(self, context: SheetContext, detail: str, row_index: Optional[int] = None) -> ExtractionError:
        self._log.warning("extraction_columns_missing", sheet_id=context.sheet_id, detail=detail)
        return ExtractionError(
            f"{detail} in sheet {context.sheet_id}",
            layout=self.layout.value,
            row_index=row_index,
            kind=ExtractionError.MISSING_COLUMNS,
        )
