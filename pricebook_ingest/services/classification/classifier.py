"""Format classifier for pricebook sheet grids.

Scans the top of a grid row by row and asks each layout signature, in
priority order, whether the row is its header. The first match wins.

Example:
    classifier = FormatClassifier()
    classification = classifier.classify(grid, sheet_id="FACED BOARD")
    # classification.layout = LayoutTag.BOARD
    # classification.header_row_index = 4
"""
from dataclasses import dataclass
from typing import List, Optional
import structlog

from pricebook_ingest.errors import ClassificationError
from pricebook_ingest.models.classification import Classification
from pricebook_ingest.models.grid import Grid, grid_preview, is_blank_row
from pricebook_ingest.services.classification.signatures import (
    LayoutSignature,
    RowView,
    default_signatures,
)

logger = structlog.get_logger(__name__)


@dataclass
class ClassifierConfig:
    """Configuration for header scanning.

    Attributes:
        max_scan_rows: Rows inspected for a header (default 35)
        preview_rows: Rows included in NotRecognized diagnostics
    """
    max_scan_rows: int = 35
    preview_rows: int = 10


class FormatClassifier:
    """Classify a grid into one of the known layouts.

    Classification is a pure function of the grid: the same grid always
    produces the same tag and row indices.
    """

    def __init__(
        self,
        signatures: Optional[List[LayoutSignature]] = None,
        config: Optional[ClassifierConfig] = None,
    ):
        self.signatures = signatures if signatures is not None else default_signatures()
        self.config = config or ClassifierConfig()

    def try_classify(self, grid: Grid) -> Optional[Classification]:
        """Classify ``grid`` or return None when no signature matches."""
        scan_limit = min(self.config.max_scan_rows, len(grid))
        for index in range(scan_limit):
            if is_blank_row(grid[index]):
                continue
            row = RowView.of(grid, index)
            description = row.is_description
            for signature in self.signatures:
                if description and signature.skips_descriptions:
                    continue
                classification = signature.match(grid, row)
                if classification is not None:
                    logger.debug(
                        "layout_signature_matched",
                        signature=signature.get_signature_name(),
                        header_row=classification.header_row_index,
                    )
                    return classification
        return None

    def classify(self, grid: Grid, sheet_id: Optional[str] = None) -> Classification:
        """Classify ``grid``.

        Args:
            grid: Sheet grid
            sheet_id: Sheet identifier used in logs and errors

        Returns:
            Classification of the matched layout

        Raises:
            ClassificationError: If no signature matches within the scan window
        """
        classification = self.try_classify(grid)
        if classification is None:
            preview = grid_preview(grid, self.config.preview_rows)
            logger.warning(
                "sheet_not_recognized",
                sheet_id=sheet_id,
                rows=len(grid),
                scanned_rows=min(self.config.max_scan_rows, len(grid)),
                preview=preview,
            )
            raise ClassificationError(
                f"No known layout recognized in sheet {sheet_id or '<unnamed>'}",
                sheet_id=sheet_id,
                rows_preview=preview,
            )

        logger.info(
            "sheet_classified",
            sheet_id=sheet_id,
            layout=classification.layout.value,
            variant=classification.variant,
            header_row=classification.header_row_index,
            data_start_row=classification.data_start_row_index,
        )
        return classification
