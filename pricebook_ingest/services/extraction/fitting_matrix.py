"""Fitting matrix: nominal pipe size rows against wall thickness columns."""
import re
from typing import List, Tuple

from pricebook_ingest.models.classification import Classification, LayoutTag
from pricebook_ingest.models.grid import Grid, cell_at
from pricebook_ingest.models.pricebook import SheetContext
from pricebook_ingest.models.variant_record import VariantRecord
from pricebook_ingest.services.extraction.base import LayoutExtractor
from pricebook_ingest.services.pricing import parse_price, sku_fragment


def fitting_type_for(page_name: str) -> str:
    """Fitting type implied by the page name (45-degree when unstated)."""
    lowered = (page_name or "").lower()
    if "45" in lowered:
        return "45-degree"
    if "90" in lowered:
        return "90-degree"
    if "tee" in lowered:
        return "tee"
    return "45-degree"


class FittingMatrixExtractor(LayoutExtractor):
    """Extract one record per (pipe size, wall thickness) price cell."""

    layout = LayoutTag.FITTING_MATRIX
    unit_of_measure = "EA"

    def extract(
        self,
        grid: Grid,
        classification: Classification,
        context: SheetContext,
    ) -> List[VariantRecord]:
        wall_columns: List[Tuple[int, str]] = []
        for index, label in enumerate(classification.header_columns):
            if index == 0:
                continue
            cleaned = re.sub(r"[\"'$]", "", label).strip()
            if cleaned and cleaned != "-" and re.search(r"\d", cleaned):
                wall_columns.append((index, cleaned))
        if not wall_columns:
            raise self._missing_columns(
                context, "No wall thickness columns in fitting header",
                classification.header_row_index,
            )

        fitting_type = fitting_type_for(context.page_name)
        records: List[VariantRecord] = []
        for row_index in range(classification.data_start_row_index, len(grid)):
            row = grid[row_index]
            if len(row) < 2:
                continue
            raw_size = cell_at(row, 0)
            if not raw_size or raw_size == "-":
                continue
            pipe_size = re.sub(r"[\"']", "", raw_size).strip()

            for column, wall in wall_columns:
                price = parse_price(row[column] if column < len(row) else None)
                if price is None:
                    continue
                records.append(VariantRecord(
                    property_bag={
                        "pipeSize": pipe_size,
                        "wallThickness": wall,
                        "fittingType": fitting_type,
                    },
                    list_price=price,
                    unit_of_measure=self.unit_of_measure,
                    sku=f"FIB-{fitting_type}-{sku_fragment(pipe_size)}-{sku_fragment(wall)}",
                    display_name=f"{pipe_size} Pipe - {wall} Wall - {fitting_type}",
                    source_row=row_index,
                ))

        return self._require_records(records, context)
