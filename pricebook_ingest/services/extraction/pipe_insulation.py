"""Pipe insulation matrix: copper/iron diameters against thickness columns."""
import re
from typing import List, Tuple

from pricebook_ingest.models.classification import Classification, LayoutTag
from pricebook_ingest.models.grid import Grid, cell_at
from pricebook_ingest.models.pricebook import SheetContext
from pricebook_ingest.models.variant_record import VariantRecord
from pricebook_ingest.services.extraction.base import LayoutExtractor
from pricebook_ingest.services.pricing import parse_price

# (pipeType, diameter column, SKU letter)
PIPE_TYPES = (("copper", 0, "C"), ("iron", 1, "I"))


def _sku_part(label: str) -> str:
    return re.sub(r"\s+", "", label).replace('"', "").replace("/", "-")


class PipeInsulationExtractor(LayoutExtractor):
    """Extract one record per (pipe type, diameter, thickness) price cell.

    Column 0 holds copper diameters, column 1 iron diameters; every later
    header cell containing a digit is an insulation thickness label.
    """

    layout = LayoutTag.PIPE_INSULATION
    unit_of_measure = "FT"

    def extract(
        self,
        grid: Grid,
        classification: Classification,
        context: SheetContext,
    ) -> List[VariantRecord]:
        thickness_columns: List[Tuple[int, str]] = [
            (index, label.strip())
            for index, label in enumerate(classification.header_columns)
            if index >= 2 and re.search(r"\d", label)
        ]
        if not thickness_columns:
            raise self._missing_columns(
                context, "No thickness columns in pipe insulation header",
                classification.header_row_index,
            )

        records: List[VariantRecord] = []
        for row_index in range(classification.data_start_row_index, len(grid)):
            row = grid[row_index]
            if len(row) < 2:
                continue
            for pipe_type, column, letter in PIPE_TYPES:
                diameter = cell_at(row, column)
                if not diameter or diameter == "-":
                    continue
                for price_column, thickness in thickness_columns:
                    price = parse_price(row[price_column] if price_column < len(row) else None)
                    if price is None:
                        continue
                    bare_diameter = diameter.replace('"', "")
                    records.append(VariantRecord(
                        property_bag={
                            "pipeType": pipe_type,
                            "pipeDiameter": diameter,
                            "insulationThickness": thickness,
                        },
                        list_price=price,
                        unit_of_measure=self.unit_of_measure,
                        sku=f"ML-{letter}-{_sku_part(diameter)}-{_sku_part(thickness)}".upper(),
                        display_name=(
                            f'{bare_diameter}" {pipe_type.capitalize()} Pipe - {thickness} Insulation'
                        ),
                        source_row=row_index,
                    ))

        return self._require_records(records, context)
