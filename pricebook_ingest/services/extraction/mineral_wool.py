"""Mineral wool pipe insulation: pipe diameter rows against thickness columns.

Two sub-layouts exist. In the LF/BOX layout every thickness spans an
``LF/BOX`` and a ``PRICE/LF`` sub-column on the row below the thickness
labels. In the simple layout the price sits directly under the thickness.
"""
from dataclasses import dataclass
from typing import List, Optional
import re

from pricebook_ingest.models.classification import Classification, LayoutTag
from pricebook_ingest.models.grid import Grid, Row, cell_at, row_cells, row_text
from pricebook_ingest.models.pricebook import SheetContext
from pricebook_ingest.models.variant_record import VariantRecord
from pricebook_ingest.services.classification.signatures import MINERAL_WOOL_THICKNESS_RE
from pricebook_ingest.services.extraction.base import LayoutExtractor
from pricebook_ingest.services.pricing import parse_number, parse_price, sku_fragment

FOOTER_MARKERS = ("invoice", "please call")


@dataclass
class ThicknessColumn:
    thickness: str
    price_col: int
    lf_box_col: Optional[int] = None


def _find_sub_column(header: List[str], around: int, *needles: str) -> Optional[int]:
    """Nearest sub-column at or right of ``around`` whose label has all needles."""
    for j in (around, around + 1, around + 2, around - 1):
        if j < 1 or j >= len(header):
            continue
        label = header[j].lower()
        if all(needle in label for needle in needles):
            return j
    return None


class MineralWoolPipeExtractor(LayoutExtractor):
    """Extract one record per (diameter, thickness) with a '$' price."""

    layout = LayoutTag.MINERAL_WOOL_PIPE
    unit_of_measure = "FT"

    def _thickness_columns(self, grid: Grid, classification: Classification) -> List[ThicknessColumn]:
        thickness_row = row_cells(grid[classification.auxiliary_rows["thickness"]])
        lf_box_index = classification.auxiliary_rows.get("lf_box")
        lf_box_row = row_cells(grid[lf_box_index]) if lf_box_index is not None else None

        columns: List[ThicknessColumn] = []
        for i, cell in enumerate(thickness_row):
            if i == 0 or not cell or not MINERAL_WOOL_THICKNESS_RE.match(cell):
                continue
            thickness = re.sub(r"[\"']", "", cell).strip()
            if lf_box_row is None:
                columns.append(ThicknessColumn(thickness=thickness, price_col=i))
                continue
            lf_box_col = _find_sub_column(lf_box_row, i, "lf", "box")
            price_col = _find_sub_column(lf_box_row, i, "price", "lf")
            if lf_box_col is not None and price_col is not None:
                columns.append(ThicknessColumn(
                    thickness=thickness, price_col=price_col, lf_box_col=lf_box_col,
                ))
        return columns

    def extract(
        self,
        grid: Grid,
        classification: Classification,
        context: SheetContext,
    ) -> List[VariantRecord]:
        if "thickness" not in classification.auxiliary_rows:
            raise self._missing_columns(
                context, "No thickness row under mineral wool header",
                classification.header_row_index,
            )
        columns = self._thickness_columns(grid, classification)
        if not columns:
            raise self._missing_columns(
                context, "No thickness columns in mineral wool header",
                classification.header_row_index,
            )

        records: List[VariantRecord] = []
        for row_index in range(classification.data_start_row_index, len(grid)):
            row = grid[row_index]
            if not row:
                continue
            if any(marker in row_text(row) for marker in FOOTER_MARKERS):
                break

            diameter = cell_at(row, 0)
            if not diameter or diameter in ("-", "DL") or not re.search(r"\d", diameter):
                continue

            for column in columns:
                record = self._record(row, row_index, diameter, column)
                if record is not None:
                    records.append(record)

        return self._require_records(records, context)

    def _record(
        self,
        row: Row,
        row_index: int,
        diameter: str,
        column: ThicknessColumn,
    ) -> Optional[VariantRecord]:
        lf_per_box = None
        if column.lf_box_col is not None:
            lf_text = cell_at(row, column.lf_box_col)
            if lf_text == "-":
                return None
            lf_per_box = parse_number(lf_text)

        price = parse_price(cell_at(row, column.price_col), require_currency=True)
        if price is None:
            return None

        extra = {}
        if lf_per_box is not None and lf_per_box > 0:
            extra["lfPerBox"] = float(lf_per_box)
        return VariantRecord(
            property_bag={
                "pipeDiameter": diameter,
                "insulationThickness": column.thickness,
            },
            list_price=price,
            unit_of_measure=self.unit_of_measure,
            sku=f"MW-{sku_fragment(diameter)}-{sku_fragment(column.thickness)}",
            display_name=f'{diameter} Pipe - {column.thickness}" Mineral Wool',
            extra_properties=extra,
            source_row=row_index,
        )
