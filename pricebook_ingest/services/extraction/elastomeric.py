"""Elastomeric pipe insulation: List/NET/lf-ctn blocks per thickness.

Header layout::

    row h     INTERIOR DIAMETER | COPPER TUBE SIZE | 3/8" |     |        | 1/2" | ...
    row h+1   (codes)           |                  | 0038 |     |        | 0048 | ...
    row h+2                     |                  | List | NET | lf/ctn | List | ...
"""
from dataclasses import dataclass
from typing import List, Optional
import re

from pricebook_ingest.models.classification import Classification, LayoutTag
from pricebook_ingest.models.grid import Grid, Row, cell_at, row_cells
from pricebook_ingest.models.pricebook import SheetContext
from pricebook_ingest.models.variant_record import VariantRecord
from pricebook_ingest.services.classification.signatures import ELASTOMERIC_HEADER_THICKNESS_RE
from pricebook_ingest.services.extraction.base import LayoutExtractor
from pricebook_ingest.services.pricing import parse_number, parse_price, resolve_pricing, sku_fragment

_THICKNESS_RE = re.compile(r"(\d+(?:/\d+)?(?:-\d+/\d+)?)\s*[\"']")
_CODE_RE = re.compile(r"^\d{4}$")

SUB_HEADER_SPAN = 5


@dataclass
class ThicknessBlock:
    thickness: str
    list_col: int
    net_col: int
    lf_ctn_col: int


def _find_code_column(codes_row: Optional[Row]) -> Optional[int]:
    if codes_row is None:
        return None
    for index, cell in enumerate(row_cells(codes_row)):
        if _CODE_RE.match(cell):
            return index
    return None


def _find_block(sub_header: List[str], start: int) -> Optional[tuple]:
    """List, then NET, then lf/ctn columns within the span starting at ``start``."""
    list_col = net_col = None
    for i in range(start, min(start + SUB_HEADER_SPAN, len(sub_header))):
        label = sub_header[i].lower().strip()
        if label == "list" and list_col is None:
            list_col = i
        elif label == "net" and list_col is not None and net_col is None:
            net_col = i
        elif ("lf" in label or "ctn" in label) and net_col is not None:
            return list_col, net_col, i
    return None


class ElastomericPipeExtractor(LayoutExtractor):
    """Extract records with list, net and discount per thickness block."""

    layout = LayoutTag.ELASTOMERIC_PIPE_INSULATION
    unit_of_measure = "FT"

    def _blocks(self, header: List[str], sub_header: List[str]) -> List[ThicknessBlock]:
        blocks: List[ThicknessBlock] = []
        for col, label in enumerate(header):
            if not ELASTOMERIC_HEADER_THICKNESS_RE.search(label):
                continue
            match = _THICKNESS_RE.search(label)
            found = _find_block(sub_header, col)
            if match and found:
                list_col, net_col, lf_ctn_col = found
                blocks.append(ThicknessBlock(
                    thickness=f'{match.group(1)}"',
                    list_col=list_col,
                    net_col=net_col,
                    lf_ctn_col=lf_ctn_col,
                ))
        return blocks

    def extract(
        self,
        grid: Grid,
        classification: Classification,
        context: SheetContext,
    ) -> List[VariantRecord]:
        header = classification.header_columns
        header_lower = [h.lower() for h in header]
        diameter_col = next((i for i, h in enumerate(header_lower) if "interior diameter" in h), None)
        tube_col = next((i for i, h in enumerate(header_lower) if "copper tube size" in h), None)
        if diameter_col is None or tube_col is None:
            raise self._missing_columns(
                context, "Interior diameter or copper tube size column missing",
                classification.header_row_index,
            )

        codes_index = classification.auxiliary_rows.get("codes", classification.header_row_index + 1)
        sub_index = classification.auxiliary_rows.get("sub_header", classification.header_row_index + 2)
        codes_row = grid[codes_index] if codes_index < len(grid) else None
        sub_header = row_cells(grid[sub_index]) if sub_index < len(grid) else []

        blocks = self._blocks(header, sub_header)
        if not blocks:
            raise self._missing_columns(
                context, "No List/NET/lf-ctn thickness blocks found",
                classification.header_row_index,
            )
        code_col = _find_code_column(codes_row)

        records: List[VariantRecord] = []
        min_width = max(diameter_col, tube_col) + 1
        for row_index in range(classification.data_start_row_index, len(grid)):
            row = grid[row_index]
            if len(row) < min_width:
                continue
            diameter = cell_at(row, diameter_col)
            if not diameter or diameter == "-":
                continue
            tube_size = cell_at(row, tube_col)
            code = cell_at(row, code_col) if code_col is not None else ""
            if not _CODE_RE.match(code):
                code = ""

            for block in blocks:
                record = self._record(row, row_index, diameter, tube_size, code, block, context)
                if record is not None:
                    records.append(record)

        return self._require_records(records, context)

    def _record(
        self,
        row: Row,
        row_index: int,
        diameter: str,
        tube_size: str,
        code: str,
        block: ThicknessBlock,
        context: SheetContext,
    ) -> Optional[VariantRecord]:
        list_price = parse_price(cell_at(row, block.list_col))
        if list_price is None:
            return None
        net_price = parse_price(cell_at(row, block.net_col))
        lf_per_ctn = parse_number(cell_at(row, block.lf_ctn_col))

        extra = {}
        if code:
            extra["code"] = code
        if lf_per_ctn is not None and lf_per_ctn > 0:
            extra["lfPerCtn"] = float(lf_per_ctn)

        record = VariantRecord(
            property_bag={
                "interiorDiameter": diameter,
                "copperTubeSize": tube_size,
                "insulationThickness": block.thickness,
            },
            list_price=list_price,
            net_price=net_price,
            unit_of_measure=self.unit_of_measure,
            sku=f"ELT-{code or sku_fragment(diameter)}-{sku_fragment(block.thickness)}",
            display_name=f"{diameter} ID ({tube_size} CTS) - {block.thickness} Wall",
            supplier_part_number=code or None,
            extra_properties=extra,
            source_row=row_index,
        )
        net, discount = resolve_pricing(record, context.discount_percent)
        return record.model_copy(update={"net_price": net, "discount_percent": discount})
