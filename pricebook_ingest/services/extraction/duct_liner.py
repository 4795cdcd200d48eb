"""Duct liner layout: named product sections of roll thickness/dimension rows.

Sections are found by known product-name markers. Each section reads its
own column header (before or after the marker) and runs until the next
marker, a footer, or a blank row once it has variants.
"""
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple
import re

from pricebook_ingest.models.classification import Classification, LayoutTag
from pricebook_ingest.models.grid import Grid, Row, cell_at, is_blank_row, row_cells, row_text
from pricebook_ingest.models.pricebook import SheetContext
from pricebook_ingest.models.variant_record import VariantRecord
from pricebook_ingest.services.extraction.base import LayoutExtractor
from pricebook_ingest.services.pricing import (
    CENTS,
    normalize_label,
    parse_number,
    parse_price,
    sku_fragment,
)


@dataclass(frozen=True)
class SectionMarker:
    name: str
    pattern: Pattern
    type_code: str


SECTION_MARKERS: Tuple[SectionMarker, ...] = (
    SectionMarker("JM LINACOUSTIC RC", re.compile(r"LINACOUSTIC RC", re.I), "rc"),
    SectionMarker("JM DUCT LINER PM", re.compile(r"DUCT LINER PM", re.I), "pm"),
    SectionMarker("JM R300 DUCT BOARD", re.compile(r"JM R300", re.I), "r300"),
    SectionMarker(
        "CERTAINTEED RIGID LINER BOARD WITH TOUGHGARD FACING",
        re.compile(r"CERTAINTEED RIGID LINER", re.I), "certainteed",
    ),
    SectionMarker("JM SPIRACOUSTIC PLUS", re.compile(r"SPIRACOUSTIC", re.I), "spiracoustic"),
    SectionMarker(
        "JM MICROFLEX & CERTAINTEED CRIMPWRAP PIPE & TANK with FSK",
        re.compile(r"MICROFLEX.*CRIMPWRAP", re.I), "microflex",
    ),
    SectionMarker(
        "CCI FIBREGLASS PIPE & TANK with FSK",
        re.compile(r"CCI.*PIPE.*TANK", re.I), "cci-pipe-tank",
    ),
    SectionMarker(
        "3/4 lb. FSK FLEXIBLE DUCT WRAP",
        re.compile(r"3/4.*lb.*FSK.*FLEXIBLE.*DUCT", re.I), "duct-wrap-075",
    ),
    SectionMarker(
        "1 lb. FSK FLEXIBLE DUCT WRAP",
        re.compile(r"^1 lb\. FSK FLEXIBLE DUCT WRAP$", re.I), "duct-wrap-1",
    ),
    SectionMarker(
        "1.5 lb. FSK FLEXIBLE DUCT WRAP",
        re.compile(r"1\.5.*lb.*FSK.*FLEXIBLE.*DUCT", re.I), "duct-wrap-15",
    ),
    SectionMarker("PLAIN DUCTWRAP", re.compile(r"^PLAIN DUCTWRAP$", re.I), "duct-wrap-plain"),
    SectionMarker(
        "FITTING WRAP - PLAIN FOIL",
        re.compile(r"FITTING WRAP.*PLAIN FOIL", re.I), "fitting-wrap",
    ),
    SectionMarker("R-FLEX FSK OR AP", re.compile(r"R-FLEX FSK OR AP", re.I), "r-flex"),
    SectionMarker(
        "R-FLEX HT - FSK (HIGH TEMP MINERAL FIBER)",
        re.compile(r"R-FLEX HT", re.I), "r-flex-ht",
    ),
    SectionMarker("LINACOUSTIC", re.compile(r"^LINACOUSTIC$", re.I), "linacoustic"),
)

FOOTER_KEYWORDS = ("list prices", "invoice", "all products meet", "adhesives", "tapes")
HEADER_LOOKBACK = 10
HEADER_LOOKAHEAD = 5

_THICKNESS_IN_DIMENSIONS_RE = re.compile(r"(\d+(?:\s*-\s*\d+/\d+)?)\"")


@dataclass
class Section:
    marker: SectionMarker
    start: int
    header_index: int


@dataclass
class DuctColumns:
    thickness: Optional[int]
    dimensions: Optional[int]
    sq_ft: Optional[int]
    price_per_sq_ft: Optional[int]
    price_per_roll: Optional[int]

    @classmethod
    def from_header(cls, header: List[str]) -> "DuctColumns":
        lowered = [h.lower() for h in header]

        def first(predicate) -> Optional[int]:
            return next((i for i, h in enumerate(lowered) if predicate(h)), None)

        return cls(
            thickness=first(lambda h: "thickness" in h),
            dimensions=first(lambda h: "dimension" in h),
            sq_ft=first(lambda h: "price" not in h and any(s in h for s in ("sq.ft", "sq ft", "sqft"))),
            price_per_sq_ft=first(lambda h: "price per sq" in h or "price/sq" in h),
            price_per_roll=first(
                lambda h: "price per" in h and ("roll" in h or "carton" in h)
            ),
        )


def _is_section_header(row: Row) -> bool:
    text = row_text(row)
    return "roll thickness" in text and ("dimension" in text or "roll width" in text)


def _marker_of(row: Row) -> Optional[SectionMarker]:
    for cell in row_cells(row):
        if not cell:
            continue
        for marker in SECTION_MARKERS:
            if marker.pattern.search(cell):
                return marker
    return None


def _type_code_for(page_name: str) -> str:
    code = re.sub(r"[^a-z0-9]+", "-", page_name.lower()).strip("-")
    return code or "duct"


class DuctLinerExtractor(LayoutExtractor):
    """Extract duct liner, duct wrap and pipe & tank wrap sections."""

    layout = LayoutTag.DUCT_LINER
    unit_of_measure = "ROLL"

    def find_sections(self, grid: Grid, classification: Classification) -> List[Section]:
        """Locate product sections by their first marker row, in sheet order."""
        sections: List[Section] = []
        seen = set()
        for index, row in enumerate(grid):
            marker = _marker_of(row)
            if marker is None or marker.type_code in seen:
                continue
            seen.add(marker.type_code)
            sections.append(Section(
                marker=marker,
                start=index,
                header_index=self._header_for(grid, index, classification),
            ))
        return sections

    def _header_for(self, grid: Grid, marker_index: int, classification: Classification) -> int:
        for i in range(marker_index - 1, max(marker_index - HEADER_LOOKBACK, 0) - 1, -1):
            if _is_section_header(grid[i]):
                return i
        for i in range(marker_index + 1, min(marker_index + HEADER_LOOKAHEAD, len(grid))):
            if _is_section_header(grid[i]):
                return i
        return classification.header_row_index

    def extract(
        self,
        grid: Grid,
        classification: Classification,
        context: SheetContext,
    ) -> List[VariantRecord]:
        sections = self.find_sections(grid, classification)
        marker_rows = {section.start for section in sections}

        records: List[VariantRecord] = []
        if not sections:
            fallback = SectionMarker(
                context.page_name, re.compile(re.escape(context.page_name)),
                _type_code_for(context.page_name),
            )
            records.extend(self._extract_section(
                grid,
                Section(fallback, classification.header_row_index, classification.header_row_index),
                marker_rows,
            ))
        for section in sections:
            section_records = self._extract_section(grid, section, marker_rows)
            if not section_records:
                self._log.debug(
                    "duct_section_empty",
                    sheet_id=context.sheet_id,
                    section=section.marker.name,
                )
            records.extend(section_records)

        return self._require_records(records, context)

    def _extract_section(self, grid: Grid, section: Section, marker_rows: set) -> List[VariantRecord]:
        columns = DuctColumns.from_header(row_cells(grid[section.header_index]))
        start = max(section.start, section.header_index) + 1

        records: List[VariantRecord] = []
        for row_index in range(start, len(grid)):
            row = grid[row_index]
            if row_index in marker_rows:
                break
            if is_blank_row(row):
                if records:
                    break
                continue
            text = row_text(row)
            if any(keyword in text for keyword in FOOTER_KEYWORDS):
                break
            if _is_section_header(row):
                continue
            if self._is_other_product_row(row, columns, section.marker):
                if records:
                    break
                continue

            record = self._record(row, row_index, columns, section.marker)
            if record is not None:
                records.append(record)
        return records

    def _is_other_product_row(self, row: Row, columns: DuctColumns, marker: SectionMarker) -> bool:
        """Standalone product-name rows (no dimensions, price or thickness)."""
        first = cell_at(row, 0)
        if not first:
            return False
        if columns.dimensions is not None and cell_at(row, columns.dimensions):
            return False
        for price_col in (columns.price_per_roll, columns.price_per_sq_ft):
            if price_col is not None and parse_price(cell_at(row, price_col)) is not None:
                return False
        if re.search(r"\d+\s*[\"']", first):
            return False
        if not any(k in first for k in ("lb.", "DUCT WRAP", "FITTING WRAP", "R-FLEX", "LINACOUSTIC", "PLAIN")):
            return False
        name = marker.name.lower()
        return first.lower() != name and not first.lower().startswith(name.split(" ")[0])

    def _record(
        self,
        row: Row,
        row_index: int,
        columns: DuctColumns,
        marker: SectionMarker,
    ) -> Optional[VariantRecord]:
        thickness = cell_at(row, columns.thickness) if columns.thickness is not None else ""
        dimensions = cell_at(row, columns.dimensions) if columns.dimensions is not None else ""
        if not thickness and dimensions:
            match = _THICKNESS_IN_DIMENSIONS_RE.search(dimensions)
            if match:
                thickness = f'{match.group(1)}"'
        if not thickness or not dimensions or thickness == "-" or dimensions == "-":
            return None

        thickness = normalize_label(thickness)
        if not re.search(r"\d", thickness):
            return None

        sq_ft = parse_number(cell_at(row, columns.sq_ft)) if columns.sq_ft is not None else None
        list_price = None
        if columns.price_per_roll is not None:
            list_price = parse_price(cell_at(row, columns.price_per_roll))
        if list_price is None and columns.price_per_sq_ft is not None and sq_ft:
            per_sq_ft = parse_price(cell_at(row, columns.price_per_sq_ft))
            if per_sq_ft is not None and sq_ft > 0:
                list_price = (per_sq_ft * sq_ft).quantize(CENTS)
        if list_price is None or list_price <= 0:
            return None

        extra = {}
        if sq_ft is not None and sq_ft > 0:
            extra["sq_ft_per_roll"] = float(sq_ft)
        dimension_code = re.sub(r"[^0-9X]", "", dimensions.upper())
        return VariantRecord(
            property_bag={
                "thickness": thickness,
                "dimensions": dimensions,
                "product_type": marker.type_code,
            },
            list_price=list_price,
            unit_of_measure=self.unit_of_measure,
            product_name=marker.name,
            sku=f"DUCT-{marker.type_code.upper()}-{sku_fragment(thickness)}-{dimension_code}",
            display_name=f"{marker.name} - {thickness} - {dimensions}",
            extra_properties=extra,
            source_row=row_index,
        )
