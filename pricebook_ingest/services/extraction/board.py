"""Board layout: product name rows followed by thickness variant rows.

Also handles the OEM header, where the first header cell is itself the
first product's name.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional
import re

from pricebook_ingest.models.classification import Classification, LayoutTag
from pricebook_ingest.models.grid import Grid, Row, cell_at, is_blank_row, row_text
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

PRODUCT_KEYWORDS = (
    "LB", "JM", "CB", "Type", "WHISPERTONE", "MICROLITE", "TUFSKIN",
    "INDUSTRIAL", "FLEX", "BATT", "ROCKWOOL", "PROROX",
)
FOOTER_KEYWORDS = (
    "standard dimensions", "invoice", "fsk on both", "all products meet",
    "adhesives", "tapes",
)
BUNDLE_WORDS = ("bundle", "carton", "sheet", "roll", "bdle")

_DENSITY_RE = re.compile(r"(\d+(?:\.\d+)?)\s*LB", re.IGNORECASE)
_CODE_RE = re.compile(r"(JM\s*\d+|CB\d+)", re.IGNORECASE)


@dataclass
class BoardColumns:
    product: int
    thickness: int
    sq_ft: Optional[int]
    price_per_sq_ft: Optional[int]
    price_per_bundle: Optional[int]


@dataclass
class BoardProduct:
    name: str
    density: str
    product_code: str
    records: List[VariantRecord] = field(default_factory=list)

    @classmethod
    def from_name(cls, raw_name: str) -> "BoardProduct":
        name = " ".join(raw_name.split())
        density = _DENSITY_RE.search(name)
        code = _CODE_RE.search(name)
        return cls(
            name=name,
            density=f"{density.group(1)} LB/CU.FT" if density else "",
            product_code=code.group(1).upper() if code else "",
        )


def is_product_name(text: str) -> bool:
    """Product name cells: known keyword, bare 4-digit code, or non-numeric text."""
    if not text:
        return False
    if any(keyword in text for keyword in PRODUCT_KEYWORDS):
        return True
    if re.match(r"^\d{4}$", text):
        return True
    return not re.match(r"^\d+$", text)


def _first_index(header: List[str], predicate) -> Optional[int]:
    for index, label in enumerate(header):
        if predicate(label.lower()):
            return index
    return None


class BoardExtractor(LayoutExtractor):
    """Extract board products and their thickness variants."""

    layout = LayoutTag.BOARD
    unit_of_measure = "EA"

    def _columns(self, classification: Classification, oem: bool) -> Optional[BoardColumns]:
        header = classification.header_columns
        thickness = _first_index(header, lambda h: "thickness" in h)
        if oem:
            product = 0
        else:
            product = _first_index(header, lambda h: "product" in h)
        if product is None or thickness is None:
            return None
        return BoardColumns(
            product=product,
            thickness=thickness,
            sq_ft=_first_index(
                header,
                lambda h: "price" not in h and any(s in h for s in ("sq.ft", "sq ft", "sqft")),
            ),
            price_per_sq_ft=_first_index(header, lambda h: "price" in h and "sq" in h),
            price_per_bundle=_first_index(
                header, lambda h: "price" in h and any(w in h for w in BUNDLE_WORDS),
            ),
        )

    def extract(
        self,
        grid: Grid,
        classification: Classification,
        context: SheetContext,
    ) -> List[VariantRecord]:
        oem = classification.variant == "oem"
        columns = self._columns(classification, oem)
        if columns is None:
            raise self._missing_columns(
                context, "Product or thickness column missing in board header",
                classification.header_row_index,
            )

        products: List[BoardProduct] = []
        current: Optional[BoardProduct] = None
        if oem and classification.header_columns and classification.header_columns[0]:
            current = BoardProduct.from_name(classification.header_columns[0])

        def flush() -> None:
            if current is not None and current.records:
                products.append(current)

        for row_index in range(classification.data_start_row_index, len(grid)):
            row = grid[row_index]
            if is_blank_row(row):
                flush()
                current = None
                continue

            text = row_text(row)
            if "list prices" in text and "product" not in text:
                continue
            if any(keyword in text for keyword in FOOTER_KEYWORDS):
                flush()
                current = None
                break

            name_cell = cell_at(row, columns.product)
            thickness = cell_at(row, columns.thickness)
            if is_product_name(name_cell) and columns.product != columns.thickness:
                flush()
                current = BoardProduct.from_name(name_cell)
                # Single-thickness products carry their variant on the name row
                if thickness and re.search(r"\d", thickness) and "thickness" not in thickness.lower():
                    self._add_variant(current, row, row_index, columns)
                continue

            if current is not None and thickness and re.search(r"\d", thickness):
                self._add_variant(current, row, row_index, columns)

        flush()

        records: List[VariantRecord] = []
        for product in products:
            records.extend(product.records)
        if products:
            self._log.info(
                "board_products_found",
                sheet_id=context.sheet_id,
                products=[p.name for p in products],
            )
        return self._require_records(records, context)

    def _add_variant(
        self,
        product: BoardProduct,
        row: Row,
        row_index: int,
        columns: BoardColumns,
    ) -> None:
        thickness = normalize_label(cell_at(row, columns.thickness))
        if not thickness or thickness == "-":
            return

        sq_ft = parse_number(cell_at(row, columns.sq_ft)) if columns.sq_ft is not None else None
        list_price = None
        if columns.price_per_bundle is not None:
            list_price = parse_price(cell_at(row, columns.price_per_bundle))
        if list_price is None and columns.price_per_sq_ft is not None and sq_ft:
            per_sq_ft = parse_price(cell_at(row, columns.price_per_sq_ft))
            if per_sq_ft is not None and sq_ft > 0:
                list_price = (per_sq_ft * sq_ft).quantize(CENTS)
        if list_price is None or list_price <= 0:
            return

        extra = {}
        if sq_ft is not None and sq_ft > 0:
            extra["sq_ft_per_bundle"] = float(sq_ft)
        code = product.product_code.replace(" ", "")
        product.records.append(VariantRecord(
            property_bag={
                "thickness": thickness,
                "density": product.density,
                "product_code": product.product_code,
            },
            list_price=list_price,
            unit_of_measure=self.unit_of_measure,
            product_name=product.name,
            sku=f"BOARD-{code or 'UNK'}-{sku_fragment(thickness)}",
            display_name=f"{product.name} - {thickness}",
            extra_properties=extra,
            source_row=row_index,
        ))
