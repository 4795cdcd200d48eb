"""Layout signatures recognized by the format classifier.

Each signature inspects one candidate header row (plus the rows around it)
and returns a Classification when the row is that layout's header. The
classifier evaluates signatures in ``DEFAULT_SIGNATURES`` order, so the most
specific layouts come first.

Key Components:
    - LayoutSignature: Abstract base class for header recognizers
    - RowView: Text views of one grid row shared by all signatures
    - DEFAULT_SIGNATURES: Priority-ordered signature list
"""
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from pricebook_ingest.models.classification import Classification, LayoutTag
from pricebook_ingest.models.grid import Grid, Row, row_cells, row_text

# Thickness tokens as they appear in header rows: 1", 1-1/2", 3/8''
MINERAL_WOOL_THICKNESS_RE = re.compile(r"^\d+[\"']?$|^\d+\s*-\s*\d+/\d+[\"']?$")
ELASTOMERIC_THICKNESS_RE = re.compile(r"^\d+(/\d+)?[\"']*$|^\d+\s*-\s*\d+/\d+[\"']*$")
ELASTOMERIC_HEADER_THICKNESS_RE = re.compile(r"\d+(?:/\d+)?(?:-\d+/\d+)?\s*[\"']")

DESCRIPTION_KEYWORDS = ("designed", "manufactured", "available", "johns manville")
DESCRIPTION_MAX_LENGTH = 200


@dataclass(frozen=True)
class RowView:
    """Pre-computed text of a candidate header row."""
    index: int
    cells: List[str]
    lowered: List[str]
    text: str

    @classmethod
    def of(cls, grid: Grid, index: int) -> "RowView":
        cells = row_cells(grid[index])
        return cls(
            index=index,
            cells=cells,
            lowered=[c.lower() for c in cells],
            text=row_text(grid[index]),
        )

    @property
    def first_cell(self) -> str:
        return self.lowered[0] if self.lowered else ""

    @property
    def non_empty_count(self) -> int:
        return sum(1 for c in self.cells if c)

    @property
    def is_description(self) -> bool:
        """Free-text rows are never header candidates for loose layouts."""
        if len(self.text) > DESCRIPTION_MAX_LENGTH:
            return True
        return any(keyword in self.text for keyword in DESCRIPTION_KEYWORDS)

    def has_any(self, *needles: str) -> bool:
        return any(needle in self.text for needle in needles)

    def has_all(self, *needles: str) -> bool:
        return all(needle in self.text for needle in needles)


def row_matches(row: Row, pattern: re.Pattern) -> bool:
    """True when any cell of ``row`` fully matches ``pattern``."""
    return any(pattern.match(cell) for cell in row_cells(row) if cell)


class LayoutSignature(ABC):
    """Recognizer for one layout header.

    Attributes:
        layout: Tag produced on a match
        variant: Sub-signature name recorded on the classification
        skips_descriptions: Whether description-like rows are ignored
    """

    layout: LayoutTag
    variant: Optional[str] = None
    skips_descriptions: bool = False

    @abstractmethod
    def match(self, grid: Grid, row: RowView) -> Optional[Classification]:
        """Return a classification if ``row`` is this layout's header."""
        pass

    def get_signature_name(self) -> str:
        """Identifier used in logs."""
        if self.variant:
            return f"{self.layout.value}:{self.variant}"
        return self.layout.value

    def _classification(
        self,
        row: RowView,
        data_offset: int = 1,
        variant: Optional[str] = None,
        **auxiliary_rows: int,
    ) -> Classification:
        return Classification(
            layout=self.layout,
            header_row_index=row.index,
            data_start_row_index=row.index + data_offset,
            header_columns=list(row.cells),
            variant=variant or self.variant,
            auxiliary_rows=dict(auxiliary_rows),
        )


class ElastomericSignature(LayoutSignature):
    """Interior diameter / copper tube size header with List/NET/lf-ctn blocks."""

    layout = LayoutTag.ELASTOMERIC_PIPE_INSULATION

    def match(self, grid: Grid, row: RowView) -> Optional[Classification]:
        if not row.has_all("interior diameter", "copper tube size"):
            return None
        if not any(ELASTOMERIC_HEADER_THICKNESS_RE.search(cell) for cell in row.cells):
            return None
        next_index = row.index + 1
        if next_index >= len(grid) or not row_matches(grid[next_index], ELASTOMERIC_THICKNESS_RE):
            return None
        return self._classification(
            row,
            data_offset=3,
            codes=row.index + 1,
            sub_header=row.index + 2,
        )


class MineralWoolSignature(LayoutSignature):
    """Pipe diameter rows against thickness columns, optional LF/BOX sub-columns."""

    layout = LayoutTag.MINERAL_WOOL_PIPE
    skips_descriptions = True
    confirm_window = 3
    sub_header_window = 5

    def match(self, grid: Grid, row: RowView) -> Optional[Classification]:
        if not any("pipe diameter" in cell for cell in row.lowered):
            return None
        if not any("price per lineal foot" in cell or "lf" in cell for cell in row.lowered):
            return None

        # Thickness tokens must follow closely for the header to count
        thickness_row = None
        for i in range(row.index + 1, min(row.index + 1 + self.confirm_window, len(grid))):
            if row_matches(grid[i], MINERAL_WOOL_THICKNESS_RE):
                thickness_row = i
                break
        if thickness_row is None:
            return None

        lf_box_row = None
        for i in range(row.index, min(row.index + self.sub_header_window, len(grid))):
            if any("lf" in c and "box" in c for c in (x.lower() for x in row_cells(grid[i]))):
                lf_box_row = i
                break

        auxiliary = {"thickness": thickness_row}
        last_header_row = thickness_row
        if lf_box_row is not None:
            auxiliary["lf_box"] = lf_box_row
            last_header_row = max(thickness_row, lf_box_row)

        return self._classification(
            row,
            data_offset=last_header_row + 1 - row.index,
            variant="lf-box" if lf_box_row is not None else "simple",
            **auxiliary,
        )


class FittingMatrixSignature(LayoutSignature):
    """Nominal pipe size rows against wall thickness columns."""

    layout = LayoutTag.FITTING_MATRIX

    def match(self, grid: Grid, row: RowView) -> Optional[Classification]:
        if row.has_all("nominal", "pipe", "size"):
            return self._classification(row)
        return None


class BoardSignature(LayoutSignature):
    """Product name rows followed by thickness variant rows."""

    layout = LayoutTag.BOARD

    def match(self, grid: Grid, row: RowView) -> Optional[Classification]:
        if (
            "product" in row.first_cell
            and "thickness" in row.text
            and row.has_any("sq.ft", "sq ft", "bundle")
            and "price" in row.text
        ):
            return self._classification(row)
        return None


class OemBoardSignature(LayoutSignature):
    """OEM board header: product name in the first cell, then the columns."""

    layout = LayoutTag.BOARD
    variant = "oem"

    def match(self, grid: Grid, row: RowView) -> Optional[Classification]:
        # Roll thickness headers belong to duct liner even with "sq.ft. per"
        if "roll thickness" in row.first_cell:
            return None
        if (
            row.has_all("thickness", "dimension", "price per")
            and row.has_any("sq.ft. per", "sq ft per")
        ):
            return self._classification(row)
        return None


class DuctLinerSignature(LayoutSignature):
    """Roll thickness / dimensions table split into product sections."""

    layout = LayoutTag.DUCT_LINER

    def match(self, grid: Grid, row: RowView) -> Optional[Classification]:
        if (
            "roll thickness" in row.first_cell
            and "dimension" in row.text
            and row.has_any("price per", "sq.ft", "sq ft")
        ):
            return self._classification(row)
        return None


class PipeTankWrapSignature(LayoutSignature):
    """Pipe & tank wrap header, extracted like duct liner."""

    layout = LayoutTag.DUCT_LINER
    variant = "pipe-tank-wrap"

    def match(self, grid: Grid, row: RowView) -> Optional[Classification]:
        if (
            row.has_all("product", "thickness", "dimension")
            and row.has_any("price per", "price/sq")
        ):
            return self._classification(row)
        return None


class PipeInsulationSignature(LayoutSignature):
    """Copper and iron diameter columns against thickness columns."""

    layout = LayoutTag.PIPE_INSULATION
    skips_descriptions = True

    def match(self, grid: Grid, row: RowView) -> Optional[Classification]:
        if row.non_empty_count < 3:
            return None
        if any("copper" in c for c in row.lowered) and any("iron" in c for c in row.lowered):
            return self._classification(row)
        return None


class GenericMatrixSignature(LayoutSignature):
    """Wide numeric matrix with a pipe or thickness header cell."""

    layout = LayoutTag.GENERIC_MATRIX
    skips_descriptions = True
    header_keywords = ("copper", "iron", "pipe diameter", "insulation thickness")

    def match(self, grid: Grid, row: RowView) -> Optional[Classification]:
        if row.non_empty_count <= 5:
            return None
        if not any(re.search(r"\d", c) for c in row.cells):
            return None
        if any(keyword in c for c in row.lowered for keyword in self.header_keywords):
            return self._classification(row)
        return None


class SimpleTableSignature(LayoutSignature):
    """Plain product/price table."""

    layout = LayoutTag.SIMPLE_TABLE
    skips_descriptions = True

    def match(self, grid: Grid, row: RowView) -> Optional[Classification]:
        if row.non_empty_count < 2:
            return None
        if row.has_any("product", "name") and "price" in row.text:
            return self._classification(row)
        return None


def default_signatures() -> List[LayoutSignature]:
    """Signatures in priority order, most specific first."""
    return [
        ElastomericSignature(),
        MineralWoolSignature(),
        FittingMatrixSignature(),
        BoardSignature(),
        OemBoardSignature(),
        DuctLinerSignature(),
        PipeTankWrapSignature(),
        PipeInsulationSignature(),
        GenericMatrixSignature(),
        SimpleTableSignature(),
    ]


DEFAULT_SIGNATURES: List[LayoutSignature] = default_signatures()
