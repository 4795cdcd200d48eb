"""Grid type and cell text helpers.

A grid is the raw 2-D export of one pricebook page: a sequence of rows, each
row a sequence of nullable cells. Grids are treated as immutable input.
"""
from decimal import Decimal
from typing import List, Optional, Sequence, Union
import math

Cell = Optional[Union[str, int, float, Decimal]]
Row = Sequence[Cell]
Grid = Sequence[Row]


def cell_text(cell: Cell) -> str:
    """Render a cell as trimmed text.

    Integer-valued floats lose their trailing ``.0`` so numeric cells read
    back the way they were typed in the spreadsheet.
    """
    if cell is None:
        return ""
    if isinstance(cell, bool):
        return str(cell)
    if isinstance(cell, float):
        if math.isfinite(cell) and cell.is_integer():
            return str(int(cell))
        return str(cell)
    return str(cell).strip()


def cell_at(row: Row, index: int) -> str:
    """Return text of cell ``index`` or empty string when out of range."""
    if index < 0 or index >= len(row):
        return ""
    return cell_text(row[index])


def row_cells(row: Row) -> List[str]:
    """Return text of every cell in the row."""
    return [cell_text(cell) for cell in row]


def row_text(row: Row) -> str:
    """Return the lower-cased text of all cells joined by spaces."""
    return " ".join(cell_text(cell) for cell in row).lower()


def non_empty_cells(row: Row) -> List[str]:
    """Return the text of non-blank cells, in column order."""
    return [text for text in row_cells(row) if text]


def is_blank_row(row: Row) -> bool:
    """True when every cell is empty."""
    return not any(cell_text(cell) for cell in row)


def grid_preview(grid: Grid, rows: int = 10) -> List[List[str]]:
    """Return the first ``rows`` rows as text for diagnostics."""
    return [row_cells(row) for row in list(grid)[:rows]]
