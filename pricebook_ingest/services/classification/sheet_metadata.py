"""Sheet header block parsing (manufacturer detection)."""
import re
from typing import Optional

from pricebook_ingest.models.grid import Grid, row_cells, row_text

_LABEL_WORDS = ("supplier", "category", "class", "description", "discount")
_NUMBER_RE = re.compile(r"^\d+\.?\d*%?$")


def detect_manufacturer(grid: Grid, max_rows: int = 20) -> Optional[str]:
    """Find the manufacturer named next to a 'Supplier' label.

    The value right after an exact ``supplier`` cell wins. Otherwise the
    first cell of the labelled row that is neither a label nor a number is
    taken.

    Args:
        grid: Sheet grid
        max_rows: Rows of the header block to scan

    Returns:
        Manufacturer name, or None when the sheet names none
    """
    for row in list(grid)[:max_rows]:
        if "supplier" not in row_text(row):
            continue
        cells = row_cells(row)

        for j, cell in enumerate(cells[:-1]):
            if cell.lower() == "supplier":
                candidate = cells[j + 1].strip()
                if candidate and candidate.lower() != "supplier":
                    return candidate

        for cell in cells:
            lowered = cell.lower()
            if len(cell) <= 2:
                continue
            if any(word in lowered for word in _LABEL_WORDS):
                continue
            if _NUMBER_RE.match(cell):
                continue
            return cell
    return None
