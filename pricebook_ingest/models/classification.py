"""Layout tags and classification results."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class LayoutTag(str, Enum):
    """Known pricebook sheet layouts."""
    PIPE_INSULATION = "pipe-insulation"
    FITTING_MATRIX = "fitting-matrix"
    MINERAL_WOOL_PIPE = "mineral-wool-pipe"
    ELASTOMERIC_PIPE_INSULATION = "elastomeric-pipe-insulation"
    BOARD = "board"
    DUCT_LINER = "duct-liner"
    GENERIC_MATRIX = "generic-matrix"
    SIMPLE_TABLE = "simple-table"


@dataclass(frozen=True)
class Classification:
    """Result of classifying one grid.

    Attributes:
        layout: Matched layout tag
        header_row_index: Row index of the matched header
        data_start_row_index: First row holding data
        header_columns: Text of the header row cells
        variant: Sub-signature that matched (e.g. "oem", "lf-box")
        auxiliary_rows: Extra row indices located while matching
            (e.g. "thickness", "lf_box", "codes", "sub_header")
    """
    layout: LayoutTag
    header_row_index: int
    data_start_row_index: int
    header_columns: List[str] = field(default_factory=list)
    variant: Optional[str] = None
    auxiliary_rows: Dict[str, int] = field(default_factory=dict)
