"""Extractor registry keyed by layout tag.

Layouts the classifier recognizes without a registered extractor
(generic-matrix, simple-table) fail with ExtractionError (UnsupportedLayout).
"""
from typing import Dict, List, Type
import structlog

from pricebook_ingest.errors import ExtractionError
from pricebook_ingest.models.classification import LayoutTag
from pricebook_ingest.services.extraction.base import LayoutExtractor
from pricebook_ingest.services.extraction.board import BoardExtractor
from pricebook_ingest.services.extraction.duct_liner import DuctLinerExtractor
from pricebook_ingest.services.extraction.elastomeric import ElastomericPipeExtractor
from pricebook_ingest.services.extraction.fitting_matrix import FittingMatrixExtractor
from pricebook_ingest.services.extraction.mineral_wool import MineralWoolPipeExtractor
from pricebook_ingest.services.extraction.pipe_insulation import PipeInsulationExtractor

logger = structlog.get_logger(__name__)


EXTRACTOR_REGISTRY: Dict[LayoutTag, Type[LayoutExtractor]] = {
    LayoutTag.PIPE_INSULATION: PipeInsulationExtractor,
    LayoutTag.FITTING_MATRIX: FittingMatrixExtractor,
    LayoutTag.MINERAL_WOOL_PIPE: MineralWoolPipeExtractor,
    LayoutTag.ELASTOMERIC_PIPE_INSULATION: ElastomericPipeExtractor,
    LayoutTag.BOARD: BoardExtractor,
    LayoutTag.DUCT_LINER: DuctLinerExtractor,
}


def register_extractor(layout: LayoutTag, extractor_class: Type[LayoutExtractor]) -> None:
    """Register (or replace) the extractor for ``layout``."""
    if layout in EXTRACTOR_REGISTRY:
        logger.warning(
            "extractor_overwritten",
            layout=layout.value,
            old_class=EXTRACTOR_REGISTRY[layout].__name__,
            new_class=extractor_class.__name__,
        )
    EXTRACTOR_REGISTRY[layout] = extractor_class


def create_extractor(layout: LayoutTag) -> LayoutExtractor:
    """Instantiate the extractor registered for ``layout``.

    Raises:
        ExtractionError: If no extractor handles the layout (UnsupportedLayout)
    """
    extractor_class = EXTRACTOR_REGISTRY.get(layout)
    if extractor_class is None:
        available = ", ".join(tag.value for tag in EXTRACTOR_REGISTRY)
        raise ExtractionError(
            f"No extractor for layout '{layout.value}'. Available: {available}",
            layout=layout.value,
            kind=ExtractionError.UNSUPPORTED_LAYOUT,
        )
    return extractor_class()


def list_extractors() -> List[str]:
    """Layout tags with a registered extractor."""
    return [tag.value for tag in EXTRACTOR_REGISTRY]
