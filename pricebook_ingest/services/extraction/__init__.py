"""Layout extractors turning classified grids into variant records."""
from pricebook_ingest.services.extraction.base import LayoutExtractor
from pricebook_ingest.services.extraction.board import BoardExtractor
from pricebook_ingest.services.extraction.duct_liner import DuctLinerExtractor
from pricebook_ingest.services.extraction.elastomeric import ElastomericPipeExtractor
from pricebook_ingest.services.extraction.fitting_matrix import FittingMatrixExtractor
from pricebook_ingest.services.extraction.mineral_wool import MineralWoolPipeExtractor
from pricebook_ingest.services.extraction.pipe_insulation import PipeInsulationExtractor
from pricebook_ingest.services.extraction.registry import (
    EXTRACTOR_REGISTRY,
    create_extractor,
    list_extractors,
    register_extractor,
)

__all__ = [
    "LayoutExtractor",
    "BoardExtractor",
    "DuctLinerExtractor",
    "ElastomericPipeExtractor",
    "FittingMatrixExtractor",
    "MineralWoolPipeExtractor",
    "PipeInsulationExtractor",
    "EXTRACTOR_REGISTRY",
    "create_extractor",
    "list_extractors",
    "register_extractor",
]
