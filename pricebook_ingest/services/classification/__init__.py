"""Sheet layout classification."""
from pricebook_ingest.services.classification.classifier import (
    ClassifierConfig,
    FormatClassifier,
)
from pricebook_ingest.services.classification.sheet_metadata import detect_manufacturer
from pricebook_ingest.services.classification.signatures import (
    DEFAULT_SIGNATURES,
    LayoutSignature,
    default_signatures,
)

__all__ = [
    "ClassifierConfig",
    "FormatClassifier",
    "detect_manufacturer",
    "DEFAULT_SIGNATURES",
    "LayoutSignature",
    "default_signatures",
]
