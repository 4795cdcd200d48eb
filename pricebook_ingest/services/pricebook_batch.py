"""Loading of pricebook batch files.

A batch file is a JSON array of pages, in import order::

    [
        {"group_code": "CAEG171", "section": 1, "page_number": "1.1",
         "page_name": "FIBREGLASS PIPE WITH ASJ", "discount_percent": 67.75}
    ]
"""
import json
from pathlib import Path
from typing import List, Set
import structlog
from pydantic import ValidationError as PydanticValidationError

from pricebook_ingest.errors import ValidationError
from pricebook_ingest.models.pricebook import PricebookPage

logger = structlog.get_logger(__name__)


def parse_pricebook_batch(raw: object) -> List[PricebookPage]:
    """Validate decoded batch JSON into pages.

    Raises:
        ValidationError: If the payload is not a list of valid pages or
            two pages share a sheet id
    """
    if not isinstance(raw, list):
        raise ValidationError("Pricebook batch must be a JSON array of pages")

    pages: List[PricebookPage] = []
    seen: Set[str] = set()
    for index, item in enumerate(raw):
        try:
            page = PricebookPage.model_validate(item)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid pricebook page at position {index}: {e}") from e
        if page.sheet_id in seen:
            raise ValidationError(f"Duplicate sheet id in batch: {page.sheet_id}")
        seen.add(page.sheet_id)
        pages.append(page)
    return pages


def load_pricebook_batch(path: str) -> List[PricebookPage]:
    """Read and validate a batch file.

    Raises:
        ValidationError: If the file is unreadable or invalid
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError(f"Cannot read pricebook batch {path}: {e}") from e

    pages = parse_pricebook_batch(raw)
    logger.info("pricebook_batch_loaded", path=path, pages=len(pages))
    return pages
