"""Queue task definitions for the pricebook import pipeline.

This module contains arq task functions for:
    - import_pricebook_batch_task: Import every pending page of a batch
    - import_next_sheet_task: Import the next pending page
"""
from pricebook_ingest.tasks.import_tasks import (
    build_import_pipeline,
    import_next_sheet_task,
    import_pricebook_batch_task,
)

__all__ = [
    "build_import_pipeline",
    "import_next_sheet_task",
    "import_pricebook_batch_task",
]
