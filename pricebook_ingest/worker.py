"""arq worker configuration for pricebook imports.

This module configures the arq worker with:
    - import_pricebook_batch_task: Import every pending page of the batch file
    - import_next_sheet_task: Import the next pending page
"""
from arq.connections import RedisSettings
from typing import Any, Dict
import structlog
from pricebook_ingest.config import settings, configure_logging
from pricebook_ingest.tasks.import_tasks import (
    import_next_sheet_task,
    import_pricebook_batch_task,
)

# Configure logging
configure_logging(settings.log_level)
logger = structlog.get_logger(__name__)


async def on_job_end(ctx: Dict[str, Any]) -> None:
    """Hook called after each job ends (success or failure)."""
    try:
        job_result = ctx.get("job_result")
        if isinstance(job_result, Exception):
            logger.warning(
                "job_failed",
                job_id=ctx.get("job_id", "unknown"),
                job_try=ctx.get("job_try", 1),
                error=str(job_result),
            )
        else:
            logger.debug("job_ended", job_id=ctx.get("job_id", "unknown"))
    except Exception as e:
        logger.error("on_job_end_error", error=str(e), ctx_keys=list(ctx.keys()) if ctx else [])


class WorkerSettings:
    """arq worker configuration settings.

    This class is imported by arq CLI: `arq pricebook_ingest.worker.WorkerSettings`

    Registered Tasks:
        - import_pricebook_batch_task: Import the batch file
        - import_next_sheet_task: Import one pending page
    """

    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    queue_name = settings.queue_name
    job_timeout = settings.job_timeout
    keep_result = 3600  # Keep results for 1 hour
    # Sheets are retried through the ledger, not by re-running the job
    max_tries = 1

    functions = [
        import_pricebook_batch_task,
        import_next_sheet_task,
    ]

    on_job_end = on_job_end
