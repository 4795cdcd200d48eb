"""Queue tasks for the pricebook import pipeline.

This module implements:
    - build_import_pipeline: Wire classifier, source, reconciler and ledger from settings
    - import_pricebook_batch_task: Import every pending page of the batch file
    - import_next_sheet_task: Import the first page that is not completed
"""
from typing import Any, Dict, Optional

from redis.asyncio import Redis
import structlog

from pricebook_ingest.config import (
    CatalogBackend,
    IngestionSettings,
    LedgerBackend,
    SheetSourceType,
    ingestion_settings,
    settings,
)
from pricebook_ingest.errors import DataIngestionError, ValidationError
from pricebook_ingest.services.classification import ClassifierConfig, FormatClassifier
from pricebook_ingest.services.import_ledger import (
    ImportLedger,
    JsonFileLedgerStore,
    RedisLedgerStore,
)
from pricebook_ingest.services.import_orchestrator import PricebookImportOrchestrator
from pricebook_ingest.services.pricebook_batch import load_pricebook_batch
from pricebook_ingest.services.reconciliation import (
    CatalogReconciler,
    CatalogStore,
    InMemoryCatalogStore,
)
from pricebook_ingest.services.sheet_sources import (
    GoogleSheetsSource,
    JsonGridSource,
    SheetSource,
    WorkbookSheetSource,
)

logger = structlog.get_logger(__name__)


def build_sheet_source(config: IngestionSettings) -> SheetSource:
    """Create the configured sheet source.

    Raises:
        ValidationError: If the source's location setting is missing
    """
    if config.sheet_source == SheetSourceType.GOOGLE:
        if not config.spreadsheet_url:
            raise ValidationError("PRICEBOOK_SPREADSHEET_URL is required for the google sheet source")
        return GoogleSheetsSource(config.spreadsheet_url, settings.google_credentials_path)
    if config.sheet_source == SheetSourceType.WORKBOOK:
        if not config.workbook_path:
            raise ValidationError("PRICEBOOK_WORKBOOK_PATH is required for the workbook sheet source")
        return WorkbookSheetSource(config.workbook_path)
    return JsonGridSource(config.grid_directory)


def build_catalog_store(config: IngestionSettings) -> CatalogStore:
    """Create the configured catalog store."""
    if config.catalog_backend == CatalogBackend.MEMORY:
        return InMemoryCatalogStore()
    from pricebook_ingest.db.operations import SqlAlchemyCatalogStore
    return SqlAlchemyCatalogStore()


def build_ledger(config: IngestionSettings, redis: Optional[Redis] = None) -> ImportLedger:
    """Create the configured import ledger.

    Raises:
        ValidationError: If the redis backend is selected without a connection
    """
    if config.ledger_backend == LedgerBackend.REDIS:
        if redis is None:
            raise ValidationError("Redis ledger backend requires a Redis connection")
        return ImportLedger(RedisLedgerStore(redis, config.ledger_redis_key))
    return ImportLedger(JsonFileLedgerStore(config.ledger_path))


def build_import_pipeline(
    config: Optional[IngestionSettings] = None,
    redis: Optional[Redis] = None,
    source: Optional[SheetSource] = None,
    store: Optional[CatalogStore] = None,
) -> PricebookImportOrchestrator:
    """Wire an orchestrator from settings.

    Args:
        config: Ingestion settings (defaults to the global instance)
        redis: Redis connection for the redis ledger backend
        source: Sheet source overriding the configured one
        store: Catalog store overriding the configured one
    """
    config = config or ingestion_settings
    classifier = FormatClassifier(config=ClassifierConfig(
        max_scan_rows=config.max_scan_rows,
        preview_rows=config.preview_rows,
    ))
    return PricebookImportOrchestrator(
        classifier=classifier,
        source=source or build_sheet_source(config),
        reconciler=CatalogReconciler(store or build_catalog_store(config)),
        ledger=build_ledger(config, redis),
        default_distributor=config.default_distributor,
        manufacturer_scan_rows=config.manufacturer_scan_rows,
    )


async def import_pricebook_batch_task(
    ctx: Dict[str, Any],
    batch_file: Optional[str] = None,
    concurrency: Optional[int] = None,
) -> Dict[str, Any]:
    """Import every pending page of a pricebook batch.

    Args:
        ctx: Worker context (contains Redis connection)
        batch_file: Batch file path (defaults to PRICEBOOK_BATCH_FILE)
        concurrency: Sheets processed at once (defaults to PRICEBOOK_CONCURRENCY)

    Returns:
        Batch report as a dict
    """
    batch_file = batch_file or ingestion_settings.batch_file
    log = logger.bind(task="import_pricebook_batch", batch_file=batch_file)
    log.info("import_batch_task_started")

    try:
        pages = load_pricebook_batch(batch_file)
        orchestrator = build_import_pipeline(redis=ctx.get("redis"))
    except DataIngestionError as e:
        log.error("import_batch_task_setup_failed", error=str(e), error_kind=e.kind)
        return {"status": "error", "error": str(e), "error_kind": e.kind}

    try:
        report = await orchestrator.run_batch(
            pages,
            concurrency=concurrency or ingestion_settings.concurrency,
        )
    finally:
        await orchestrator.reconciler.store.close()

    log.info(
        "import_batch_task_completed",
        completed=report.completed,
        failed=report.failed,
        skipped=report.skipped,
    )
    return {
        "status": "success" if report.failed == 0 else "partial_success",
        "total": report.total,
        "completed": report.completed,
        "failed": report.failed,
        "skipped": report.skipped,
        "failures": [f.model_dump() for f in report.failures],
    }


async def import_next_sheet_task(
    ctx: Dict[str, Any],
    batch_file: Optional[str] = None,
) -> Dict[str, Any]:
    """Import the first page of the batch that is not completed.

    Returns:
        Sheet result as a dict, or status "idle" when every page is completed
    """
    batch_file = batch_file or ingestion_settings.batch_file
    log = logger.bind(task="import_next_sheet", batch_file=batch_file)

    try:
        pages = load_pricebook_batch(batch_file)
        orchestrator = build_import_pipeline(redis=ctx.get("redis"))
    except DataIngestionError as e:
        log.error("import_next_task_setup_failed", error=str(e), error_kind=e.kind)
        return {"status": "error", "error": str(e), "error_kind": e.kind}

    try:
        result = await orchestrator.import_next(pages)
    finally:
        await orchestrator.reconciler.store.close()

    if result is None:
        return {"status": "idle"}
    log.info("import_next_task_completed", sheet_id=result.sheet_id, outcome=result.outcome.value)
    return {"status": result.outcome.value, "result": result.model_dump(mode="json")}
