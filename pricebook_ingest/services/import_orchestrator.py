"""Pricebook import orchestrator.

Runs each sheet of a batch through the pipeline:

    ledger check -> fetch grid -> classify -> extract -> group by product
    -> resolve companies -> reconcile + verify -> ledger completed

Failures are contained at sheet granularity: the sheet is recorded as
failed with its error kind and the batch moves on.
"""
import asyncio
from collections import OrderedDict
from typing import Dict, List, Optional
import structlog

from pricebook_ingest.errors import DataIngestionError, LedgerError
from pricebook_ingest.models.ledger import ImportProgress
from pricebook_ingest.models.pricebook import PricebookMetadata, PricebookPage, SheetContext
from pricebook_ingest.models.results import (
    BatchReport,
    ProductImportSummary,
    SheetOutcome,
    SheetResult,
)
from pricebook_ingest.models.variant_record import VariantRecord
from pricebook_ingest.services.classification import FormatClassifier, detect_manufacturer
from pricebook_ingest.services.extraction import create_extractor
from pricebook_ingest.services.import_ledger import ImportLedger
from pricebook_ingest.services.reconciliation import CatalogReconciler
from pricebook_ingest.services.sheet_sources import SheetSource

logger = structlog.get_logger(__name__)

SKIP_ALREADY_COMPLETED = "already_completed"
SKIP_NO_DATA = "no_data"


def group_records_by_product(
    records: List[VariantRecord],
    default_name: str,
) -> "OrderedDict[str, List[VariantRecord]]":
    """Group records by product name, keeping first-seen order.

    Records without an in-sheet product name belong to the page product.
    """
    groups: "OrderedDict[str, List[VariantRecord]]" = OrderedDict()
    for record in records:
        name = (record.product_name or default_name).strip()
        groups.setdefault(name, []).append(record)
    return groups


def error_kind_of(error: Exception) -> str:
    """Kind recorded in the ledger for ``error``."""
    if isinstance(error, DataIngestionError):
        return error.kind
    return type(error).__name__


class PricebookImportOrchestrator:
    """Drive pricebook pages through classification, extraction and reconciliation.

    Attributes:
        classifier: Format classifier
        source: Sheet source providing page grids
        reconciler: Catalog reconciler
        ledger: Import ledger
        default_distributor: Distributor used when a page names none
        manufacturer_scan_rows: Header rows searched for the manufacturer
    """

    def __init__(
        self,
        classifier: FormatClassifier,
        source: SheetSource,
        reconciler: CatalogReconciler,
        ledger: ImportLedger,
        default_distributor: str = "IMPRO",
        manufacturer_scan_rows: int = 20,
    ):
        self.classifier = classifier
        self.source = source
        self.reconciler = reconciler
        self.ledger = ledger
        self.default_distributor = default_distributor
        self.manufacturer_scan_rows = manufacturer_scan_rows

    async def import_sheet(self, page: PricebookPage) -> SheetResult:
        """Import one page.

        Never raises for sheet-level failures; they are returned as a
        failed SheetResult and recorded in the ledger.
        """
        sheet_id = page.sheet_id
        log = logger.bind(sheet_id=sheet_id, page_name=page.page_name)

        try:
            if not await self.ledger.should_process(sheet_id):
                log.info("sheet_skipped", reason=SKIP_ALREADY_COMPLETED)
                return SheetResult(
                    sheet_id=sheet_id,
                    outcome=SheetOutcome.SKIPPED,
                    skip_reason=SKIP_ALREADY_COMPLETED,
                )

            grid = await self.source.fetch_grid(page)
            if not grid:
                log.info("sheet_skipped", reason=SKIP_NO_DATA)
                return SheetResult(
                    sheet_id=sheet_id,
                    outcome=SheetOutcome.SKIPPED,
                    skip_reason=SKIP_NO_DATA,
                )

            await self.ledger.mark_processing(sheet_id)
            log.info("sheet_import_started", rows=len(grid))

            manufacturer_name = detect_manufacturer(grid, self.manufacturer_scan_rows)
            classification = self.classifier.classify(grid, sheet_id=sheet_id)
            extractor = create_extractor(classification.layout)
            context = SheetContext.from_page(page, manufacturer=manufacturer_name)
            records = extractor.extract(grid, classification, context)
            groups = group_records_by_product(records, page.page_name)

            distributor, manufacturer = await self.reconciler.resolve_companies(
                page.distributor or self.default_distributor,
                manufacturer_name,
            )
            metadata = PricebookMetadata.from_page(page)

            result = SheetResult(
                sheet_id=sheet_id,
                outcome=SheetOutcome.COMPLETED,
                layout=classification.layout.value,
                variant_count=len(records),
            )
            for product_name, product_records in groups.items():
                product = await self.reconciler.reconcile(
                    product_name,
                    manufacturer,
                    distributor,
                    product_records,
                    metadata,
                    discount_percent=page.discount_percent,
                )
                expected = len({r.identity_key for r in product_records})
                await self.reconciler.verify(product.id, expected)
                result.products.append(ProductImportSummary(
                    product_id=product.id,
                    product_name=product.name,
                    variant_count=expected,
                ))
        except Exception as e:
            return await self._record_failure(page, e, log)

        try:
            await self.ledger.mark_completed(sheet_id, result.summary())
        except LedgerError as e:
            return await self._completion_not_recorded(result, e, log)

        log.info(
            "sheet_import_completed",
            layout=result.layout,
            products=len(result.products),
            variants=result.variant_count,
        )
        return result

    async def _record_failure(self, page: PricebookPage, error: Exception, log) -> SheetResult:
        kind = error_kind_of(error)
        detail = str(error)
        log.error(
            "sheet_import_failed",
            error_kind=kind,
            error=detail,
            error_type=type(error).__name__,
        )
        try:
            await self.ledger.mark_failed(page.sheet_id, kind, detail)
        except LedgerError as ledger_error:
            log.error("sheet_failure_not_recorded", error=str(ledger_error))
        return SheetResult(
            sheet_id=page.sheet_id,
            outcome=SheetOutcome.FAILED,
            error_kind=kind,
            error_detail=detail,
        )

    async def _completion_not_recorded(
        self,
        result: SheetResult,
        error: LedgerError,
        log,
    ) -> SheetResult:
        """Report a sheet whose catalog write succeeded but whose ledger write did not.

        The catalog is read back so the log shows whether the products are
        present; the catalog write is not repeated.
        """
        present: Dict[str, bool] = {}
        for summary in result.products:
            try:
                stored = await self.reconciler.store.get_product(summary.product_id)
                present[summary.product_name] = stored is not None
            except DataIngestionError as read_error:
                log.warning("catalog_read_back_failed", product_id=str(summary.product_id), error=str(read_error))
                present[summary.product_name] = False
        log.error(
            "sheet_completion_not_recorded",
            error=str(error),
            products_present=present,
        )
        return result.model_copy(update={
            "outcome": SheetOutcome.FAILED,
            "error_kind": error.kind,
            "error_detail": str(error),
        })

    async def run_batch(self, pages: List[PricebookPage], concurrency: int = 1) -> BatchReport:
        """Import every page of a batch.

        Args:
            pages: Pages in batch order
            concurrency: Sheets processed at once

        Returns:
            Report with completed, failed and skipped counts
        """
        log = logger.bind(pages=len(pages), concurrency=concurrency)
        log.info("batch_import_started")

        if concurrency <= 1:
            results = [await self.import_sheet(page) for page in pages]
        else:
            semaphore = asyncio.Semaphore(concurrency)

            async def _bounded(page: PricebookPage) -> SheetResult:
                async with semaphore:
                    return await self.import_sheet(page)

            results = list(await asyncio.gather(*(_bounded(page) for page in pages)))

        report = BatchReport.from_results(results)
        log.info(
            "batch_import_completed",
            completed=report.completed,
            failed=report.failed,
            skipped=report.skipped,
            failed_sheets=[f"{f.sheet_id}:{f.error_kind}" for f in report.failures],
        )
        return report

    async def import_next(self, pages: List[PricebookPage]) -> Optional[SheetResult]:
        """Import the first page that is not completed; None when all are."""
        for page in pages:
            if await self.ledger.should_process(page.sheet_id):
                return await self.import_sheet(page)
        logger.info("batch_already_completed", pages=len(pages))
        return None

    async def progress(self, pages: List[PricebookPage]) -> ImportProgress:
        """Ledger progress of a batch."""
        return await self.ledger.progress([page.sheet_id for page in pages])
