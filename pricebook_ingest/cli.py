"""Command line entry point for pricebook imports.

Usage:
    pricebook-ingest run [--batch-file FILE] [--concurrency N]
    pricebook-ingest next
    pricebook-ingest sheet "FACED BOARD"
    pricebook-ingest progress
    pricebook-ingest classify sheet-data/sheet-data-FACED_BOARD.json
"""
import argparse
import asyncio
import sys
from typing import List, Optional

from redis.asyncio import Redis
import structlog

from pricebook_ingest.config import (
    CatalogBackend,
    LedgerBackend,
    ingestion_settings,
    settings,
)
from pricebook_ingest.errors import DataIngestionError
from pricebook_ingest.models.pricebook import PricebookPage
from pricebook_ingest.models.results import SheetResult
from pricebook_ingest.services.classification import (
    ClassifierConfig,
    FormatClassifier,
    detect_manufacturer,
)
from pricebook_ingest.services.import_orchestrator import PricebookImportOrchestrator
from pricebook_ingest.services.pricebook_batch import load_pricebook_batch
from pricebook_ingest.services.sheet_sources import load_grid_file
from pricebook_ingest.tasks.import_tasks import build_import_pipeline

logger = structlog.get_logger(__name__)


def _print_result(result: SheetResult) -> None:
    line = f"{result.sheet_id}: {result.outcome.value}"
    if result.skip_reason:
        line += f" ({result.skip_reason})"
    if result.error_kind:
        line += f" [{result.error_kind}] {result.error_detail}"
    elif result.layout:
        line += f" layout={result.layout} products={len(result.products)} variants={result.variant_count}"
    print(line)


async def _with_pipeline(command: str, pages: List[PricebookPage], args: argparse.Namespace) -> int:
    redis: Optional[Redis] = None
    if ingestion_settings.ledger_backend == LedgerBackend.REDIS:
        redis = Redis.from_url(settings.redis_url)
    orchestrator = build_import_pipeline(redis=redis)
    try:
        return await _dispatch(command, orchestrator, pages, args)
    finally:
        await orchestrator.reconciler.store.close()
        if redis is not None:
            await redis.aclose()
        if ingestion_settings.catalog_backend == CatalogBackend.DATABASE:
            from pricebook_ingest.db.base import engine
            await engine.dispose()


async def _dispatch(
    command: str,
    orchestrator: PricebookImportOrchestrator,
    pages: List[PricebookPage],
    args: argparse.Namespace,
) -> int:
    if command == "run":
        report = await orchestrator.run_batch(
            pages,
            concurrency=args.concurrency or ingestion_settings.concurrency,
        )
        for result in report.results:
            _print_result(result)
        print(
            f"\nTotal: {report.total}  Completed: {report.completed}  "
            f"Failed: {report.failed}  Skipped: {report.skipped}"
        )
        for failure in report.failures:
            print(f"  FAILED {failure.sheet_id} [{failure.error_kind}]")
        return 1 if report.failed else 0

    if command == "next":
        result = await orchestrator.import_next(pages)
        if result is None:
            print("All pages completed")
            return 0
        _print_result(result)
        return 1 if result.error_kind else 0

    if command == "sheet":
        page = next((p for p in pages if p.sheet_id == args.sheet_id), None)
        if page is None:
            print(f"Sheet {args.sheet_id} is not in the batch", file=sys.stderr)
            return 2
        result = await orchestrator.import_sheet(page)
        _print_result(result)
        return 1 if result.error_kind else 0

    progress = await orchestrator.progress(pages)
    percent = (progress.completed / progress.total * 100) if progress.total else 0.0
    print(f"Completed: {progress.completed}/{progress.total} ({percent:.1f}%)")
    print(f"Failed:    {progress.failed}")
    print(f"Remaining: {progress.remaining}")
    for sheet_id in progress.failed_sheets:
        print(f"  failed: {sheet_id}")
    if progress.remaining_sheets:
        print(f"Next: {progress.remaining_sheets[0]}")
    return 0


def _classify(path: str) -> int:
    grid = load_grid_file(path)
    classifier = FormatClassifier(config=ClassifierConfig(
        max_scan_rows=ingestion_settings.max_scan_rows,
        preview_rows=ingestion_settings.preview_rows,
    ))
    classification = classifier.classify(grid, sheet_id=path)
    print(f"layout:          {classification.layout.value}")
    print(f"variant:         {classification.variant or '-'}")
    print(f"header row:      {classification.header_row_index}")
    print(f"data start row:  {classification.data_start_row_index}")
    print(f"manufacturer:    {detect_manufacturer(grid, ingestion_settings.manufacturer_scan_rows) or '-'}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pricebook-ingest",
        description="Classify pricebook sheets and reconcile them into the catalog",
    )
    parser.add_argument(
        "--batch-file",
        default=None,
        help=f"Pricebook batch JSON (default: {ingestion_settings.batch_file})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Import every pending page of the batch")
    run_parser.add_argument("--concurrency", type=int, default=None, help="Sheets processed at once")

    subparsers.add_parser("next", help="Import the next pending page")

    sheet_parser = subparsers.add_parser("sheet", help="Import one page by sheet id")
    sheet_parser.add_argument("sheet_id", help="Sheet id (page name unless the batch sets one)")

    subparsers.add_parser("progress", help="Show ledger progress of the batch")

    classify_parser = subparsers.add_parser("classify", help="Classify a JSON grid file")
    classify_parser.add_argument("grid_file", help="JSON array of rows")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        if args.command == "classify":
            return _classify(args.grid_file)
        pages = load_pricebook_batch(args.batch_file or ingestion_settings.batch_file)
        return asyncio.run(_with_pipeline(args.command, pages, args))
    except DataIngestionError as e:
        logger.error("command_failed", command=args.command, error=str(e), error_kind=e.kind)
        print(f"Error [{e.kind}]: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
