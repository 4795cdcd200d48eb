"""Unit tests for queue tasks, pipeline wiring and worker settings."""
import json
from unittest.mock import AsyncMock, patch

import pytest

from pricebook_ingest.config import (
    CatalogBackend,
    IngestionSettings,
    LedgerBackend,
    SheetSourceType,
)
from pricebook_ingest.errors import ValidationError
from pricebook_ingest.services.import_ledger import JsonFileLedgerStore, RedisLedgerStore
from pricebook_ingest.services.reconciliation import InMemoryCatalogStore
from pricebook_ingest.services.sheet_sources import (
    GoogleSheetsSource,
    JsonGridSource,
    WorkbookSheetSource,
    grid_file_name,
)
from pricebook_ingest.tasks.import_tasks import (
    build_import_pipeline,
    build_ledger,
    build_sheet_source,
    import_next_sheet_task,
    import_pricebook_batch_task,
)
from pricebook_ingest.worker import WorkerSettings, on_job_end
from tests.fixtures.grids import FITTING_MATRIX_GRID, NARRATIVE_GRID


@pytest.fixture
def config(tmp_path):
    """Settings for a file-ledger, in-memory catalog, JSON grid pipeline."""
    grid_dir = tmp_path / "sheet-data"
    grid_dir.mkdir()
    (grid_dir / grid_file_name("FIBERGLASS FITTING 45 DEGREE")).write_text(json.dumps(FITTING_MATRIX_GRID))
    (grid_dir / grid_file_name("ABOUT US")).write_text(json.dumps(NARRATIVE_GRID))

    batch_file = tmp_path / "batch.json"
    batch_file.write_text(json.dumps([
        {"page_name": "FIBERGLASS FITTING 45 DEGREE", "group_code": "CAEG164", "discount_percent": 59.88},
        {"page_name": "ABOUT US"},
    ]))

    return IngestionSettings(
        catalog_backend=CatalogBackend.MEMORY,
        sheet_source=SheetSourceType.JSON,
        grid_directory=str(grid_dir),
        ledger_backend=LedgerBackend.FILE,
        ledger_path=str(tmp_path / "progress.json"),
        batch_file=str(batch_file),
    )


class TestPipelineWiring:
    """Tests for build_sheet_source, build_ledger and build_import_pipeline."""

    def test_json_source(self, config):
        assert isinstance(build_sheet_source(config), JsonGridSource)

    def test_google_source_requires_url(self):
        with pytest.raises(ValidationError):
            build_sheet_source(IngestionSettings(sheet_source=SheetSourceType.GOOGLE, spreadsheet_url=None))

    def test_google_source(self):
        source = build_sheet_source(IngestionSettings(
            sheet_source=SheetSourceType.GOOGLE,
            spreadsheet_url="https://docs.google.com/spreadsheets/d/abc/edit",
        ))
        assert isinstance(source, GoogleSheetsSource)

    def test_workbook_source_requires_path(self):
        with pytest.raises(ValidationError):
            build_sheet_source(IngestionSettings(sheet_source=SheetSourceType.WORKBOOK))

    def test_workbook_source(self, tmp_path):
        source = build_sheet_source(IngestionSettings(
            sheet_source=SheetSourceType.WORKBOOK,
            workbook_path=str(tmp_path / "pricebook.xlsx"),
        ))
        assert isinstance(source, WorkbookSheetSource)

    def test_file_ledger(self, config):
        assert isinstance(build_ledger(config).store, JsonFileLedgerStore)

    def test_redis_ledger(self):
        config = IngestionSettings(ledger_backend=LedgerBackend.REDIS, ledger_redis_key="test:ledger")
        ledger = build_ledger(config, AsyncMock())
        assert isinstance(ledger.store, RedisLedgerStore)
        assert ledger.store.key == "test:ledger"

    def test_redis_ledger_requires_connection(self):
        with pytest.raises(ValidationError):
            build_ledger(IngestionSettings(ledger_backend=LedgerBackend.REDIS))

    def test_pipeline_uses_settings(self, config):
        config.default_distributor = "BRIDGEVIEW"
        config.max_scan_rows = 50
        orchestrator = build_import_pipeline(config)

        assert orchestrator.default_distributor == "BRIDGEVIEW"
        assert orchestrator.classifier.config.max_scan_rows == 50
        assert isinstance(orchestrator.reconciler.store, InMemoryCatalogStore)


class TestImportTasks:
    """Tests for the arq task functions."""

    @pytest.mark.asyncio
    async def test_batch_task_partial_success(self, config):
        with patch("pricebook_ingest.tasks.import_tasks.ingestion_settings", config):
            result = await import_pricebook_batch_task({})

        assert result["status"] == "partial_success"
        assert result["completed"] == 1
        assert result["failed"] == 1
        assert result["failures"][0]["sheet_id"] == "ABOUT US"
        assert result["failures"][0]["error_kind"] == "NotRecognized"

    @pytest.mark.asyncio
    async def test_batch_task_rerun_skips_completed(self, config):
        with patch("pricebook_ingest.tasks.import_tasks.ingestion_settings", config):
            await import_pricebook_batch_task({})
            result = await import_pricebook_batch_task({})

        assert result["completed"] == 0
        assert result["skipped"] == 1
        assert result["failed"] == 1

    @pytest.mark.asyncio
    async def test_batch_task_missing_batch_file(self, config, tmp_path):
        with patch("pricebook_ingest.tasks.import_tasks.ingestion_settings", config):
            result = await import_pricebook_batch_task({}, batch_file=str(tmp_path / "missing.json"))

        assert result["status"] == "error"
        assert result["error_kind"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_next_sheet_task(self, config):
        with patch("pricebook_ingest.tasks.import_tasks.ingestion_settings", config):
            first = await import_next_sheet_task({})
            second = await import_next_sheet_task({})

        assert first["status"] == "completed"
        assert first["result"]["sheet_id"] == "FIBERGLASS FITTING 45 DEGREE"
        # The failed page stays pending and is retried by every call
        assert second["status"] == "failed"
        assert second["result"]["error_kind"] == "NotRecognized"

    @pytest.mark.asyncio
    async def test_next_sheet_task_idle(self, config, tmp_path):
        batch_file = tmp_path / "done.json"
        batch_file.write_text(json.dumps([{"page_name": "FIBERGLASS FITTING 45 DEGREE"}]))

        with patch("pricebook_ingest.tasks.import_tasks.ingestion_settings", config):
            await import_next_sheet_task({}, batch_file=str(batch_file))
            result = await import_next_sheet_task({}, batch_file=str(batch_file))

        assert result == {"status": "idle"}


class TestWorkerSettings:
    """Tests for arq worker configuration."""

    def test_tasks_registered(self):
        assert import_pricebook_batch_task in WorkerSettings.functions
        assert import_next_sheet_task in WorkerSettings.functions

    def test_jobs_not_retried_by_queue(self):
        assert WorkerSettings.max_tries == 1

    @pytest.mark.asyncio
    async def test_on_job_end_handles_failure(self):
        await on_job_end({"job_id": "job-1", "job_result": RuntimeError("boom")})
        await on_job_end({})
