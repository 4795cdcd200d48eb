"""Unit tests for the command line entry point."""
import json
from unittest.mock import patch

import pytest

from pricebook_ingest.cli import build_parser, main
from pricebook_ingest.config import CatalogBackend, IngestionSettings, LedgerBackend, SheetSourceType
from pricebook_ingest.services.sheet_sources import grid_file_name
from tests.fixtures.grids import BOARD_GRID, NARRATIVE_GRID


class TestParser:
    """Tests for build_parser."""

    def test_run_arguments(self):
        args = build_parser().parse_args(["--batch-file", "b.json", "run", "--concurrency", "4"])
        assert args.command == "run"
        assert args.batch_file == "b.json"
        assert args.concurrency == 4

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestClassifyCommand:
    """Tests for the classify command."""

    def test_classify_grid_file(self, tmp_path, capsys):
        path = tmp_path / "board.json"
        path.write_text(json.dumps(BOARD_GRID))

        assert main(["classify", str(path)]) == 0
        output = capsys.readouterr().out
        assert "layout:          board" in output
        assert "manufacturer:    JOHNS MANVILLE" in output

    def test_unrecognized_grid(self, tmp_path, capsys):
        path = tmp_path / "about.json"
        path.write_text(json.dumps(NARRATIVE_GRID))

        assert main(["classify", str(path)]) == 1
        assert "Error [NotRecognized]" in capsys.readouterr().err


class TestImportCommands:
    """Tests for run and progress against a JSON grid directory."""

    @pytest.fixture
    def config(self, tmp_path):
        grid_dir = tmp_path / "sheet-data"
        grid_dir.mkdir()
        (grid_dir / grid_file_name("FACED BOARD")).write_text(json.dumps(BOARD_GRID))
        (tmp_path / "batch.json").write_text(json.dumps([
            {"page_name": "FACED BOARD", "group_code": "CAEG156"},
            {"page_name": "DUCT WRAP", "group_code": "CAEG167"},
        ]))
        return IngestionSettings(
            catalog_backend=CatalogBackend.MEMORY,
            sheet_source=SheetSourceType.JSON,
            grid_directory=str(grid_dir),
            ledger_backend=LedgerBackend.FILE,
            ledger_path=str(tmp_path / "progress.json"),
            batch_file=str(tmp_path / "batch.json"),
        )

    def test_run_then_progress(self, config, capsys):
        with patch("pricebook_ingest.cli.ingestion_settings", config), \
                patch("pricebook_ingest.tasks.import_tasks.ingestion_settings", config):
            assert main(["run"]) == 0
            run_output = capsys.readouterr().out
            assert "FACED BOARD: completed layout=board products=2 variants=3" in run_output
            assert "DUCT WRAP: skipped (no_data)" in run_output

            assert main(["progress"]) == 0
            progress_output = capsys.readouterr().out
            assert "Completed: 1/2 (50.0%)" in progress_output
            assert "Next: DUCT WRAP" in progress_output

    def test_unknown_sheet(self, config, capsys):
        with patch("pricebook_ingest.cli.ingestion_settings", config), \
                patch("pricebook_ingest.tasks.import_tasks.ingestion_settings", config):
            assert main(["sheet", "NOT IN BATCH"]) == 2
        assert "not in the batch" in capsys.readouterr().err
