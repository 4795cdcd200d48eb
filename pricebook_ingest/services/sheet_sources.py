"""Sheet sources: where pricebook page grids are read from.

- GoogleSheetsSource: live pricebook spreadsheet through gspread
- WorkbookSheetSource: local .xlsx export read with openpyxl
- JsonGridSource: directory of sheet-data-<page>.json grid files

``fetch_grid`` returns None when a page exists but holds no data, which the
orchestrator reports as a skipped sheet rather than a failure.
"""
import asyncio
import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urlparse

import gspread
from gspread.exceptions import APIError, SpreadsheetNotFound, WorksheetNotFound
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
import structlog
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from pricebook_ingest.errors import SheetSourceError
from pricebook_ingest.models.grid import Grid, is_blank_row
from pricebook_ingest.models.pricebook import PricebookPage

logger = structlog.get_logger(__name__)


def _trim_grid(rows: List[List]) -> Optional[Grid]:
    """Drop trailing blank rows; None when nothing is left."""
    grid = [list(row) for row in rows]
    while grid and is_blank_row(grid[-1]):
        grid.pop()
    return grid or None


def grid_file_name(page_name: str) -> str:
    """File name of a page's JSON grid."""
    return f"sheet-data-{re.sub(r'[^a-zA-Z0-9]', '_', page_name)}.json"


class SheetSource(ABC):
    """Provider of page grids."""

    @abstractmethod
    async def fetch_grid(self, page: PricebookPage) -> Optional[Grid]:
        """Return the page's grid, or None when the page has no data.

        Raises:
            SheetSourceError: If the source cannot be read
        """
        pass


class GoogleSheetsSource(SheetSource):
    """Read worksheets of the pricebook spreadsheet with a service account."""

    def __init__(self, spreadsheet_url: str, credentials_path: str):
        self.spreadsheet_url = spreadsheet_url
        self.credentials_path = credentials_path
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None

    def _open(self) -> gspread.Spreadsheet:
        if self._spreadsheet is not None:
            return self._spreadsheet
        try:
            self._client = gspread.service_account(filename=self.credentials_path)
        except FileNotFoundError as e:
            raise SheetSourceError(
                f"Google credentials file not found: {self.credentials_path}"
            ) from e

        path_parts = urlparse(self.spreadsheet_url).path.split("/")
        if "d" not in path_parts or path_parts.index("d") + 1 >= len(path_parts):
            raise SheetSourceError(f"Invalid Google Sheets URL format: {self.spreadsheet_url}")
        spreadsheet_id = path_parts[path_parts.index("d") + 1]

        try:
            self._spreadsheet = self._client.open_by_key(spreadsheet_id)
        except SpreadsheetNotFound as e:
            raise SheetSourceError(f"Spreadsheet not found: {spreadsheet_id}") from e
        logger.info("spreadsheet_opened", spreadsheet_id=spreadsheet_id)
        return self._spreadsheet

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(APIError),
        reraise=True,
    )
    def _read_values(self, title: str) -> List[List[str]]:
        worksheet = self._open().worksheet(title)
        return worksheet.get_all_values()

    async def fetch_grid(self, page: PricebookPage) -> Optional[Grid]:
        log = logger.bind(sheet_id=page.sheet_id, worksheet=page.worksheet_title)
        try:
            values = await asyncio.to_thread(self._read_values, page.worksheet_title)
        except WorksheetNotFound as e:
            log.warning("worksheet_not_found")
            raise SheetSourceError(f"Worksheet not found: {page.worksheet_title}") from e
        except APIError as e:
            log.error("google_sheets_api_error", error=str(e))
            raise SheetSourceError(f"Google Sheets API error: {e}") from e

        grid = _trim_grid(values)
        log.info("sheet_fetched", rows=len(grid) if grid else 0)
        return grid


class WorkbookSheetSource(SheetSource):
    """Read worksheets of a local .xlsx export (cached values, no formulas)."""

    def __init__(self, workbook_path: str):
        self.workbook_path = workbook_path
        self._cache: Dict[str, Optional[Grid]] = {}

    def _read(self, title: str) -> Optional[Grid]:
        try:
            workbook = load_workbook(self.workbook_path, read_only=True, data_only=True)
        except (OSError, InvalidFileException) as e:
            raise SheetSourceError(f"Cannot open workbook {self.workbook_path}: {e}") from e
        try:
            if title not in workbook.sheetnames:
                raise SheetSourceError(f"Worksheet not found: {title}")
            rows = [list(row) for row in workbook[title].iter_rows(values_only=True)]
        finally:
            workbook.close()
        return _trim_grid(rows)

    async def fetch_grid(self, page: PricebookPage) -> Optional[Grid]:
        title = page.worksheet_title
        if title not in self._cache:
            self._cache[title] = await asyncio.to_thread(self._read, title)
        grid = self._cache[title]
        logger.info(
            "sheet_fetched",
            sheet_id=page.sheet_id,
            worksheet=title,
            rows=len(grid) if grid else 0,
        )
        return grid


class JsonGridSource(SheetSource):
    """Read grids saved as JSON arrays of rows.

    A missing file means the page was never exported and yields None.
    """

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def path_for(self, page: PricebookPage) -> Path:
        return self.directory / grid_file_name(page.worksheet_title)

    async def fetch_grid(self, page: PricebookPage) -> Optional[Grid]:
        path = self.path_for(page)
        if not path.exists():
            logger.info("sheet_data_missing", sheet_id=page.sheet_id, path=str(path))
            return None
        try:
            rows = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise SheetSourceError(f"Cannot read grid file {path}: {e}") from e
        if not isinstance(rows, list) or not all(isinstance(r, list) for r in rows):
            raise SheetSourceError(f"Grid file {path} must hold a JSON array of rows")
        return _trim_grid(rows)


def load_grid_file(path: str) -> Grid:
    """Read one JSON grid file (used by the classify command).

    Raises:
        SheetSourceError: If the file is missing or not an array of rows
    """
    try:
        rows = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise SheetSourceError(f"Cannot read grid file {path}: {e}") from e
    if not isinstance(rows, list) or not all(isinstance(r, list) for r in rows):
        raise SheetSourceError(f"Grid file {path} must hold a JSON array of rows")
    return rows
