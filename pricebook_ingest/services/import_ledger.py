"""Import ledger: durable per-sheet import state.

Each sheet moves Unseen -> Processing -> Completed | Failed. Completed is
terminal, so re-running a batch skips it. Failed sheets are retried.

Two stores are provided:
- JsonFileLedgerStore: one JSON document rewritten atomically
- RedisLedgerStore: Redis hash keyed by sheet id
"""
import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
import structlog
from pydantic import ValidationError as PydanticValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from pricebook_ingest.errors import LedgerError
from pricebook_ingest.models.ledger import ImportProgress, LedgerEntry, LedgerStatus

logger = structlog.get_logger(__name__)

# Redis key constants
LEDGER_KEY = "pricebook:ledger"


class LedgerStore(ABC):
    """Storage of ledger entries keyed by sheet id."""

    @abstractmethod
    async def get(self, sheet_id: str) -> Optional[LedgerEntry]:
        pass

    @abstractmethod
    async def put(self, entry: LedgerEntry) -> None:
        pass

    @abstractmethod
    async def all(self) -> Dict[str, LedgerEntry]:
        pass


class JsonFileLedgerStore(LedgerStore):
    """Ledger kept in a single JSON file that survives restarts.

    Every write rewrites the whole document through a temp file and
    ``os.replace``, so a crash never leaves a half-written ledger.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> Dict[str, LedgerEntry]:
        if not self.path.exists():
            return {}
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
            return {
                sheet_id: LedgerEntry.model_validate(raw)
                for sheet_id, raw in document.get("entries", {}).items()
            }
        except (OSError, json.JSONDecodeError, PydanticValidationError) as e:
            logger.error("ledger_read_failed", path=str(self.path), error=str(e))
            raise LedgerError(f"Cannot read ledger {self.path}: {e}") from e

    def _write(self, entries: Dict[str, LedgerEntry]) -> None:
        document = {
            "entries": {k: v.model_dump(mode="json") for k, v in entries.items()},
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(document, handle, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error("ledger_write_failed", path=str(self.path), error=str(e))
            raise LedgerError(f"Cannot write ledger {self.path}: {e}") from e

    async def get(self, sheet_id: str) -> Optional[LedgerEntry]:
        async with self._lock:
            entries = await asyncio.to_thread(self._read)
        return entries.get(sheet_id)

    async def put(self, entry: LedgerEntry) -> None:
        async with self._lock:
            entries = await asyncio.to_thread(self._read)
            entries[entry.sheet_id] = entry
            await asyncio.to_thread(self._write, entries)

    async def all(self) -> Dict[str, LedgerEntry]:
        async with self._lock:
            return await asyncio.to_thread(self._read)


class RedisLedgerStore(LedgerStore):
    """Ledger kept in a Redis hash (field = sheet id, value = entry JSON)."""

    def __init__(self, redis: Redis, key: str = LEDGER_KEY):
        self.redis = redis
        self.key = key

    @staticmethod
    def _decode(raw: Any) -> LedgerEntry:
        if isinstance(raw, bytes):
            raw = raw.decode()
        return LedgerEntry.model_validate_json(raw)

    async def get(self, sheet_id: str) -> Optional[LedgerEntry]:
        try:
            raw = await self.redis.hget(self.key, sheet_id)
            return self._decode(raw) if raw else None
        except (RedisError, PydanticValidationError) as e:
            logger.error("ledger_get_failed", key=self.key, sheet_id=sheet_id, error=str(e))
            raise LedgerError(f"Cannot read ledger entry {sheet_id}: {e}") from e

    async def put(self, entry: LedgerEntry) -> None:
        try:
            await self.redis.hset(self.key, entry.sheet_id, entry.model_dump_json())
        except RedisError as e:
            logger.error("ledger_put_failed", key=self.key, sheet_id=entry.sheet_id, error=str(e))
            raise LedgerError(f"Cannot write ledger entry {entry.sheet_id}: {e}") from e

    async def all(self) -> Dict[str, LedgerEntry]:
        try:
            raw_entries = await self.redis.hgetall(self.key)
            result = {}
            for field, raw in raw_entries.items():
                sheet_id = field.decode() if isinstance(field, bytes) else field
                result[sheet_id] = self._decode(raw)
            return result
        except (RedisError, PydanticValidationError) as e:
            logger.error("ledger_all_failed", key=self.key, error=str(e))
            raise LedgerError(f"Cannot read ledger {self.key}: {e}") from e


class ImportLedger:
    """Sheet import state machine on top of a ledger store."""

    def __init__(self, store: LedgerStore):
        self.store = store

    async def get(self, sheet_id: str) -> Optional[LedgerEntry]:
        """Current entry of ``sheet_id`` (None when unseen)."""
        return await self.store.get(sheet_id)

    async def should_process(self, sheet_id: str) -> bool:
        """False only for completed sheets."""
        entry = await self.store.get(sheet_id)
        return entry is None or entry.status != LedgerStatus.COMPLETED

    async def mark_processing(self, sheet_id: str) -> LedgerEntry:
        """Move a sheet to Processing, counting the attempt.

        Raises:
            LedgerError: If the sheet is already completed or the store fails
        """
        current = await self.store.get(sheet_id)
        if current is not None and current.status == LedgerStatus.COMPLETED:
            raise LedgerError(f"Sheet {sheet_id} is already completed")
        entry = LedgerEntry(
            sheet_id=sheet_id,
            status=LedgerStatus.PROCESSING,
            attempts=(current.attempts if current else 0) + 1,
        )
        await self.store.put(entry)
        logger.debug("ledger_sheet_processing", sheet_id=sheet_id, attempts=entry.attempts)
        return entry

    async def mark_completed(self, sheet_id: str, summary: Dict[str, Any]) -> LedgerEntry:
        """Record a sheet as completed with its import summary."""
        current = await self.store.get(sheet_id)
        entry = LedgerEntry(
            sheet_id=sheet_id,
            status=LedgerStatus.COMPLETED,
            attempts=current.attempts if current else 1,
            result_summary=summary,
        )
        await self.store.put(entry)
        logger.info("ledger_sheet_completed", sheet_id=sheet_id)
        return entry

    async def mark_failed(self, sheet_id: str, error_kind: str, error_detail: str) -> LedgerEntry:
        """Record a sheet as failed; it is retried on the next run."""
        current = await self.store.get(sheet_id)
        entry = LedgerEntry(
            sheet_id=sheet_id,
            status=LedgerStatus.FAILED,
            attempts=current.attempts if current else 1,
            error_kind=error_kind,
            error_detail=error_detail,
        )
        await self.store.put(entry)
        logger.warning("ledger_sheet_failed", sheet_id=sheet_id, error_kind=error_kind)
        return entry

    async def progress(self, sheet_ids: List[str]) -> ImportProgress:
        """Completed, failed and remaining counts for a batch.

        Args:
            sheet_ids: Sheet ids of the batch, in order
        """
        entries = await self.store.all()
        progress = ImportProgress(total=len(sheet_ids))
        for sheet_id in sheet_ids:
            entry = entries.get(sheet_id)
            if entry is not None and entry.status == LedgerStatus.COMPLETED:
                progress.completed_sheets.append(sheet_id)
            elif entry is not None and entry.status == LedgerStatus.FAILED:
                progress.failed_sheets.append(sheet_id)
            else:
                progress.remaining_sheets.append(sheet_id)
        progress.completed = len(progress.completed_sheets)
        progress.failed = len(progress.failed_sheets)
        progress.remaining = len(progress.remaining_sheets)
        return progress
