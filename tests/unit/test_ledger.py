"""Unit tests for the import ledger and its stores.

Tests cover:
    - JsonFileLedgerStore persistence across instances (restart)
    - RedisLedgerStore with a mocked Redis client
    - ImportLedger transitions: completed skipped, failed retried
    - Progress counts
"""
import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from pricebook_ingest.errors import LedgerError
from pricebook_ingest.models.ledger import LedgerEntry, LedgerStatus
from pricebook_ingest.services.import_ledger import (
    LEDGER_KEY,
    ImportLedger,
    JsonFileLedgerStore,
    RedisLedgerStore,
)


@pytest.fixture
def ledger_path(tmp_path):
    return tmp_path / "progress.json"


@pytest.fixture
def ledger(ledger_path):
    return ImportLedger(JsonFileLedgerStore(str(ledger_path)))


class TestJsonFileLedgerStore:
    """Tests for JsonFileLedgerStore."""

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, ledger_path):
        store = JsonFileLedgerStore(str(ledger_path))
        assert await store.all() == {}
        assert await store.get("FACED BOARD") is None

    @pytest.mark.asyncio
    async def test_survives_restart(self, ledger_path):
        """A new store instance reads what the previous one wrote."""
        store = JsonFileLedgerStore(str(ledger_path))
        await store.put(LedgerEntry(sheet_id="FACED BOARD", status=LedgerStatus.COMPLETED, attempts=1))

        reopened = JsonFileLedgerStore(str(ledger_path))
        entry = await reopened.get("FACED BOARD")
        assert entry.status == LedgerStatus.COMPLETED
        assert entry.attempts == 1

    @pytest.mark.asyncio
    async def test_document_format(self, ledger_path):
        store = JsonFileLedgerStore(str(ledger_path))
        await store.put(LedgerEntry(sheet_id="DUCT WRAP", status=LedgerStatus.FAILED))

        document = json.loads(ledger_path.read_text())
        assert set(document) == {"entries", "last_updated"}
        assert document["entries"]["DUCT WRAP"]["status"] == "failed"

    @pytest.mark.asyncio
    async def test_no_temp_files_left(self, ledger_path):
        store = JsonFileLedgerStore(str(ledger_path))
        await store.put(LedgerEntry(sheet_id="A", status=LedgerStatus.PROCESSING))
        await store.put(LedgerEntry(sheet_id="B", status=LedgerStatus.PROCESSING))
        assert [p.name for p in ledger_path.parent.iterdir()] == [ledger_path.name]

    @pytest.mark.asyncio
    async def test_corrupt_file_raises(self, ledger_path):
        ledger_path.write_text("{not json")
        with pytest.raises(LedgerError):
            await JsonFileLedgerStore(str(ledger_path)).all()

    @pytest.mark.asyncio
    async def test_file_io_runs_in_worker_thread(self, ledger_path):
        store = JsonFileLedgerStore(str(ledger_path))
        with patch(
            "pricebook_ingest.services.import_ledger.asyncio.to_thread",
            wraps=asyncio.to_thread,
        ) as to_thread:
            await store.put(LedgerEntry(sheet_id="A", status=LedgerStatus.PROCESSING))
            entry = await store.get("A")

        assert entry.status == LedgerStatus.PROCESSING
        offloaded = [c.args[0] for c in to_thread.await_args_list]
        assert offloaded == [store._read, store._write, store._read]


class TestRedisLedgerStore:
    """Tests for RedisLedgerStore with a mocked client."""

    @pytest.mark.asyncio
    async def test_put_and_get(self):
        redis = AsyncMock()
        store = RedisLedgerStore(redis)
        entry = LedgerEntry(sheet_id="FACED BOARD", status=LedgerStatus.COMPLETED)

        await store.put(entry)
        redis.hset.assert_awaited_once()
        key, field, payload = redis.hset.await_args.args
        assert key == LEDGER_KEY
        assert field == "FACED BOARD"

        redis.hget.return_value = payload.encode()
        loaded = await store.get("FACED BOARD")
        assert loaded.status == LedgerStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_get_unseen(self):
        redis = AsyncMock()
        redis.hget.return_value = None
        assert await RedisLedgerStore(redis).get("X") is None

    @pytest.mark.asyncio
    async def test_all_decodes_bytes(self):
        redis = AsyncMock()
        entry = LedgerEntry(sheet_id="A", status=LedgerStatus.FAILED, error_kind="NotRecognized")
        redis.hgetall.return_value = {b"A": entry.model_dump_json().encode()}

        entries = await RedisLedgerStore(redis, key="custom:ledger").all()
        assert entries["A"].error_kind == "NotRecognized"
        redis.hgetall.assert_awaited_once_with("custom:ledger")

    @pytest.mark.asyncio
    async def test_redis_error_wrapped(self):
        redis = AsyncMock()
        redis.hget.side_effect = RedisConnectionError("Connection refused")
        with pytest.raises(LedgerError):
            await RedisLedgerStore(redis).get("A")


class TestImportLedger:
    """Tests for ImportLedger transitions."""

    @pytest.mark.asyncio
    async def test_unseen_should_process(self, ledger):
        assert await ledger.should_process("A") is True

    @pytest.mark.asyncio
    async def test_completed_is_skipped(self, ledger):
        await ledger.mark_processing("A")
        await ledger.mark_completed("A", {"variant_count": 3})

        assert await ledger.should_process("A") is False
        entry = await ledger.get("A")
        assert entry.result_summary == {"variant_count": 3}

    @pytest.mark.asyncio
    async def test_failed_is_retried(self, ledger):
        await ledger.mark_processing("A")
        await ledger.mark_failed("A", "NotRecognized", "No known layout")

        assert await ledger.should_process("A") is True
        entry = await ledger.mark_processing("A")
        assert entry.attempts == 2
        assert entry.status == LedgerStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_processing_is_retried(self, ledger):
        """A sheet left in Processing by a crash is picked up again."""
        await ledger.mark_processing("A")
        assert await ledger.should_process("A") is True

    @pytest.mark.asyncio
    async def test_completed_cannot_restart(self, ledger):
        await ledger.mark_processing("A")
        await ledger.mark_completed("A", {})
        with pytest.raises(LedgerError):
            await ledger.mark_processing("A")

    @pytest.mark.asyncio
    async def test_failed_records_kind(self, ledger):
        await ledger.mark_processing("A")
        entry = await ledger.mark_failed("A", "VerificationFailed", "0 priced variants")
        assert entry.error_kind == "VerificationFailed"
        assert entry.error_detail == "0 priced variants"
        assert entry.attempts == 1

    @pytest.mark.asyncio
    async def test_progress(self, ledger):
        await ledger.mark_processing("A")
        await ledger.mark_completed("A", {})
        await ledger.mark_processing("B")
        await ledger.mark_failed("B", "NoValidVariants", "")
        await ledger.mark_processing("C")

        progress = await ledger.progress(["A", "B", "C", "D"])
        assert progress.total == 4
        assert progress.completed == 1
        assert progress.failed == 1
        assert progress.remaining == 2
        assert progress.completed_sheets == ["A"]
        assert progress.failed_sheets == ["B"]
        assert progress.remaining_sheets == ["C", "D"]

    @pytest.mark.asyncio
    async def test_progress_ignores_sheets_outside_batch(self, ledger):
        await ledger.mark_processing("OLD")
        await ledger.mark_completed("OLD", {})
        progress = await ledger.progress(["A"])
        assert progress.completed == 0
        assert progress.remaining == 1
