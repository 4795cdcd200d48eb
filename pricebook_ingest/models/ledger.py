"""Pydantic models for the import ledger."""
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class LedgerStatus(str, Enum):
    """Per-sheet import state. Unseen sheets have no entry."""
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class LedgerEntry(BaseModel):
    """Durable record of one sheet's import state.

    Attributes:
        sheet_id: Identifier of the sheet
        status: Current state
        attempts: Times processing has started
        result_summary: Import summary for completed sheets
        error_kind: Error kind for failed sheets
        error_detail: Error message for failed sheets
        updated_at: Time of the last transition
    """

    sheet_id: str = Field(..., min_length=1)
    status: LedgerStatus
    attempts: int = Field(default=0, ge=0)
    result_summary: Optional[Dict[str, Any]] = None
    error_kind: Optional[str] = None
    error_detail: Optional[str] = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ImportProgress(BaseModel):
    """Progress of a batch according to the ledger."""

    total: int = 0
    completed: int = 0
    failed: int = 0
    remaining: int = 0
    completed_sheets: List[str] = Field(default_factory=list)
    failed_sheets: List[str] = Field(default_factory=list)
    remaining_sheets: List[str] = Field(default_factory=list)
