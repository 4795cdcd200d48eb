"""Pydantic models for sheet and batch import results."""
from pydantic import BaseModel, Field
from enum import Enum
from typing import List, Optional
import uuid


class SheetOutcome(str, Enum):
    """How one sheet ended within a batch."""
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class ProductImportSummary(BaseModel):
    """One reconciled product of a sheet."""

    product_id: uuid.UUID
    product_name: str
    variant_count: int = Field(..., ge=0)


class SheetResult(BaseModel):
    """Result of importing one sheet.

    Attributes:
        sheet_id: Sheet identifier
        outcome: completed, failed or skipped
        layout: Layout tag when classification succeeded
        products: Reconciled products (completed sheets)
        variant_count: Total variant records reconciled
        skip_reason: Why the sheet was skipped ("already_completed", "no_data")
        error_kind: Failure kind (failed sheets)
        error_detail: Failure message (failed sheets)
    """

    sheet_id: str
    outcome: SheetOutcome
    layout: Optional[str] = None
    products: List[ProductImportSummary] = Field(default_factory=list)
    variant_count: int = 0
    skip_reason: Optional[str] = None
    error_kind: Optional[str] = None
    error_detail: Optional[str] = None

    def summary(self) -> dict:
        """Ledger summary of a completed sheet."""
        return {
            "layout": self.layout,
            "product_count": len(self.products),
            "variant_count": self.variant_count,
            "products": [
                {
                    "id": str(p.product_id),
                    "name": p.product_name,
                    "variants": p.variant_count,
                }
                for p in self.products
            ],
        }


class FailedSheet(BaseModel):
    """Failed sheet entry of a batch report."""

    sheet_id: str
    error_kind: str
    error_detail: Optional[str] = None


class BatchReport(BaseModel):
    """Outcome counts of a batch run."""

    total: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    failures: List[FailedSheet] = Field(default_factory=list)
    results: List[SheetResult] = Field(default_factory=list)

    @classmethod
    def from_results(cls, results: List[SheetResult]) -> 'BatchReport':
        """Tally sheet results into a report."""
        report = cls(total=len(results), results=list(results))
        for result in results:
            if result.outcome == SheetOutcome.COMPLETED:
                report.completed += 1
            elif result.outcome == SheetOutcome.FAILED:
                report.failed += 1
                report.failures.append(FailedSheet(
                    sheet_id=result.sheet_id,
                    error_kind=result.error_kind or "DataIngestionError",
                    error_detail=result.error_detail,
                ))
            else:
                report.skipped += 1
        return report

    @property
    def failed_sheet_ids(self) -> List[str]:
        """Ids of failed sheets, in batch order."""
        return [failure.sheet_id for failure in self.failures]
