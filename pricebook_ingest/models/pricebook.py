"""Pydantic models describing pricebook pages and their context."""
from pydantic import BaseModel, Field, field_validator, model_validator
from decimal import Decimal
from typing import Optional


class PricebookPage(BaseModel):
    """One entry of a pricebook batch.

    Attributes:
        sheet_id: Ledger identifier of the page (defaults to page_name)
        page_name: Product page title, also the default worksheet title
        group_code: Distributor pricing group (e.g. CAEG171)
        section: Pricebook section number
        page_number: Page number within the section
        discount_percent: Sheet-level discount, when the pricebook states one
        worksheet: Worksheet title when it differs from page_name
        distributor: Distributor credited with pricing (falls back to config)
    """

    sheet_id: Optional[str] = None
    page_name: str = Field(..., min_length=1, max_length=500)
    group_code: Optional[str] = Field(default=None, max_length=50)
    section: Optional[str] = Field(default=None, max_length=50)
    page_number: Optional[str] = Field(default=None, max_length=50)
    discount_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    worksheet: Optional[str] = None
    distributor: Optional[str] = None

    @field_validator('section', 'page_number', mode='before')
    @classmethod
    def coerce_to_text(cls, v):
        """Accept numeric section/page values from JSON."""
        if v is None:
            return v
        return str(v)

    @field_validator('discount_percent')
    @classmethod
    def quantize_discount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        """Quantize discount to 2 decimal places."""
        if v is None:
            return v
        return v.quantize(Decimal('0.01'))

    @model_validator(mode='after')
    def default_sheet_id(self) -> 'PricebookPage':
        """Use the page name as sheet id when none is given."""
        if not self.sheet_id:
            self.sheet_id = self.page_name
        return self

    @property
    def worksheet_title(self) -> str:
        """Worksheet to read for this page."""
        return self.worksheet or self.page_name


class SheetContext(BaseModel):
    """Context handed to layout extractors.

    Attributes:
        sheet_id: Sheet being extracted
        page_name: Page title (used for fitting type and section names)
        discount_percent: Sheet-level discount, if any
        manufacturer: Manufacturer detected in the sheet header block
    """

    sheet_id: str
    page_name: str
    discount_percent: Optional[Decimal] = None
    manufacturer: Optional[str] = None

    @classmethod
    def from_page(cls, page: PricebookPage, manufacturer: Optional[str] = None) -> 'SheetContext':
        """Build the extraction context for a batch page."""
        return cls(
            sheet_id=page.sheet_id,
            page_name=page.page_name,
            discount_percent=page.discount_percent,
            manufacturer=manufacturer,
        )


class PricebookMetadata(BaseModel):
    """Where a product was last seen in the pricebook."""

    section: Optional[str] = None
    page_number: Optional[str] = None
    page_name: Optional[str] = None
    group_code: Optional[str] = None

    @classmethod
    def from_page(cls, page: PricebookPage) -> 'PricebookMetadata':
        """Copy location fields from a batch page."""
        return cls(
            section=page.section,
            page_number=page.page_number,
            page_name=page.page_name,
            group_code=page.group_code,
        )

    def merged_with(self, newer: 'PricebookMetadata') -> 'PricebookMetadata':
        """Return metadata refreshed with the non-empty fields of ``newer``."""
        data = self.model_dump()
        for key, value in newer.model_dump().items():
            if value:
                data[key] = value
        return PricebookMetadata(**data)
