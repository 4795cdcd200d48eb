"""Pydantic model for variant records extracted from a sheet."""
from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Dict, Optional, Union
import hashlib
import json

PropertyValue = Union[str, int, float]


def identity_key(property_bag: Dict[str, PropertyValue]) -> str:
    """Stable hash of a property bag, independent of key order.

    Values are compared by their text, so ``2`` and ``"2"`` are the same
    identity. Sheets carry the same attribute as a number on one page and as
    text on another, and both must land on one variant.

    Args:
        property_bag: Variant identity attributes

    Returns:
        SHA-256 hex digest identifying the set of key/value pairs
    """
    canonical = json.dumps(
        sorted((str(k), str(v)) for k, v in property_bag.items()),
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class VariantRecord(BaseModel):
    """One priced variant read from a sheet, before merging into the catalog.

    Identity is the set of ``property_bag`` pairs. ``extra_properties``
    carry descriptive attributes (lf per box, sq ft per bundle) that never
    participate in identity.
    """

    property_bag: Dict[str, PropertyValue] = Field(
        ...,
        min_length=1,
        description="Identity attributes of the variant"
    )
    list_price: Decimal = Field(
        ...,
        gt=0,
        description="List price from the sheet"
    )
    net_price: Optional[Decimal] = Field(
        default=None,
        gt=0,
        description="Net price when the sheet states one"
    )
    discount_percent: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=100,
        description="Discount off list, percent"
    )
    unit_of_measure: str = Field(..., min_length=1, max_length=20)
    product_name: Optional[str] = Field(
        default=None,
        description="Owning product for multi-product layouts"
    )
    sku: Optional[str] = None
    display_name: Optional[str] = None
    supplier_part_number: Optional[str] = None
    extra_properties: Dict[str, PropertyValue] = Field(default_factory=dict)
    source_row: Optional[int] = Field(
        default=None,
        ge=0,
        description="Grid row the record was read from"
    )

    @field_validator('list_price', 'net_price')
    @classmethod
    def quantize_price(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        """Quantize prices to 2 decimal places."""
        if v is None:
            return v
        return v.quantize(Decimal('0.01'))

    @field_validator('discount_percent')
    @classmethod
    def quantize_discount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        """Quantize discounts to 2 decimal places."""
        if v is None:
            return v
        return v.quantize(Decimal('0.01'))

    @property
    def identity_key(self) -> str:
        """Hash of the property bag."""
        return identity_key(self.property_bag)
