"""Catalog domain models shared by the reconciler and the catalog stores.

Products own variants and variants own supplier price entries. Ids are
generated on creation so the same aggregate can be saved to any store.
"""
from pydantic import BaseModel, Field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional
import uuid

from pricebook_ingest.models.pricebook import PricebookMetadata
from pricebook_ingest.models.variant_record import PropertyValue, identity_key


class CompanyRole(str, Enum):
    """Role a company plays in the catalog."""
    DISTRIBUTOR = "distributor"
    SUPPLIER = "supplier"


class Company(BaseModel):
    """Distributor or manufacturer (supplier) resolved by name and role."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    name: str = Field(..., min_length=1, max_length=255)
    role: CompanyRole
    is_active: bool = True


class DistributorSupplierLink(BaseModel):
    """Edge recording that a distributor carries a manufacturer's products."""

    distributor_id: uuid.UUID
    supplier_id: uuid.UUID
    is_active: bool = True
    added_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ProductDiscount(BaseModel):
    """Product-level discount taken from the sheet."""

    discount_percent: Decimal
    effective_date: date


class PricingSnapshot(BaseModel):
    """Pricing most recently written to a variant."""

    list_price: Decimal
    net_price: Optional[Decimal] = None
    discount_percent: Optional[Decimal] = None


class SupplierPriceEntry(BaseModel):
    """One distributor's pricing for a variant.

    At most one entry per distributor exists within a variant.
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    distributor_id: uuid.UUID
    manufacturer_id: Optional[uuid.UUID] = None
    list_price: Decimal
    net_price: Optional[Decimal] = None
    discount_percent: Optional[Decimal] = None
    supplier_part_number: Optional[str] = None
    is_preferred: bool = False


class CatalogVariant(BaseModel):
    """A distinct property bag within a product."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    property_bag: Dict[str, PropertyValue]
    identity_key: str = ""
    display_name: Optional[str] = None
    sku: Optional[str] = None
    extra_properties: Dict[str, PropertyValue] = Field(default_factory=dict)
    current_pricing: Optional[PricingSnapshot] = None
    supplier_entries: List[SupplierPriceEntry] = Field(default_factory=list)

    def model_post_init(self, __context) -> None:
        if not self.identity_key:
            self.identity_key = identity_key(self.property_bag)

    def entry_for(self, distributor_id: uuid.UUID) -> Optional[SupplierPriceEntry]:
        """Return the supplier entry of ``distributor_id`` if present."""
        for entry in self.supplier_entries:
            if entry.distributor_id == distributor_id:
                return entry
        return None


class CatalogProduct(BaseModel):
    """Canonical product, unique per (name, manufacturer)."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    name: str = Field(..., min_length=1, max_length=500)
    manufacturer_id: Optional[uuid.UUID] = None
    primary_distributor_id: uuid.UUID
    unit_of_measure: str
    pricebook_metadata: PricebookMetadata = Field(default_factory=PricebookMetadata)
    product_discount: Optional[ProductDiscount] = None
    variants: List[CatalogVariant] = Field(default_factory=list)

    def variant_by_identity(self, key: str) -> Optional[CatalogVariant]:
        """Return the variant whose identity key is ``key``."""
        for variant in self.variants:
            if variant.identity_key == key:
                return variant
        return None

    @property
    def priced_variant_count(self) -> int:
        """Variants carrying a positive list price."""
        return sum(
            1 for v in self.variants
            if v.current_pricing is not None and v.current_pricing.list_price > 0
        )
