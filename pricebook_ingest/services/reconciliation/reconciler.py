"""Catalog reconciler: merge extracted variant records into the catalog.

Resolution order per product:
    1. Product by (name, manufacturer); created on first sighting
    2. Variant by property-bag identity within the product
    3. Supplier entry by distributor within the variant, updated in place
    4. Sheet-level discount propagated to net prices and the product

A distributor's import only ever touches its own supplier entries, so
pricebooks from several distributors can be imported in any order.
"""
import asyncio
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import AsyncIterator, Dict, Hashable, List, Optional, Tuple
import uuid
import structlog

from pricebook_ingest.errors import DataIngestionError, ReconciliationError
from pricebook_ingest.models.catalog import (
    CatalogProduct,
    CatalogVariant,
    Company,
    CompanyRole,
    PricingSnapshot,
    ProductDiscount,
    SupplierPriceEntry,
)
from pricebook_ingest.models.pricebook import PricebookMetadata
from pricebook_ingest.models.variant_record import VariantRecord
from pricebook_ingest.services.pricing import CENTS, resolve_pricing
from pricebook_ingest.services.reconciliation.store import CatalogStore

logger = structlog.get_logger(__name__)


def merge_variant_records(
    product: CatalogProduct,
    records: List[VariantRecord],
    distributor_id: uuid.UUID,
    manufacturer_id: Optional[uuid.UUID],
    sheet_discount: Optional[Decimal] = None,
) -> Dict[str, int]:
    """Merge records into ``product`` in place.

    Args:
        product: Product aggregate to mutate
        records: Records of this product from one sheet
        distributor_id: Distributor whose pricing the records carry
        manufacturer_id: Manufacturer stamped on new supplier entries
        sheet_discount: Sheet-level discount percent, if any

    Returns:
        Counts of variants created and updated and supplier entries appended
    """
    stats = {"variants_created": 0, "variants_updated": 0, "entries_added": 0}

    for record in records:
        net_price, discount = resolve_pricing(record, sheet_discount)
        pricing = PricingSnapshot(
            list_price=record.list_price,
            net_price=net_price,
            discount_percent=discount,
        )

        variant = product.variant_by_identity(record.identity_key)
        if variant is None:
            variant = CatalogVariant(
                property_bag=dict(record.property_bag),
                identity_key=record.identity_key,
                display_name=record.display_name,
                sku=record.sku,
                extra_properties=dict(record.extra_properties),
                current_pricing=pricing,
                supplier_entries=[SupplierPriceEntry(
                    distributor_id=distributor_id,
                    manufacturer_id=manufacturer_id,
                    list_price=record.list_price,
                    net_price=net_price,
                    discount_percent=discount,
                    supplier_part_number=record.supplier_part_number,
                    is_preferred=True,
                )],
            )
            product.variants.append(variant)
            stats["variants_created"] += 1
            continue

        entry = variant.entry_for(distributor_id)
        if entry is None:
            variant.supplier_entries.append(SupplierPriceEntry(
                distributor_id=distributor_id,
                manufacturer_id=manufacturer_id,
                list_price=record.list_price,
                net_price=net_price,
                discount_percent=discount,
                supplier_part_number=record.supplier_part_number,
                is_preferred=not any(e.is_preferred for e in variant.supplier_entries),
            ))
            stats["entries_added"] += 1
        else:
            entry.list_price = record.list_price
            entry.net_price = net_price
            entry.discount_percent = discount
            if manufacturer_id is not None:
                entry.manufacturer_id = manufacturer_id
            if record.supplier_part_number:
                entry.supplier_part_number = record.supplier_part_number

        if record.display_name:
            variant.display_name = record.display_name
        if record.sku:
            variant.sku = record.sku
        variant.extra_properties.update(record.extra_properties)
        variant.current_pricing = pricing
        stats["variants_updated"] += 1

    return stats


class KeyedLocks:
    """Per-key asyncio locks that are dropped once no task holds or awaits them."""

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
            self._users[key] = 0
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._locks[key]
                del self._users[key]


class CatalogReconciler:
    """Find-or-create companies, products and variants and merge distributor pricing.

    Find-or-create of the same company, distributor link or
    (name, manufacturer) product is serialized with a per-key asyncio lock,
    so concurrent sheets cannot race each other into duplicate inserts.
    """

    def __init__(self, store: CatalogStore):
        self.store = store
        self._locks = KeyedLocks()

    async def _company(self, name: str, role: CompanyRole) -> Company:
        async with self._locks.hold(("company", name, role)):
            return await self.store.get_or_create_company(name, role)

    async def resolve_companies(
        self,
        distributor_name: str,
        manufacturer_name: Optional[str] = None,
    ) -> Tuple[Company, Optional[Company]]:
        """Resolve distributor and manufacturer and link them.

        Returns:
            Tuple of (distributor, manufacturer or None)

        Raises:
            ReconciliationError: If the store cannot resolve the companies
        """
        try:
            distributor = await self._company(distributor_name.strip(), CompanyRole.DISTRIBUTOR)
            manufacturer = None
            if manufacturer_name and manufacturer_name.strip():
                manufacturer = await self._company(manufacturer_name.strip(), CompanyRole.SUPPLIER)
                async with self._locks.hold(("link", distributor.id, manufacturer.id)):
                    await self.store.ensure_distributor_link(distributor.id, manufacturer.id)
        except DataIngestionError:
            raise
        except Exception as e:
            logger.error(
                "resolve_companies_failed",
                distributor=distributor_name,
                manufacturer=manufacturer_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ReconciliationError(f"Failed to resolve companies: {e}") from e

        logger.debug(
            "companies_resolved",
            distributor_id=str(distributor.id),
            manufacturer_id=str(manufacturer.id) if manufacturer else None,
        )
        return distributor, manufacturer

    async def reconcile(
        self,
        product_name: str,
        manufacturer: Optional[Company],
        distributor: Company,
        records: List[VariantRecord],
        pricebook: PricebookMetadata,
        discount_percent: Optional[Decimal] = None,
    ) -> CatalogProduct:
        """Merge one product's records into the catalog.

        Args:
            product_name: Product name (page name or in-sheet product name)
            manufacturer: Manufacturer company, None when the sheet names none
            distributor: Distributor credited with the pricing
            records: Variant records of this product
            pricebook: Pricebook location of the sheet
            discount_percent: Sheet-level discount percent

        Returns:
            The saved product aggregate

        Raises:
            ReconciliationError: If records are empty or persistence fails
        """
        if not records:
            raise ReconciliationError(
                f"No records to reconcile for product {product_name}",
                kind=ReconciliationError.EMPTY_BATCH,
            )

        manufacturer_id = manufacturer.id if manufacturer else None
        log = logger.bind(
            product_name=product_name,
            manufacturer_id=str(manufacturer_id) if manufacturer_id else None,
            distributor_id=str(distributor.id),
        )

        async with self._locks.hold(("product", product_name, manufacturer_id)):
            try:
                product = await self.store.load_product(product_name, manufacturer_id)
                created = product is None
                if product is None:
                    product = CatalogProduct(
                        name=product_name,
                        manufacturer_id=manufacturer_id,
                        primary_distributor_id=distributor.id,
                        unit_of_measure=records[0].unit_of_measure,
                        pricebook_metadata=pricebook,
                    )
                else:
                    product.pricebook_metadata = product.pricebook_metadata.merged_with(pricebook)
                    # Advisory only: last importing distributor wins
                    product.primary_distributor_id = distributor.id
                    product.unit_of_measure = records[0].unit_of_measure

                stats = merge_variant_records(
                    product, records, distributor.id, manufacturer_id, discount_percent,
                )

                if discount_percent is not None:
                    discount = discount_percent.quantize(CENTS)
                    current = product.product_discount
                    if current is None or current.discount_percent != discount:
                        product.product_discount = ProductDiscount(
                            discount_percent=discount,
                            effective_date=date.today(),
                        )

                saved = await self.store.save_product(product)
            except DataIngestionError:
                raise
            except Exception as e:
                log.error(
                    "reconcile_product_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise ReconciliationError(f"Failed to reconcile product {product_name}: {e}") from e

        log.info(
            "product_reconciled",
            product_id=str(saved.id),
            created=created,
            variants=len(saved.variants),
            **stats,
        )
        return saved

    async def verify(self, product_id: uuid.UUID, expected_variants: int) -> CatalogProduct:
        """Read a product back and check its variants.

        Args:
            product_id: Product to read back
            expected_variants: Minimum number of variants the import produced

        Returns:
            The product as stored

        Raises:
            ReconciliationError: (VerificationFailed) when the product is
                missing, has fewer variants than expected, or has no priced variant
        """
        product = await self.store.get_product(product_id)
        if product is None:
            raise ReconciliationError(
                f"Product {product_id} not found after import",
                kind=ReconciliationError.VERIFICATION_FAILED,
            )
        if len(product.variants) < expected_variants:
            raise ReconciliationError(
                f"Variant count mismatch for {product.name}: "
                f"expected at least {expected_variants}, got {len(product.variants)}",
                kind=ReconciliationError.VERIFICATION_FAILED,
            )
        if product.priced_variant_count == 0:
            raise ReconciliationError(
                f"No variants of {product.name} have pricing data",
                kind=ReconciliationError.VERIFICATION_FAILED,
            )
        return product
