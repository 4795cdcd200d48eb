"""SQLAlchemy-backed catalog store.

Each store call runs in its own session and transaction. ``save_product``
writes the whole aggregate in one transaction and only assigns columns whose
values changed, so re-importing an unchanged sheet issues no updates.
"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlalchemy import select
from typing import Any, Optional
import uuid
import structlog

from pricebook_ingest.db.models.company import Company as CompanyRow
from pricebook_ingest.db.models.company import DistributorSupplierLink as LinkRow
from pricebook_ingest.db.models.product import Product, ProductVariant, VariantSupplierPrice
from pricebook_ingest.errors import ReconciliationError
from pricebook_ingest.models.catalog import (
    CatalogProduct,
    CatalogVariant,
    Company,
    CompanyRole,
    DistributorSupplierLink,
    PricingSnapshot,
    ProductDiscount,
    SupplierPriceEntry,
)
from pricebook_ingest.models.pricebook import PricebookMetadata
from pricebook_ingest.services.reconciliation.store import CatalogStore

logger = structlog.get_logger(__name__)


def _set_if_changed(row: Any, attr: str, value: Any) -> bool:
    if getattr(row, attr) != value:
        setattr(row, attr, value)
        return True
    return False


def _wrap_error(operation: str, error: Exception, **context: Any) -> ReconciliationError:
    logger.error(
        f"{operation}_failed",
        error=str(error),
        error_type=type(error).__name__,
        **context,
    )
    if isinstance(error, IntegrityError):
        return ReconciliationError(
            f"Catalog constraint violated during {operation}: {error}",
            kind=ReconciliationError.CONSTRAINT_VIOLATION,
        )
    return ReconciliationError(
        f"Catalog store unavailable during {operation}: {error}",
        kind=ReconciliationError.STORE_UNAVAILABLE,
    )


def _company_to_domain(row: CompanyRow) -> Company:
    return Company(id=row.id, name=row.name, role=CompanyRole(row.role), is_active=row.is_active)


def _link_to_domain(row: LinkRow) -> DistributorSupplierLink:
    return DistributorSupplierLink(
        distributor_id=row.distributor_id,
        supplier_id=row.supplier_id,
        is_active=row.is_active,
        added_at=row.added_at,
    )


def _product_to_domain(row: Product) -> CatalogProduct:
    discount = None
    if row.discount_percent is not None and row.discount_effective_date is not None:
        discount = ProductDiscount(
            discount_percent=row.discount_percent,
            effective_date=row.discount_effective_date,
        )
    return CatalogProduct(
        id=row.id,
        name=row.name,
        manufacturer_id=row.manufacturer_id,
        primary_distributor_id=row.primary_distributor_id,
        unit_of_measure=row.unit_of_measure,
        pricebook_metadata=PricebookMetadata(
            section=row.pricebook_section,
            page_number=row.pricebook_page_number,
            page_name=row.pricebook_page_name,
            group_code=row.pricebook_group_code,
        ),
        product_discount=discount,
        variants=[_variant_to_domain(v) for v in row.variants],
    )


def _variant_to_domain(row: ProductVariant) -> CatalogVariant:
    pricing = None
    if row.list_price is not None:
        pricing = PricingSnapshot(
            list_price=row.list_price,
            net_price=row.net_price,
            discount_percent=row.discount_percent,
        )
    return CatalogVariant(
        id=row.id,
        property_bag=dict(row.property_bag),
        identity_key=row.identity_key,
        display_name=row.display_name,
        sku=row.sku,
        extra_properties=dict(row.extra_properties or {}),
        current_pricing=pricing,
        supplier_entries=[
            SupplierPriceEntry(
                id=p.id,
                distributor_id=p.distributor_id,
                manufacturer_id=p.manufacturer_id,
                list_price=p.list_price,
                net_price=p.net_price,
                discount_percent=p.discount_percent,
                supplier_part_number=p.supplier_part_number,
                is_preferred=p.is_preferred,
            )
            for p in row.supplier_prices
        ],
    )


def _product_query():
    return select(Product).options(
        selectinload(Product.variants).selectinload(ProductVariant.supplier_prices)
    )


class SqlAlchemyCatalogStore(CatalogStore):
    """Catalog store on the async SQLAlchemy engine.

    Unique constraints on (name, manufacturer), (product, identity_key) and
    (variant, distributor) back the reconciler's in-process locks. Company
    and link inserts that lose a race to another process re-select the
    winner's row instead of failing.
    """

    def __init__(self, session_maker: Optional[async_sessionmaker] = None):
        if session_maker is None:
            from pricebook_ingest.db.base import async_session_maker
            session_maker = async_session_maker
        self.session_maker = session_maker

    async def _find_company(self, session: AsyncSession, name: str, role: CompanyRole) -> Optional[CompanyRow]:
        result = await session.execute(
            select(CompanyRow)
            .where(CompanyRow.name == name)
            .where(CompanyRow.role == role.value)
        )
        return result.scalar_one_or_none()

    async def _find_link(
        self,
        session: AsyncSession,
        distributor_id: uuid.UUID,
        supplier_id: uuid.UUID,
    ) -> Optional[LinkRow]:
        result = await session.execute(
            select(LinkRow)
            .where(LinkRow.distributor_id == distributor_id)
            .where(LinkRow.supplier_id == supplier_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create_company(self, name: str, role: CompanyRole) -> Company:
        try:
            return await self._get_or_create_company(name, role)
        except IntegrityError as e:
            # Another writer inserted the same company between our select and insert
            logger.info("company_insert_lost_race", name=name, role=role.value)
            try:
                async with self.session_maker() as session:
                    row = await self._find_company(session, name, role)
            except SQLAlchemyError as retry_error:
                raise _wrap_error("get_or_create_company", retry_error, name=name, role=role.value) from retry_error
            if row is None:
                raise _wrap_error("get_or_create_company", e, name=name, role=role.value) from e
            return _company_to_domain(row)
        except SQLAlchemyError as e:
            raise _wrap_error("get_or_create_company", e, name=name, role=role.value) from e

    async def _get_or_create_company(self, name: str, role: CompanyRole) -> Company:
        async with self.session_maker() as session:
            async with session.begin():
                row = await self._find_company(session, name, role)
                if row is not None:
                    if not row.is_active:
                        row.is_active = True
                        logger.info("company_reactivated", company_id=str(row.id), name=name)
                    logger.debug("company_found", company_id=str(row.id), name=name, role=role.value)
                    return _company_to_domain(row)

                row = CompanyRow(id=uuid.uuid4(), name=name, role=role.value, is_active=True)
                session.add(row)
                await session.flush()
                logger.info("company_created", company_id=str(row.id), name=name, role=role.value)
                return _company_to_domain(row)

    async def ensure_distributor_link(
        self,
        distributor_id: uuid.UUID,
        supplier_id: uuid.UUID,
    ) -> DistributorSupplierLink:
        context = {"distributor_id": str(distributor_id), "supplier_id": str(supplier_id)}
        try:
            return await self._ensure_distributor_link(distributor_id, supplier_id)
        except IntegrityError as e:
            # Another writer linked the pair between our select and insert
            logger.info("distributor_link_insert_lost_race", **context)
            try:
                async with self.session_maker() as session:
                    row = await self._find_link(session, distributor_id, supplier_id)
            except SQLAlchemyError as retry_error:
                raise _wrap_error("ensure_distributor_link", retry_error, **context) from retry_error
            if row is None:
                raise _wrap_error("ensure_distributor_link", e, **context) from e
            return _link_to_domain(row)
        except SQLAlchemyError as e:
            raise _wrap_error("ensure_distributor_link", e, **context) from e

    async def _ensure_distributor_link(
        self,
        distributor_id: uuid.UUID,
        supplier_id: uuid.UUID,
    ) -> DistributorSupplierLink:
        async with self.session_maker() as session:
            async with session.begin():
                row = await self._find_link(session, distributor_id, supplier_id)
                if row is None:
                    row = LinkRow(
                        id=uuid.uuid4(),
                        distributor_id=distributor_id,
                        supplier_id=supplier_id,
                        is_active=True,
                    )
                    session.add(row)
                    await session.flush()
                    await session.refresh(row)
                    logger.info(
                        "distributor_link_created",
                        distributor_id=str(distributor_id),
                        supplier_id=str(supplier_id),
                    )
                elif not row.is_active:
                    row.is_active = True
                    logger.info(
                        "distributor_link_reactivated",
                        distributor_id=str(distributor_id),
                        supplier_id=str(supplier_id),
                    )
                return _link_to_domain(row)

    async def load_product(
        self,
        name: str,
        manufacturer_id: Optional[uuid.UUID],
    ) -> Optional[CatalogProduct]:
        query = _product_query().where(Product.name == name)
        if manufacturer_id is None:
            query = query.where(Product.manufacturer_id.is_(None))
        else:
            query = query.where(Product.manufacturer_id == manufacturer_id)
        try:
            async with self.session_maker() as session:
                result = await session.execute(query)
                row = result.scalar_one_or_none()
                return _product_to_domain(row) if row is not None else None
        except SQLAlchemyError as e:
            raise _wrap_error("load_product", e, product_name=name) from e

    async def get_product(self, product_id: uuid.UUID) -> Optional[CatalogProduct]:
        try:
            async with self.session_maker() as session:
                result = await session.execute(_product_query().where(Product.id == product_id))
                row = result.scalar_one_or_none()
                return _product_to_domain(row) if row is not None else None
        except SQLAlchemyError as e:
            raise _wrap_error("get_product", e, product_id=str(product_id)) from e

    async def save_product(self, product: CatalogProduct) -> CatalogProduct:
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    result = await session.execute(_product_query().where(Product.id == product.id))
                    row = result.scalar_one_or_none()
                    if row is None:
                        row = Product(id=product.id, variants=[])
                        session.add(row)
                        logger.debug("product_row_created", product_id=str(product.id))
                    changed = self._apply_product(row, product)
                    await session.flush()
                logger.debug("product_saved", product_id=str(product.id), changed_fields=changed)
            return product
        except SQLAlchemyError as e:
            raise _wrap_error("save_product", e, product_id=str(product.id), product_name=product.name) from e

    def _apply_product(self, row: Product, product: CatalogProduct) -> int:
        """Copy the aggregate onto its rows, returning the number of changed fields."""
        changed = 0
        metadata = product.pricebook_metadata
        discount = product.product_discount
        fields = {
            "name": product.name,
            "manufacturer_id": product.manufacturer_id,
            "primary_distributor_id": product.primary_distributor_id,
            "unit_of_measure": product.unit_of_measure,
            "pricebook_section": metadata.section,
            "pricebook_page_number": metadata.page_number,
            "pricebook_page_name": metadata.page_name,
            "pricebook_group_code": metadata.group_code,
            "discount_percent": discount.discount_percent if discount else None,
            "discount_effective_date": discount.effective_date if discount else None,
        }
        for attr, value in fields.items():
            changed += _set_if_changed(row, attr, value)

        rows_by_key = {v.identity_key: v for v in row.variants}
        for variant in product.variants:
            variant_row = rows_by_key.get(variant.identity_key)
            if variant_row is None:
                variant_row = ProductVariant(
                    id=variant.id,
                    identity_key=variant.identity_key,
                    property_bag=dict(variant.property_bag),
                    extra_properties={},
                    supplier_prices=[],
                )
                row.variants.append(variant_row)
                rows_by_key[variant.identity_key] = variant_row
                changed += 1
            changed += self._apply_variant(variant_row, variant)
        return changed

    def _apply_variant(self, row: ProductVariant, variant: CatalogVariant) -> int:
        changed = 0
        pricing = variant.current_pricing
        fields = {
            "display_name": variant.display_name,
            "sku": variant.sku,
            "extra_properties": dict(variant.extra_properties),
            "list_price": pricing.list_price if pricing else None,
            "net_price": pricing.net_price if pricing else None,
            "discount_percent": pricing.discount_percent if pricing else None,
        }
        for attr, value in fields.items():
            changed += _set_if_changed(row, attr, value)

        prices_by_distributor = {p.distributor_id: p for p in row.supplier_prices}
        for entry in variant.supplier_entries:
            price_row = prices_by_distributor.get(entry.distributor_id)
            if price_row is None:
                price_row = VariantSupplierPrice(id=entry.id, distributor_id=entry.distributor_id)
                row.supplier_prices.append(price_row)
                prices_by_distributor[entry.distributor_id] = price_row
                changed += 1
            for attr in (
                "manufacturer_id", "list_price", "net_price", "discount_percent",
                "supplier_part_number", "is_preferred",
            ):
                changed += _set_if_changed(price_row, attr, getattr(entry, attr))
        return changed
