"""Unit tests for the SQLAlchemy catalog store.

Tests run the real store against in-memory SQLite (aiosqlite), so the ORM
mapping, unique constraints and aggregate writes are exercised without a
PostgreSQL server.
"""
import asyncio
from decimal import Decimal
import uuid

import pytest
import pytest_asyncio
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pricebook_ingest.db.base import Base
from pricebook_ingest.db.models import Company as CompanyRow
from pricebook_ingest.db.models import DistributorSupplierLink, ProductVariant, VariantSupplierPrice
from pricebook_ingest.db.operations import SqlAlchemyCatalogStore
from pricebook_ingest.errors import ReconciliationError
from pricebook_ingest.models.catalog import CatalogProduct, CompanyRole
from pricebook_ingest.models.pricebook import PricebookMetadata
from pricebook_ingest.models.variant_record import VariantRecord
from pricebook_ingest.services.reconciliation import CatalogReconciler


PRICEBOOK = PricebookMetadata(section="1", page_number="1.1", page_name="FIBREGLASS PIPE WITH ASJ", group_code="CAEG171")


def make_records(count: int, price: str = "10.00"):
    return [
        VariantRecord(
            property_bag={"pipeType": "copper", "pipeDiameter": f'{i + 1}"'},
            list_price=Decimal(price),
            unit_of_measure="FT",
            sku=f"ML-C-{i + 1}",
            extra_properties={"lfPerBox": 48.0},
        )
        for i in range(count)
    ]


@pytest_asyncio.fixture
async def session_maker():
    """In-memory SQLite database with the catalog schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        """Enforce foreign keys like PostgreSQL does."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def file_session_maker(tmp_path):
    """File-backed SQLite database, so each session gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}", echo=False)

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def store(session_maker):
    return SqlAlchemyCatalogStore(session_maker)


@pytest.fixture
def reconciler(store):
    return CatalogReconciler(store)


async def count_rows(session_maker, model) -> int:
    async with session_maker() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar_one()


class TestCompanies:
    """Tests for company and link persistence."""

    @pytest.mark.asyncio
    async def test_get_or_create_company_reuses_row(self, store):
        first = await store.get_or_create_company("JOHNS MANVILLE", CompanyRole.SUPPLIER)
        second = await store.get_or_create_company("JOHNS MANVILLE", CompanyRole.SUPPLIER)
        assert first.id == second.id

    @pytest.mark.asyncio
    async def test_same_name_different_role(self, store):
        supplier = await store.get_or_create_company("IMPRO", CompanyRole.SUPPLIER)
        distributor = await store.get_or_create_company("IMPRO", CompanyRole.DISTRIBUTOR)
        assert supplier.id != distributor.id

    @pytest.mark.asyncio
    async def test_link_is_created_once(self, store):
        distributor = await store.get_or_create_company("IMPRO", CompanyRole.DISTRIBUTOR)
        supplier = await store.get_or_create_company("ROXUL", CompanyRole.SUPPLIER)

        first = await store.ensure_distributor_link(distributor.id, supplier.id)
        second = await store.ensure_distributor_link(distributor.id, supplier.id)

        assert first.is_active and second.is_active
        assert first.added_at == second.added_at

    @pytest.mark.asyncio
    async def test_company_insert_after_stale_select(self, store, monkeypatch):
        """An insert that loses to another writer returns the existing row."""
        existing = await store.get_or_create_company("IMPRO", CompanyRole.DISTRIBUTOR)
        real_find = store._find_company
        calls = []

        async def stale_find(session, name, role):
            calls.append(name)
            if len(calls) == 1:
                return None
            return await real_find(session, name, role)

        monkeypatch.setattr(store, "_find_company", stale_find)
        company = await store.get_or_create_company("IMPRO", CompanyRole.DISTRIBUTOR)

        assert company.id == existing.id
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_link_insert_after_stale_select(self, store, monkeypatch):
        distributor = await store.get_or_create_company("IMPRO", CompanyRole.DISTRIBUTOR)
        supplier = await store.get_or_create_company("ROXUL", CompanyRole.SUPPLIER)
        existing = await store.ensure_distributor_link(distributor.id, supplier.id)
        real_find = store._find_link
        calls = []

        async def stale_find(session, distributor_id, supplier_id):
            calls.append(distributor_id)
            if len(calls) == 1:
                return None
            return await real_find(session, distributor_id, supplier_id)

        monkeypatch.setattr(store, "_find_link", stale_find)
        link = await store.ensure_distributor_link(distributor.id, supplier.id)

        assert link.added_at == existing.added_at
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_concurrent_resolve_companies(self, file_session_maker):
        reconciler = CatalogReconciler(SqlAlchemyCatalogStore(file_session_maker))

        results = await asyncio.gather(*[
            reconciler.resolve_companies("IMPRO", "JOHNS MANVILLE") for _ in range(4)
        ])

        assert len({distributor.id for distributor, _ in results}) == 1
        assert len({manufacturer.id for _, manufacturer in results}) == 1
        assert await count_rows(file_session_maker, CompanyRow) == 2
        assert await count_rows(file_session_maker, DistributorSupplierLink) == 1


class TestProducts:
    """Tests for product aggregate persistence."""

    @pytest.mark.asyncio
    async def test_round_trip_through_reconciler(self, reconciler, store):
        distributor, manufacturer = await reconciler.resolve_companies("IMPRO", "JOHNS MANVILLE")
        product = await reconciler.reconcile(
            "PIPE", manufacturer, distributor, make_records(3), PRICEBOOK, Decimal("40"),
        )

        loaded = await store.load_product("PIPE", manufacturer.id)
        assert loaded.id == product.id
        assert loaded.pricebook_metadata.group_code == "CAEG171"
        assert loaded.product_discount.discount_percent == Decimal("40.00")
        assert {v.identity_key for v in loaded.variants} == {v.identity_key for v in product.variants}
        for variant in loaded.variants:
            assert variant.extra_properties == {"lfPerBox": 48.0}
            entry = variant.entry_for(distributor.id)
            assert entry.list_price == Decimal("10.00")
            assert entry.net_price == Decimal("6.00")

        verified = await reconciler.verify(product.id, 3)
        assert verified.priced_variant_count == 3

    @pytest.mark.asyncio
    async def test_reimport_adds_no_rows(self, reconciler, session_maker):
        distributor, manufacturer = await reconciler.resolve_companies("IMPRO", "JOHNS MANVILLE")
        records = make_records(4)

        await reconciler.reconcile("PIPE", manufacturer, distributor, records, PRICEBOOK)
        await reconciler.reconcile("PIPE", manufacturer, distributor, records, PRICEBOOK)

        assert await count_rows(session_maker, ProductVariant) == 4
        assert await count_rows(session_maker, VariantSupplierPrice) == 4

    @pytest.mark.asyncio
    async def test_second_distributor_keeps_first_entries(self, reconciler, store, session_maker):
        distributor_a, manufacturer = await reconciler.resolve_companies("IMPRO", "JOHNS MANVILLE")
        distributor_b, _ = await reconciler.resolve_companies("BRIDGEVIEW", "JOHNS MANVILLE")

        await reconciler.reconcile("PIPE", manufacturer, distributor_a, make_records(10, "10.00"), PRICEBOOK)
        product = await reconciler.reconcile("PIPE", manufacturer, distributor_b, make_records(10, "12.00"), PRICEBOOK)

        loaded = await store.get_product(product.id)
        assert len(loaded.variants) == 10
        for variant in loaded.variants:
            assert len(variant.supplier_entries) == 2
            assert variant.entry_for(distributor_a.id).list_price == Decimal("10.00")
            assert variant.entry_for(distributor_b.id).list_price == Decimal("12.00")
        assert await count_rows(session_maker, VariantSupplierPrice) == 20

    @pytest.mark.asyncio
    async def test_missing_product(self, store):
        assert await store.get_product(uuid.uuid4()) is None
        assert await store.load_product("NOPE", None) is None

    @pytest.mark.asyncio
    async def test_duplicate_identity_is_constraint_violation(self, store):
        """A second product row with the same (name, manufacturer) is rejected."""
        distributor = await store.get_or_create_company("IMPRO", CompanyRole.DISTRIBUTOR)
        manufacturer = await store.get_or_create_company("ROXUL", CompanyRole.SUPPLIER)
        first, second = [
            CatalogProduct(
                name="MINERAL WOOL PIPE",
                manufacturer_id=manufacturer.id,
                primary_distributor_id=distributor.id,
                unit_of_measure="FT",
            )
            for _ in range(2)
        ]
        await store.save_product(first)

        with pytest.raises(ReconciliationError) as exc_info:
            await store.save_product(second)
        assert exc_info.value.kind == ReconciliationError.CONSTRAINT_VIOLATION
