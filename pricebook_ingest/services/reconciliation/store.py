"""Catalog store interface and the in-memory implementation.

Stores hand out detached copies of product aggregates. The reconciler
mutates a copy and writes it back with ``save_product``, which persists the
whole aggregate (product, variants, supplier entries) atomically.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple
import uuid
import structlog

from pricebook_ingest.models.catalog import (
    CatalogProduct,
    Company,
    CompanyRole,
    DistributorSupplierLink,
)

logger = structlog.get_logger(__name__)


class CatalogStore(ABC):
    """Persistence boundary of the catalog."""

    @abstractmethod
    async def get_or_create_company(self, name: str, role: CompanyRole) -> Company:
        """Find a company by (name, role) or create it active."""
        pass

    @abstractmethod
    async def ensure_distributor_link(
        self,
        distributor_id: uuid.UUID,
        supplier_id: uuid.UUID,
    ) -> DistributorSupplierLink:
        """Record the distributor-supplier edge, reactivating it if inactive."""
        pass

    @abstractmethod
    async def load_product(
        self,
        name: str,
        manufacturer_id: Optional[uuid.UUID],
    ) -> Optional[CatalogProduct]:
        """Return the product identified by (name, manufacturer), if any."""
        pass

    @abstractmethod
    async def save_product(self, product: CatalogProduct) -> CatalogProduct:
        """Insert or update a product aggregate in one transaction."""
        pass

    @abstractmethod
    async def get_product(self, product_id: uuid.UUID) -> Optional[CatalogProduct]:
        """Read a product back by id."""
        pass

    async def close(self) -> None:
        """Release resources held by the store."""
        return None


class InMemoryCatalogStore(CatalogStore):
    """Dictionary-backed store for tests and dry runs.

    Returned products are deep copies, so callers never mutate stored state
    without going through ``save_product``.
    """

    def __init__(self):
        self.companies: Dict[Tuple[str, CompanyRole], Company] = {}
        self.links: Dict[Tuple[uuid.UUID, uuid.UUID], DistributorSupplierLink] = {}
        self.products: Dict[uuid.UUID, CatalogProduct] = {}
        self.save_count = 0

    async def get_or_create_company(self, name: str, role: CompanyRole) -> Company:
        key = (name, role)
        company = self.companies.get(key)
        if company is None:
            company = Company(name=name, role=role)
            self.companies[key] = company
            logger.info("company_created", company_id=str(company.id), name=name, role=role.value)
        elif not company.is_active:
            company.is_active = True
        return company.model_copy()

    async def ensure_distributor_link(
        self,
        distributor_id: uuid.UUID,
        supplier_id: uuid.UUID,
    ) -> DistributorSupplierLink:
        key = (distributor_id, supplier_id)
        link = self.links.get(key)
        if link is None:
            link = DistributorSupplierLink(distributor_id=distributor_id, supplier_id=supplier_id)
            self.links[key] = link
        elif not link.is_active:
            link.is_active = True
            logger.info(
                "distributor_link_reactivated",
                distributor_id=str(distributor_id),
                supplier_id=str(supplier_id),
            )
        return link.model_copy()

    async def load_product(
        self,
        name: str,
        manufacturer_id: Optional[uuid.UUID],
    ) -> Optional[CatalogProduct]:
        for product in self.products.values():
            if product.name == name and product.manufacturer_id == manufacturer_id:
                return product.model_copy(deep=True)
        return None

    async def save_product(self, product: CatalogProduct) -> CatalogProduct:
        self.products[product.id] = product.model_copy(deep=True)
        self.save_count += 1
        return product

    async def get_product(self, product_id: uuid.UUID) -> Optional[CatalogProduct]:
        product = self.products.get(product_id)
        return product.model_copy(deep=True) if product is not None else None

    def all_products(self) -> List[CatalogProduct]:
        """Snapshot of every stored product."""
        return [p.model_copy(deep=True) for p in self.products.values()]
