"""Catalog product, variant and supplier price ORM models."""
from sqlalchemy import (
    String,
    ForeignKey,
    Numeric,
    Boolean,
    Date,
    JSON,
    CheckConstraint,
    UniqueConstraint,
    Index,
    text,
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Mapped, mapped_column, relationship
from pricebook_ingest.db.base import Base, UUIDMixin, TimestampMixin
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional
import uuid

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(postgresql.JSONB(), "postgresql")


class Product(Base, UUIDMixin, TimestampMixin):
    """Canonical catalog product, unique per (name, manufacturer).

    Products without a manufacturer form their own identity bucket, enforced
    by a partial unique index on name.

    Relationships:
        variants: Variants owned by the product
    """

    __tablename__ = "catalog_products"
    __table_args__ = (
        UniqueConstraint("name", "manufacturer_id", name="uq_catalog_products_name_manufacturer"),
        Index(
            "uq_catalog_products_name_no_manufacturer",
            "name",
            unique=True,
            postgresql_where=text("manufacturer_id IS NULL"),
            sqlite_where=text("manufacturer_id IS NULL"),
        ),
        CheckConstraint(
            "discount_percent IS NULL OR (discount_percent >= 0 AND discount_percent <= 100)",
            name="check_product_discount_range"
        ),
    )

    name: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    manufacturer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    primary_distributor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("companies.id"),
        nullable=False
    )
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False)

    # Pricebook location
    pricebook_section: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    pricebook_page_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    pricebook_page_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    pricebook_group_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Product-level discount
    discount_percent: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    discount_effective_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    variants: Mapped[List["ProductVariant"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariant.created_at",
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name='{self.name}', manufacturer_id={self.manufacturer_id})>"


class ProductVariant(Base, UUIDMixin, TimestampMixin):
    """Distinct property bag within a product."""

    __tablename__ = "catalog_variants"
    __table_args__ = (
        UniqueConstraint("product_id", "identity_key", name="uq_catalog_variants_identity"),
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("catalog_products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    identity_key: Mapped[str] = mapped_column(String(64), nullable=False)
    property_bag: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False)
    extra_properties: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    display_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    # Current pricing (last importing distributor)
    list_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    net_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    discount_percent: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)

    product: Mapped["Product"] = relationship(back_populates="variants")
    supplier_prices: Mapped[List["VariantSupplierPrice"]] = relationship(
        back_populates="variant",
        cascade="all, delete-orphan",
        order_by="VariantSupplierPrice.created_at",
    )

    def __repr__(self) -> str:
        return f"<ProductVariant(id={self.id}, sku='{self.sku}', product_id={self.product_id})>"


class VariantSupplierPrice(Base, UUIDMixin, TimestampMixin):
    """One distributor's pricing for a variant."""

    __tablename__ = "variant_supplier_prices"
    __table_args__ = (
        UniqueConstraint("variant_id", "distributor_id", name="uq_variant_supplier_prices_distributor"),
        CheckConstraint("list_price > 0", name="check_supplier_list_price_positive"),
    )

    variant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("catalog_variants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    distributor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("companies.id"),
        nullable=False,
        index=True
    )
    manufacturer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True
    )
    list_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    net_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    discount_percent: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    supplier_part_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_preferred: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    variant: Mapped["ProductVariant"] = relationship(back_populates="supplier_prices")

    def __repr__(self) -> str:
        return (
            f"<VariantSupplierPrice(variant_id={self.variant_id}, "
            f"distributor_id={self.distributor_id}, list_price={self.list_price})>"
        )
