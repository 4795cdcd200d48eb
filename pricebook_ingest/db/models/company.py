"""Company and distributor-supplier link ORM models."""
from sqlalchemy import String, Boolean, ForeignKey, CheckConstraint, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from pricebook_ingest.db.base import Base, UUIDMixin, TimestampMixin
from datetime import datetime
import uuid


class Company(Base, UUIDMixin, TimestampMixin):
    """Distributor or manufacturer (supplier role) company.

    Attributes:
        name: Company name as written in the pricebook
        role: 'distributor' or 'supplier'
        is_active: Inactive companies are reactivated on next sighting
    """

    __tablename__ = "companies"
    __table_args__ = (
        UniqueConstraint("name", "role", name="uq_companies_name_role"),
        CheckConstraint(
            "role IN ('distributor', 'supplier')",
            name="check_company_role"
        ),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name='{self.name}', role='{self.role}')>"


class DistributorSupplierLink(Base, UUIDMixin, TimestampMixin):
    """A distributor carrying a manufacturer's products."""

    __tablename__ = "distributor_supplier_links"
    __table_args__ = (
        UniqueConstraint(
            "distributor_id", "supplier_id",
            name="uq_distributor_supplier_links_pair"
        ),
    )

    distributor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    supplier_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    added_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<DistributorSupplierLink(distributor_id={self.distributor_id}, "
            f"supplier_id={self.supplier_id}, is_active={self.is_active})>"
        )
