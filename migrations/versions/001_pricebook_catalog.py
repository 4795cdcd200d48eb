"""Pricebook catalog schema

Revision ID: 001_pricebook_catalog
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_pricebook_catalog'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create companies table
    op.create_table(
        'companies',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.UniqueConstraint('name', 'role', name='uq_companies_name_role'),
        sa.CheckConstraint("role IN ('distributor', 'supplier')", name='check_company_role')
    )
    op.create_index('ix_companies_name', 'companies', ['name'])

    # Create distributor_supplier_links table
    op.create_table(
        'distributor_supplier_links',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('distributor_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('supplier_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('added_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['distributor_id'], ['companies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['supplier_id'], ['companies.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('distributor_id', 'supplier_id', name='uq_distributor_supplier_links_pair')
    )
    op.create_index('ix_distributor_supplier_links_distributor_id', 'distributor_supplier_links', ['distributor_id'])
    op.create_index('ix_distributor_supplier_links_supplier_id', 'distributor_supplier_links', ['supplier_id'])

    # Create catalog_products table
    op.create_table(
        'catalog_products',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(length=500), nullable=False),
        sa.Column('manufacturer_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('primary_distributor_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('unit_of_measure', sa.String(length=20), nullable=False),
        sa.Column('pricebook_section', sa.String(length=50), nullable=True),
        sa.Column('pricebook_page_number', sa.String(length=50), nullable=True),
        sa.Column('pricebook_page_name', sa.String(length=500), nullable=True),
        sa.Column('pricebook_group_code', sa.String(length=50), nullable=True),
        sa.Column('discount_percent', sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column('discount_effective_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['manufacturer_id'], ['companies.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['primary_distributor_id'], ['companies.id']),
        sa.UniqueConstraint('name', 'manufacturer_id', name='uq_catalog_products_name_manufacturer'),
        sa.CheckConstraint(
            'discount_percent IS NULL OR (discount_percent >= 0 AND discount_percent <= 100)',
            name='check_product_discount_range'
        )
    )
    op.create_index('ix_catalog_products_name', 'catalog_products', ['name'])
    op.create_index('ix_catalog_products_manufacturer_id', 'catalog_products', ['manufacturer_id'])
    op.create_index(
        'uq_catalog_products_name_no_manufacturer',
        'catalog_products',
        ['name'],
        unique=True,
        postgresql_where=sa.text('manufacturer_id IS NULL')
    )

    # Create catalog_variants table
    op.create_table(
        'catalog_variants',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('identity_key', sa.String(length=64), nullable=False),
        sa.Column('property_bag', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('extra_properties', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='{}'),
        sa.Column('display_name', sa.String(length=500), nullable=True),
        sa.Column('sku', sa.String(length=100), nullable=True),
        sa.Column('list_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('net_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('discount_percent', sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['catalog_products.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('product_id', 'identity_key', name='uq_catalog_variants_identity')
    )
    op.create_index('ix_catalog_variants_product_id', 'catalog_variants', ['product_id'])
    op.create_index('ix_catalog_variants_sku', 'catalog_variants', ['sku'])
    op.create_index('idx_catalog_variants_property_bag', 'catalog_variants', ['property_bag'], postgresql_using='gin')

    # Create variant_supplier_prices table
    op.create_table(
        'variant_supplier_prices',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('variant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('distributor_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('manufacturer_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('list_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('net_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('discount_percent', sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column('supplier_part_number', sa.String(length=100), nullable=True),
        sa.Column('is_preferred', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['variant_id'], ['catalog_variants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['distributor_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['manufacturer_id'], ['companies.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('variant_id', 'distributor_id', name='uq_variant_supplier_prices_distributor'),
        sa.CheckConstraint('list_price > 0', name='check_supplier_list_price_positive')
    )
    op.create_index('ix_variant_supplier_prices_variant_id', 'variant_supplier_prices', ['variant_id'])
    op.create_index('ix_variant_supplier_prices_distributor_id', 'variant_supplier_prices', ['distributor_id'])


def downgrade() -> None:
    op.drop_table('variant_supplier_prices')
    op.drop_table('catalog_variants')
    op.drop_index('uq_catalog_products_name_no_manufacturer', table_name='catalog_products')
    op.drop_table('catalog_products')
    op.drop_table('distributor_supplier_links')
    op.drop_table('companies')
