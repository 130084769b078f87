"""Create order import tables.

Revision ID: 20260101_000001
Revises: 
Create Date: 2026-01-01 00:00:01.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20260101_000001"
down_revision = None
branch_labels = None
depends_on = None

JSON_COLUMN = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("companies"):
        op.create_table(
            "companies",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("is_branch", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("parent_company_id", sa.String(), sa.ForeignKey("companies.id"), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_companies_name", "companies", ["name"])

    if not inspector.has_table("products"):
        op.create_table(
            "products",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("price", sa.Numeric(12, 2), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_products_name", "products", ["name"])

    if not inspector.has_table("orders"):
        op.create_table(
            "orders",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("company_id", sa.String(), sa.ForeignKey("companies.id"), nullable=False),
            sa.Column("branch_id", sa.String(), sa.ForeignKey("companies.id"), nullable=True),
            sa.Column("company_name", sa.Text(), nullable=False),
            sa.Column("branch_name", sa.Text(), nullable=True),
            sa.Column("area", sa.Text(), nullable=True),
            sa.Column("order_date", sa.DateTime(timezone=True), nullable=False),
            sa.Column("status", sa.String(), nullable=False),
            sa.Column("payment_status", sa.String(), nullable=False),
            sa.Column("cancellation_reason", sa.Text(), nullable=True),
            sa.Column("status_history", JSON_COLUMN, nullable=True),
            sa.Column("items", JSON_COLUMN, nullable=False),
            sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
            sa.Column("total_tax", sa.Numeric(12, 2), nullable=False),
            sa.Column("grand_total", sa.Numeric(12, 2), nullable=False),
            sa.Column("total", sa.Numeric(12, 2), nullable=False),
            sa.Column("import_hash", sa.String(64), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_orders_import_hash", "orders", ["import_hash"])
        op.create_index("ix_orders_company_date", "orders", ["company_id", "order_date"])

    if not inspector.has_table("price_audit_log"):
        op.create_table(
            "price_audit_log",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("product_id", sa.String(), nullable=False),
            sa.Column("product_name", sa.Text(), nullable=True),
            sa.Column("price", sa.Numeric(12, 2), nullable=False),
            sa.Column("source", sa.String(), nullable=False),
            sa.Column("order_hash", sa.String(64), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_price_audit_log_product", "price_audit_log", ["product_id"])


def downgrade() -> None:
    op.drop_table("price_audit_log")
    op.drop_table("orders")
    op.drop_table("products")
    op.drop_table("companies")
