"""Add product sync run history.

Revision ID: 8b3e6f90a4c2
Revises: 5a1f0c2d7e31
Create Date: 2025-10-20 09:30:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "8b3e6f90a4c2"
down_revision = "5a1f0c2d7e31"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "product_sync_runs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("recipes_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("products_updated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("products_skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cache_hits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "errors",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("triggered_by", sa.String(length=32), nullable=False, server_default="api"),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index(
        "ix_product_sync_runs_created_at",
        "product_sync_runs",
        ["created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_product_sync_runs_created_at", table_name="product_sync_runs")
    op.drop_table("product_sync_runs")
