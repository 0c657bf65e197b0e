"""Initial schema: assets and asset_logs tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "assets",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("owner_category", sa.String(100), nullable=False),
        sa.Column("owner_key", sa.String(255), nullable=False),
        sa.Column("asset_category", sa.String(100), nullable=False),
        sa.Column("asset_key", sa.Text, nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("owner_key", "asset_key", name="uq_assets_owner_key_asset_key"),
    )
    op.create_table(
        "asset_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("asset_id", sa.String(36), sa.ForeignKey("assets.id"), nullable=False),
        sa.Column("owner_category", sa.String(100), nullable=False),
        sa.Column("owner_key", sa.String(255), nullable=False),
        sa.Column("asset_category", sa.String(100), nullable=False),
        sa.Column("asset_key", sa.Text, nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_asset_logs_asset_key_created_at",
        "asset_logs",
        ["asset_key", sa.text("created_at DESC")],
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_asset_logs_asset_key_created_at", table_name="asset_logs")
    op.drop_table("asset_logs")
    op.drop_table("assets")
