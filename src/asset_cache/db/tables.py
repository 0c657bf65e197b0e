import sqlalchemy as sa

metadata = sa.MetaData()

assets = sa.Table(
    "assets",
    metadata,
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

asset_logs = sa.Table(
    "asset_logs",
    metadata,
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

sa.Index("ix_asset_logs_asset_key_created_at", asset_logs.c.asset_key, asset_logs.c.created_at.desc())
