from asset_cache.db.helpers import compute_content_hash
from asset_cache.db.memory import InMemoryAssetStore
from asset_cache.db.sql import SqlAssetStore
from asset_cache.db.tables import asset_logs, assets, metadata

__all__ = [
    "InMemoryAssetStore",
    "SqlAssetStore",
    "asset_logs",
    "assets",
    "compute_content_hash",
    "metadata",
]
