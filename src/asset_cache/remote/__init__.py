from asset_cache.remote.git import GitAssetSource
from asset_cache.remote.github import GitHubAssetSource
from asset_cache.remote.memory import InMemoryAssetSource

__all__ = [
    "GitAssetSource",
    "GitHubAssetSource",
    "InMemoryAssetSource",
]
