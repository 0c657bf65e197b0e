"""Error taxonomy shared by every tier.

Boundary layers only need three branches: ``AssetNotFound`` (nothing at the key),
``BackendUnavailable`` (a tier that might hold it cannot be reached) and
``ServiceUnavailable`` (nothing was configured).
"""

from __future__ import annotations


class AssetCacheError(Exception):
    """Base class for all asset-cache errors."""


class InvalidAssetKey(AssetCacheError, ValueError):
    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        super().__init__(f"Invalid asset key {key!r}: {reason}")


class AssetNotFound(AssetCacheError):
    def __init__(self, key: str, message: str | None = None) -> None:
        self.key = key
        super().__init__(message or f"Asset not found: {key}")


class ServiceUnavailable(AssetCacheError):
    """Neither a remote source nor a durable store is configured."""


class ConfigUnavailable(AssetCacheError):
    def __init__(self, key: str, message: str | None = None) -> None:
        self.key = key
        super().__init__(message or f"Configuration unavailable: {key}")


class BackendUnavailable(AssetCacheError):
    """A backing tier exists but cannot currently answer."""


class RemoteUnavailable(BackendUnavailable):
    pass


class AuthFailed(BackendUnavailable):
    pass


class RateLimited(BackendUnavailable):
    def __init__(self, message: str, reset_at: int | None = None) -> None:
        self.reset_at = reset_at
        super().__init__(message)


class StoreUnavailable(BackendUnavailable):
    pass
