"""Process-wide ``AssetService`` handle, built from settings on first use."""

from __future__ import annotations

from asset_cache.config import Settings, get_settings
from asset_cache.core.cache import VolatileCache
from asset_cache.core.ports.remote import RemoteAssetSource
from asset_cache.core.ports.store import AssetStore
from asset_cache.core.service import AssetService, RemoteMissingPolicy
from asset_cache.db.engine import dispose_engine, get_engine, reset_engine
from asset_cache.db.sql import SqlAssetStore
from asset_cache.models import AssetResult
from asset_cache.remote.git import GitAssetSource
from asset_cache.remote.github import GitHubAssetSource

_service: AssetService | None = None


def build_remote(settings: Settings) -> RemoteAssetSource:
    remote = settings.remote
    if remote.provider == "git":
        return GitAssetSource(remote.repository, branch=remote.branch, timeout=remote.timeout)
    return GitHubAssetSource(
        remote.repository,
        settings.remote_token,
        branch=remote.branch,
        api_url=remote.api_url,
        timeout=remote.timeout,
    )


def build_store(settings: Settings) -> AssetStore | None:
    # no URL means remote-only operation, silently
    engine = get_engine(settings)
    if engine is None:
        return None
    return SqlAssetStore(engine, timeout=settings.database.timeout)


def build_asset_service(settings: Settings | None = None) -> AssetService:
    settings = settings or get_settings()
    return AssetService(
        build_remote(settings),
        build_store(settings),
        VolatileCache[AssetResult](ttl_seconds=settings.cache.ttl_seconds, enabled=settings.cache.enabled),
        owner_category=settings.tenant.owner_category,
        owner_key=settings.tenant.owner_key,
        extra_branches=settings.remote.extra_branches,
        remote_timeout=settings.remote.timeout,
        remote_missing_policy=RemoteMissingPolicy(settings.remote_missing_policy),
    )


def get_asset_service() -> AssetService:
    """Return the shared ``AssetService``, creating it lazily on first call."""
    global _service  # noqa: PLW0603
    if _service is None:
        _service = build_asset_service()
    return _service


async def shutdown_asset_service() -> None:
    global _service  # noqa: PLW0603
    if _service is not None:
        await _service.aclose()
        _service = None
    await dispose_engine()


def reset_asset_service() -> None:
    """Drop the shared handle and engine without closing them. Tests only."""
    global _service  # noqa: PLW0603
    _service = None
    reset_engine()
    get_settings.cache_clear()
