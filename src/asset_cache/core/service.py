from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from asset_cache.core.cache import VolatileCache, make_compound_key
from asset_cache.core.ports.remote import RemoteAssetSource
from asset_cache.core.ports.store import AssetStore
from asset_cache.core.singleflight import SingleFlight
from asset_cache.db.helpers import compute_content_hash, new_record_id, utcnow
from asset_cache.errors import (
    AssetNotFound,
    BackendUnavailable,
    RemoteUnavailable,
    ServiceUnavailable,
    StoreUnavailable,
)
from asset_cache.models import (
    AssetLogEntry,
    AssetOrigin,
    AssetRecord,
    AssetResult,
    RemoteAsset,
    normalize_asset_key,
    normalize_prefix,
)

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "asset"


class RemoteMissingPolicy(str, enum.Enum):
    """What to do when the remote says a key is gone but the store still has it."""

    SERVE_STALE = "serve_stale"
    FAIL = "fail"


@dataclass
class ServiceStats:
    cache_hits: int = 0
    remote_hits: int = 0
    store_fallbacks: int = 0
    stale_served: int = 0
    store_write_failures: int = 0


class AssetService:
    """Serve assets from memory, then the remote repository, then the durable store.

    The remote is authoritative whenever it answers; successful remote reads are
    written back to the store. The store only answers when the remote is not
    configured or cannot be reached, and the memory tier mirrors whichever of the
    two answered last.
    """

    def __init__(
        self,
        remote: RemoteAssetSource,
        store: AssetStore | None = None,
        cache: VolatileCache[AssetResult] | None = None,
        *,
        owner_category: str = "application",
        owner_key: str = "default",
        extra_branches: Sequence[str] = (),
        remote_timeout: float | None = None,
        remote_missing_policy: RemoteMissingPolicy = RemoteMissingPolicy.SERVE_STALE,
        coalesce: bool = True,
    ) -> None:
        self._remote = remote
        self._store = store
        self._cache: VolatileCache[AssetResult] = cache if cache is not None else VolatileCache()
        self.owner_category = owner_category
        self.owner_key = owner_key
        self.remote_timeout = remote_timeout
        self.remote_missing_policy = RemoteMissingPolicy(remote_missing_policy)
        self.coalesce = coalesce
        self.stats = ServiceStats()
        self._flight: SingleFlight[tuple[str, str], AssetResult] = SingleFlight()
        self._branches = list(dict.fromkeys([remote.branch, *extra_branches]))

    @property
    def cache(self) -> VolatileCache[AssetResult]:
        return self._cache

    @property
    def has_store(self) -> bool:
        return self._store is not None

    @property
    def branches(self) -> list[str]:
        return list(self._branches)

    def is_service_configured(self) -> bool:
        return self._remote.is_configured()

    async def fetch(self, key: str, category: str = DEFAULT_CATEGORY, timeout: float | None = None) -> AssetResult:
        key = normalize_asset_key(key)
        compound = make_compound_key(self._remote.source_id, self._remote.branch, key)

        cached = self._cache.get(compound)
        if cached is not None:
            self.stats.cache_hits += 1
            return cached

        if not self.coalesce:
            return await self._walk_tiers(key, category, compound, timeout)
        return await self._flight.do((compound, category), lambda: self._walk_tiers(key, category, compound, timeout))

    async def list_assets(self, prefix: str = "", timeout: float | None = None) -> list[str]:
        if not self._remote.is_configured():
            raise ServiceUnavailable("Remote asset source is not configured")
        limit = timeout if timeout is not None else self.remote_timeout
        try:
            return await asyncio.wait_for(self._remote.list_assets(normalize_prefix(prefix)), limit)
        except asyncio.TimeoutError as exc:
            raise RemoteUnavailable(f"Listing {prefix or '/'} timed out after {limit}s") from exc

    async def history(self, key: str) -> list[AssetLogEntry]:
        if self._store is None:
            return []
        return await self._store.history(self.owner_key, normalize_asset_key(key))

    def clear_cache(self) -> None:
        self._cache.invalidate_all()
        logger.info("Cleared asset cache")

    def clear_cache_for_key(self, key: str) -> None:
        key = normalize_asset_key(key)
        for branch in self._branches:
            self._cache.invalidate(make_compound_key(self._remote.source_id, branch, key))
        logger.debug("Cleared cache for %s across %d branch(es)", key, len(self._branches))

    async def aclose(self) -> None:
        await self._remote.aclose()
        if self._store is not None:
            await self._store.dispose()

    async def _walk_tiers(self, key: str, category: str, compound: str, timeout: float | None) -> AssetResult:
        remote_error: BackendUnavailable | None = None

        if self._remote.is_configured():
            try:
                asset = await self._fetch_remote(key, timeout)
            except AssetNotFound:
                return await self._serve_removed_upstream(key, category, compound)
            except BackendUnavailable as exc:
                logger.warning(
                    "Remote %s unavailable for %s, falling back to store: %s",
                    self._remote.source_id,
                    key,
                    exc,
                    extra={"event": "remote_unavailable", "asset_key": key, "source_id": self._remote.source_id},
                )
                remote_error = exc
            else:
                return await self._serve_remote(asset, category, compound)

        store_error: StoreUnavailable | None = None
        record: AssetRecord | None = None
        try:
            record = await self._read_store(key, category)
        except StoreUnavailable as exc:
            logger.warning("Store unavailable while reading %s: %s", key, exc)
            store_error = exc

        if record is not None:
            result = self._result_from_record(record)
            self._cache.put(compound, result)
            self.stats.store_fallbacks += 1
            return result

        if remote_error is not None:
            raise remote_error
        if store_error is not None:
            raise store_error
        if self._store is None:
            raise ServiceUnavailable("Neither a remote asset source nor a store is configured")
        raise AssetNotFound(key)

    async def _fetch_remote(self, key: str, timeout: float | None) -> RemoteAsset:
        limit = timeout if timeout is not None else self.remote_timeout
        try:
            return await asyncio.wait_for(self._remote.fetch(key), limit)
        except asyncio.TimeoutError as exc:
            raise RemoteUnavailable(f"Remote fetch of {key} timed out after {limit}s") from exc

    async def _read_store(self, key: str, category: str) -> AssetRecord | None:
        if self._store is None:
            return None
        return await self._store.read(self.owner_category, self.owner_key, category, key)

    async def _serve_remote(self, asset: RemoteAsset, category: str, compound: str) -> AssetResult:
        stored = await self._write_back(asset, category)
        result = AssetResult(
            key=asset.key,
            content=asset.content,
            revision_id=asset.revision_id,
            size=asset.size,
            encoding=asset.encoding,
            last_modified=asset.last_modified,
            source=AssetOrigin.REMOTE,
            database_version=stored.created_at if stored is not None else None,
        )
        self._cache.put(compound, result)
        self.stats.remote_hits += 1
        return result

    async def _write_back(self, asset: RemoteAsset, category: str) -> AssetRecord | None:
        if self._store is None:
            return None
        candidate = AssetRecord(
            id=new_record_id(),
            owner_category=self.owner_category,
            owner_key=self.owner_key,
            asset_category=category,
            asset_key=asset.key,
            content=asset.content,
            content_hash=compute_content_hash(asset.content),
            description=f"{self._remote.source_id}@{self._remote.branch} {asset.revision_id}".strip(),
            created_at=utcnow(),
        )
        try:
            return await self._store.upsert(candidate)
        except StoreUnavailable as exc:
            self.stats.store_write_failures += 1
            logger.warning(
                "Write-back of %s failed, serving remote copy anyway: %s",
                asset.key,
                exc,
                extra={"event": "store_write_failed", "asset_key": asset.key, "source_id": self._remote.source_id},
            )
            return None

    async def _serve_removed_upstream(self, key: str, category: str, compound: str) -> AssetResult:
        try:
            record = await self._read_store(key, category)
        except StoreUnavailable as exc:
            logger.warning("Store unavailable while checking removed asset %s: %s", key, exc)
            record = None

        if record is None:
            raise AssetNotFound(key)

        if self.remote_missing_policy is RemoteMissingPolicy.FAIL:
            logger.info("%s was removed upstream; stored copy is not served", key)
            raise AssetNotFound(key, f"Asset removed upstream: {key}")

        logger.warning(
            "%s was removed upstream; serving stored copy from %s",
            key,
            record.created_at.isoformat(),
            extra={"event": "stale_served", "asset_key": key, "source_id": self._remote.source_id},
        )
        result = self._result_from_record(record, stale=True)
        self._cache.put(compound, result)
        self.stats.stale_served += 1
        return result

    @staticmethod
    def _result_from_record(record: AssetRecord, stale: bool = False) -> AssetResult:
        return AssetResult(
            key=record.asset_key,
            content=record.content,
            revision_id=None,
            size=len(record.content.encode("utf-8")),
            encoding="utf-8",
            last_modified=record.created_at,
            source=AssetOrigin.DATABASE,
            database_version=record.created_at,
            stale=stale,
        )
