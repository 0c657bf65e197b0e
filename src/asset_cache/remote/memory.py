from __future__ import annotations

import hashlib
from datetime import datetime, timezone

from asset_cache.errors import AssetNotFound
from asset_cache.models import RemoteAsset, is_under_prefix, normalize_asset_key, normalize_prefix


class InMemoryAssetSource:
    """Dictionary-backed remote. ``fail_with`` makes every call raise that error."""

    def __init__(
        self,
        files: dict[str, str] | None = None,
        branch: str = "main",
        source_id: str = "memory",
        configured: bool = True,
    ) -> None:
        self.files: dict[str, str] = {normalize_asset_key(k): v for k, v in (files or {}).items()}
        self.branch = branch
        self.source_id = source_id
        self.configured = configured
        self.fail_with: Exception | None = None
        self.fetch_calls: list[str] = []
        self.list_calls: list[str] = []

    def is_configured(self) -> bool:
        return self.configured

    async def fetch(self, key: str) -> RemoteAsset:
        key = normalize_asset_key(key)
        self.fetch_calls.append(key)
        if self.fail_with is not None:
            raise self.fail_with
        if key not in self.files:
            raise AssetNotFound(key)
        content = self.files[key]
        return RemoteAsset(
            key=key,
            content=content,
            revision_id=hashlib.sha1(content.encode("utf-8")).hexdigest(),
            size=len(content.encode("utf-8")),
            last_modified=datetime.now(timezone.utc),
        )

    async def list_assets(self, prefix: str = "") -> list[str]:
        prefix = normalize_prefix(prefix)
        self.list_calls.append(prefix)
        if self.fail_with is not None:
            raise self.fail_with
        return sorted(k for k in self.files if is_under_prefix(k, prefix))

    async def aclose(self) -> None:
        pass
