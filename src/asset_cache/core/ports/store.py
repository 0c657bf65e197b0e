from typing import Protocol

from asset_cache.models import AssetLogEntry, AssetRecord


class AssetStore(Protocol):
    async def read(
        self,
        owner_category: str,
        owner_key: str,
        asset_category: str,
        asset_key: str,
    ) -> AssetRecord | None: ...

    async def upsert(self, record: AssetRecord) -> AssetRecord: ...

    async def history(self, owner_key: str, asset_key: str) -> list[AssetLogEntry]: ...

    async def ensure_ready(self) -> None: ...

    async def ping(self) -> bool: ...

    async def dispose(self) -> None: ...
