from typing import Protocol

from asset_cache.models import RemoteAsset


class RemoteAssetSource(Protocol):
    source_id: str
    branch: str

    def is_configured(self) -> bool: ...

    async def fetch(self, key: str) -> RemoteAsset: ...

    async def list_assets(self, prefix: str = "") -> list[str]: ...

    async def aclose(self) -> None: ...
