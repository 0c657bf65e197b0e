from __future__ import annotations

from dataclasses import replace

from asset_cache.db.helpers import compute_content_hash, utcnow
from asset_cache.models import AssetLogEntry, AssetRecord


class InMemoryAssetStore:
    """Dictionary-backed ``AssetStore`` with the same change-detection rules as the SQL store."""

    def __init__(self) -> None:
        self.records: dict[tuple[str, str], AssetRecord] = {}
        self.logs: list[AssetLogEntry] = []
        self._next_log_id = 1

    async def read(
        self,
        owner_category: str,
        owner_key: str,
        asset_category: str,
        asset_key: str,
    ) -> AssetRecord | None:
        # one row per (owner_key, asset_key); the category does not narrow the lookup
        record = self.records.get((owner_key, asset_key))
        if record is None:
            return None
        if record.owner_category != owner_category:
            return None
        return record

    async def upsert(self, record: AssetRecord) -> AssetRecord:
        content_hash = compute_content_hash(record.content)
        key = (record.owner_key, record.asset_key)
        existing = self.records.get(key)

        if existing is None:
            stored = replace(record, content_hash=content_hash)
            self.records[key] = stored
            return stored

        if existing.content_hash == content_hash:
            return existing

        self.logs.append(
            AssetLogEntry(
                id=self._next_log_id,
                asset_id=existing.id,
                owner_category=existing.owner_category,
                owner_key=existing.owner_key,
                asset_category=existing.asset_category,
                asset_key=existing.asset_key,
                content=existing.content,
                content_hash=existing.content_hash,
                description=existing.description,
                created_at=existing.created_at,
                archived_at=utcnow(),
            )
        )
        self._next_log_id += 1

        updated = replace(
            existing,
            asset_category=record.asset_category,
            content=record.content,
            content_hash=content_hash,
            description=record.description,
            created_at=record.created_at,
        )
        self.records[key] = updated
        return updated

    async def history(self, owner_key: str, asset_key: str) -> list[AssetLogEntry]:
        entries = [e for e in self.logs if e.owner_key == owner_key and e.asset_key == asset_key]
        return sorted(entries, key=lambda e: (e.created_at, e.id), reverse=True)

    async def ensure_ready(self) -> None:
        pass

    async def ping(self) -> bool:
        return True

    async def dispose(self) -> None:
        pass
