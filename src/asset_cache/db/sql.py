from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Awaitable, Mapping
from typing import Any, TypeVar

from sqlalchemy import insert, select, text, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine

from asset_cache.db.helpers import as_utc, compute_content_hash, utcnow
from asset_cache.db.tables import asset_logs, assets, metadata
from asset_cache.errors import StoreUnavailable
from asset_cache.models import AssetLogEntry, AssetRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MAX_UPSERT_ATTEMPTS = 5


class _LostRace(Exception):
    """The row changed between our read and our conditional update."""


def _record_from_row(row: Mapping[str, Any]) -> AssetRecord:
    return AssetRecord(
        id=str(row["id"]),
        owner_category=row["owner_category"],
        owner_key=row["owner_key"],
        asset_category=row["asset_category"],
        asset_key=row["asset_key"],
        content=row["content"],
        content_hash=row["content_hash"],
        description=row["description"],
        created_at=as_utc(row["created_at"]),
    )


def _log_from_row(row: Mapping[str, Any]) -> AssetLogEntry:
    return AssetLogEntry(
        id=int(row["id"]),
        asset_id=str(row["asset_id"]),
        owner_category=row["owner_category"],
        owner_key=row["owner_key"],
        asset_category=row["asset_category"],
        asset_key=row["asset_key"],
        content=row["content"],
        content_hash=row["content_hash"],
        description=row["description"],
        created_at=as_utc(row["created_at"]),
        archived_at=as_utc(row["archived_at"]),
    )


class SqlAssetStore:
    """``AssetStore`` backed by the ``assets`` / ``asset_logs`` tables.

    Every call is bounded by ``timeout`` seconds. Driver and connectivity errors,
    as well as timeouts, surface as ``StoreUnavailable``.
    """

    def __init__(self, engine: AsyncEngine, timeout: float | None = None) -> None:
        self._engine = engine
        self._timeout = timeout
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = weakref.WeakValueDictionary()

    async def read(
        self,
        owner_category: str,
        owner_key: str,
        asset_category: str,
        asset_key: str,
    ) -> AssetRecord | None:
        """Look up the row for ``(owner_key, asset_key)``.

        A key has one row per owner whatever category it was written under, so
        ``asset_category`` does not narrow the lookup; the row carries the category
        of its latest content.
        """
        return await self._guard(self._read(owner_category, owner_key, asset_key))

    async def upsert(self, record: AssetRecord) -> AssetRecord:
        return await self._guard(self._upsert(record))

    async def history(self, owner_key: str, asset_key: str) -> list[AssetLogEntry]:
        return await self._guard(self._history(owner_key, asset_key))

    async def ensure_ready(self) -> None:
        """Create the tables if they do not exist yet."""
        await self._guard(self._create_tables())

    async def ping(self) -> bool:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception:
            return False

    async def dispose(self) -> None:
        await self._engine.dispose()

    async def _guard(self, op: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(op, self._timeout)
        except asyncio.TimeoutError as exc:
            raise StoreUnavailable(f"Store call timed out after {self._timeout}s") from exc
        except (DBAPIError, OSError) as exc:
            raise StoreUnavailable(f"Store unreachable: {exc}") from exc

    async def _create_tables(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def _read(self, owner_category: str, owner_key: str, asset_key: str) -> AssetRecord | None:
        stmt = select(assets).where(
            assets.c.owner_category == owner_category,
            assets.c.owner_key == owner_key,
            assets.c.asset_key == asset_key,
        )
        async with self._engine.connect() as conn:
            row = (await conn.execute(stmt)).mappings().first()
        return _record_from_row(row) if row is not None else None

    async def _history(self, owner_key: str, asset_key: str) -> list[AssetLogEntry]:
        stmt = (
            select(asset_logs)
            .where(asset_logs.c.owner_key == owner_key, asset_logs.c.asset_key == asset_key)
            .order_by(asset_logs.c.created_at.desc(), asset_logs.c.id.desc())
        )
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).mappings().all()
        return [_log_from_row(r) for r in rows]

    async def _upsert(self, record: AssetRecord) -> AssetRecord:
        key = (record.owner_key, record.asset_key)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock

        async with lock:
            for attempt in range(1, _MAX_UPSERT_ATTEMPTS + 1):
                try:
                    return await self._compare_and_write(record)
                except (_LostRace, IntegrityError):
                    # another process won; re-read and compare against its row
                    logger.debug("upsert race on %s/%s (attempt %d)", record.owner_key, record.asset_key, attempt)
        raise StoreUnavailable(
            f"Could not apply change to {record.asset_key} after {_MAX_UPSERT_ATTEMPTS} attempts"
        )

    async def _compare_and_write(self, record: AssetRecord) -> AssetRecord:
        content_hash = compute_content_hash(record.content)
        async with self._engine.begin() as conn:
            existing = (
                (
                    await conn.execute(
                        select(assets).where(
                            assets.c.owner_key == record.owner_key,
                            assets.c.asset_key == record.asset_key,
                        )
                    )
                )
                .mappings()
                .first()
            )

            if existing is None:
                values = {
                    "id": record.id,
                    "owner_category": record.owner_category,
                    "owner_key": record.owner_key,
                    "asset_category": record.asset_category,
                    "asset_key": record.asset_key,
                    "content": record.content,
                    "content_hash": content_hash,
                    "description": record.description,
                    "created_at": record.created_at,
                }
                await conn.execute(insert(assets).values(**values))
                return _record_from_row(values)

            if existing["content_hash"] == content_hash:
                return _record_from_row(existing)

            await conn.execute(
                insert(asset_logs).values(
                    asset_id=existing["id"],
                    owner_category=existing["owner_category"],
                    owner_key=existing["owner_key"],
                    asset_category=existing["asset_category"],
                    asset_key=existing["asset_key"],
                    content=existing["content"],
                    content_hash=existing["content_hash"],
                    description=existing["description"],
                    created_at=existing["created_at"],
                    archived_at=utcnow(),
                )
            )
            result = await conn.execute(
                update(assets)
                .where(
                    assets.c.id == existing["id"],
                    assets.c.content_hash == existing["content_hash"],
                )
                .values(
                    asset_category=record.asset_category,
                    content=record.content,
                    content_hash=content_hash,
                    description=record.description,
                    created_at=record.created_at,
                )
            )
            if result.rowcount != 1:
                # raising inside begin() rolls back the log row as well
                raise _LostRace()

            logger.info(
                "asset %s changed (%s -> %s)",
                record.asset_key,
                existing["content_hash"][:12],
                content_hash[:12],
                extra={"event": "asset_changed", "asset_key": record.asset_key},
            )
            return _record_from_row(
                {
                    **existing,
                    "asset_category": record.asset_category,
                    "content": record.content,
                    "content_hash": content_hash,
                    "description": record.description,
                    "created_at": record.created_at,
                }
            )
