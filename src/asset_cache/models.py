from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime

from asset_cache.errors import InvalidAssetKey


class AssetOrigin(str, enum.Enum):
    REMOTE = "remote"
    DATABASE = "database"


def normalize_asset_key(key: str) -> str:
    """Collapse redundant slashes and reject empty or relative keys.

    ``"/settings//flags.json/"`` becomes ``"settings/flags.json"``. Case is preserved.
    """
    parts = [p for p in key.strip().split("/") if p]
    if not parts:
        raise InvalidAssetKey(key, "asset key must not be empty")
    if any(p in (".", "..") for p in parts):
        raise InvalidAssetKey(key, "asset key must not contain '.' or '..' segments")
    return "/".join(parts)


def normalize_prefix(prefix: str | None) -> str:
    if not prefix:
        return ""
    parts = [p for p in prefix.strip().split("/") if p]
    return "/".join(parts)


def is_under_prefix(key: str, prefix: str) -> bool:
    if not prefix:
        return True
    return key == prefix or key.startswith(prefix + "/")


@dataclass(frozen=True)
class RemoteAsset:
    key: str
    content: str
    revision_id: str
    size: int
    last_modified: datetime | None
    encoding: str = "utf-8"


@dataclass(frozen=True)
class AssetRecord:
    id: str
    owner_category: str
    owner_key: str
    asset_category: str
    asset_key: str
    content: str
    content_hash: str
    description: str | None
    created_at: datetime


@dataclass(frozen=True)
class AssetLogEntry:
    id: int
    asset_id: str
    owner_category: str
    owner_key: str
    asset_category: str
    asset_key: str
    content: str
    content_hash: str
    description: str | None
    created_at: datetime
    archived_at: datetime


@dataclass(frozen=True)
class AssetResult:
    """What a read hands back to callers, whichever tier answered."""

    key: str
    content: str
    revision_id: str | None
    size: int
    encoding: str
    last_modified: datetime | None
    source: AssetOrigin
    database_version: datetime | None = None
    stale: bool = False
