"""Ready-made overlays for configuration documents kept in the asset repository."""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from asset_cache.core.overlay import ConfigOverlay
from asset_cache.core.service import AssetService

FEATURE_FLAGS_KEY = "settings/flags.json"


def parse_json_object(raw: str) -> dict[str, Any]:
    document = json.loads(raw)
    if not isinstance(document, dict):
        raise ValueError(f"Expected a JSON object, got {type(document).__name__}")
    return document


def extract_flags(document: dict[str, Any]) -> Iterator[tuple[str, bool]]:
    """Yield ``(name, enabled)`` for each entry of ``document["flags"]``."""
    for flag in document.get("flags", []):
        yield str(flag["name"]), bool(flag.get("enabled", False))


def feature_flags_overlay(
    service: AssetService | None,
    asset_key: str = FEATURE_FLAGS_KEY,
    fallback_path: str | Path | None = None,
) -> ConfigOverlay[dict[str, Any], bool]:
    return ConfigOverlay(
        service,
        asset_key,
        parse_json_object,
        extract_flags,
        fallback_path=fallback_path,
    )
