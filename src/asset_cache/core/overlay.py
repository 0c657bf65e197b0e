from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from pathlib import Path
from typing import Generic, TypeVar, overload

from asset_cache.core.service import AssetService
from asset_cache.core.singleflight import SingleFlight
from asset_cache.errors import AssetCacheError, ConfigUnavailable
from asset_cache.models import normalize_asset_key

logger = logging.getLogger(__name__)

P = TypeVar("P")
T = TypeVar("T")

CONFIG_CATEGORY = "config"
LOCAL_SOURCE = "local"

_LOAD = "load"
_RELOAD = "reload"


class OverlayState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class ConfigOverlay(Generic[P, T]):
    """Typed lookups over one configuration document.

    ``parser`` turns the raw text into a document of type ``P``; ``extractor`` turns
    that document into ``(name, value)`` pairs (or a mapping), which become the
    ordered entry table. The first lookup loads the document; concurrent first
    lookups share that one load. Raw text is kept in the overlay itself, so the
    overlay keeps working even when the service's memory cache is disabled.
    """

    def __init__(
        self,
        service: AssetService | None,
        asset_key: str,
        parser: Callable[[str], P],
        extractor: Callable[[P], Mapping[str, T] | Iterable[tuple[str, T]]],
        *,
        fallback_path: str | Path | None = None,
        category: str = CONFIG_CATEGORY,
    ) -> None:
        self.asset_key = normalize_asset_key(asset_key)
        self.category = category
        self.fallback_path = Path(fallback_path) if fallback_path else None
        self._service = service
        self._parser = parser
        self._extractor = extractor
        self._entries: dict[str, T] = {}
        self._raw: str | None = None
        self._source: str | None = None
        self._state = OverlayState.UNINITIALIZED
        self._error: ConfigUnavailable | None = None
        self._flight: SingleFlight[str, None] = SingleFlight()

    @property
    def state(self) -> OverlayState:
        return self._state

    @property
    def source(self) -> str | None:
        """Tier that supplied the current document: ``remote``, ``database`` or ``local``."""
        return self._source

    @property
    def raw(self) -> str | None:
        """Unparsed text of the current document, or None until a load succeeds."""
        return self._raw

    @overload
    async def get_config(self, name: None = None) -> list[T]: ...

    @overload
    async def get_config(self, name: str, default: T | None = None) -> T | None: ...

    async def get_config(self, name: str | None = None, default: T | None = None) -> list[T] | T | None:
        await self._ensure_ready()
        if name is None:
            return list(self._entries.values())
        return self._entries.get(name, default)

    async def entries(self) -> dict[str, T]:
        await self._ensure_ready()
        return dict(self._entries)

    async def reload(self) -> None:
        """Drop the parsed entries and raw text, then load again. Concurrent calls share one reload."""
        await self._flight.do(_RELOAD, self._reload)

    async def _ensure_ready(self) -> None:
        if self._state is OverlayState.READY:
            return
        if self._state is OverlayState.FAILED and self._error is not None:
            raise self._error
        await self._flight.do(_LOAD, self._initialize)

    async def _reload(self) -> None:
        if self._flight.in_flight(_LOAD):
            # let the load that is already running settle before discarding its result
            with contextlib.suppress(ConfigUnavailable):
                await self._flight.do(_LOAD, self._initialize)
        self._entries = {}
        self._raw = None
        self._source = None
        self._error = None
        self._state = OverlayState.UNINITIALIZED
        logger.info("Reloading configuration %s", self.asset_key)
        await self._flight.do(_LOAD, self._initialize)

    async def _initialize(self) -> None:
        self._state = OverlayState.INITIALIZING
        failures: list[str] = []

        loaders: list[tuple[str, Callable[[], Awaitable[tuple[str, str] | None]]]] = [
            ("service", self._load_from_service),
            (LOCAL_SOURCE, self._load_local),
        ]
        for label, loader in loaders:
            try:
                loaded = await loader()
            except (AssetCacheError, OSError, UnicodeDecodeError) as exc:
                logger.warning("Could not load %s from %s: %s", self.asset_key, label, exc)
                failures.append(f"{label}: {exc}")
                continue
            if loaded is None:
                continue

            source, raw = loaded
            try:
                entries = self._build_entries(raw)
            except Exception as exc:
                # parser and extractor are caller-supplied; any failure means "try the next source"
                logger.warning("Could not parse %s from %s: %s", self.asset_key, source, exc)
                failures.append(f"{source}: {exc}")
                continue

            self._entries = entries
            self._raw = raw
            self._source = source
            self._error = None
            self._state = OverlayState.READY
            logger.info("Loaded %d entries for %s from %s", len(entries), self.asset_key, source)
            return

        self._state = OverlayState.FAILED
        self._error = ConfigUnavailable(
            self.asset_key,
            f"No usable source for {self.asset_key}: " + ("; ".join(failures) or "nothing configured"),
        )
        logger.error("%s", self._error)
        raise self._error

    def _build_entries(self, raw: str) -> dict[str, T]:
        extracted = self._extractor(self._parser(raw))
        if isinstance(extracted, Mapping):
            return dict(extracted.items())
        return dict(extracted)

    async def _load_from_service(self) -> tuple[str, str] | None:
        if self._service is None:
            return None
        result = await self._service.fetch(self.asset_key, self.category)
        return result.source.value, result.content

    async def _load_local(self) -> tuple[str, str] | None:
        if self.fallback_path is None:
            return None
        raw = await asyncio.to_thread(self.fallback_path.read_text, encoding="utf-8")
        logger.warning("Using local fallback %s for %s", self.fallback_path, self.asset_key)
        return LOCAL_SOURCE, raw
