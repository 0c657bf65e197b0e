from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from asset_cache.config import Settings, get_settings

_engine: AsyncEngine | None = None


def _build_engine(settings: Settings) -> AsyncEngine | None:
    if not settings.database_url:
        return None
    engine_kwargs: dict[str, Any] = {"echo": settings.database.echo, "future": True}
    if settings.database.pool_size is not None:
        engine_kwargs["pool_size"] = settings.database.pool_size
    if settings.database.max_overflow is not None:
        engine_kwargs["max_overflow"] = settings.database.max_overflow
    return create_async_engine(settings.database_url, **engine_kwargs)


def get_engine(settings: Settings | None = None) -> AsyncEngine | None:
    """Return the process-wide engine, building it on first use.

    ``None`` means no database URL is configured; callers run without a durable tier.
    """
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = _build_engine(settings or get_settings())
    return _engine


async def dispose_engine() -> None:
    global _engine  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def reset_engine() -> None:
    """Forget the cached engine without disposing it. Tests only."""
    global _engine  # noqa: PLW0603
    _engine = None
