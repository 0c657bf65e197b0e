"""Database schema commands."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from asset_cache.config import get_settings

db_app = typer.Typer(help="Manage the durable asset store schema.")
console = Console()


def _require_url() -> str:
    url = get_settings().database_url
    if not url:
        console.print("[red]No database configured.[/red] Set ASSET_CACHE_DATABASE__URL.")
        raise typer.Exit(1)
    return url


@db_app.command("upgrade")
def upgrade() -> None:
    """Run Alembic migrations up to head."""
    from asset_cache.db.migrations import run_migrations

    url = _require_url()
    console.print("Running migrations...")
    run_migrations(url)
    console.print("[green]Schema is up to date.[/green]")


@db_app.command("init")
def init() -> None:
    """Create the tables directly, without Alembic."""
    from asset_cache.db.engine import dispose_engine, get_engine
    from asset_cache.db.sql import SqlAssetStore

    _require_url()
    engine = get_engine()
    assert engine is not None

    async def _run() -> None:
        try:
            await SqlAssetStore(engine).ensure_ready()
        finally:
            await dispose_engine()

    asyncio.run(_run())
    console.print("[green]Tables created.[/green]")
