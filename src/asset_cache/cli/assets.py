import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Annotated, Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from asset_cache.core.service import DEFAULT_CATEGORY, AssetService
from asset_cache.errors import (
    AssetCacheError,
    AssetNotFound,
    BackendUnavailable,
    InvalidAssetKey,
    ServiceUnavailable,
)

console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")

EXIT_NOT_FOUND = 2
EXIT_UNREACHABLE = 3
EXIT_NOT_CONFIGURED = 4


def exit_code_for(exc: AssetCacheError) -> int:
    if isinstance(exc, (AssetNotFound, InvalidAssetKey)):
        return EXIT_NOT_FOUND
    if isinstance(exc, BackendUnavailable):
        return EXIT_UNREACHABLE
    if isinstance(exc, ServiceUnavailable):
        return EXIT_NOT_CONFIGURED
    return 1


def _get_service() -> AssetService:
    from asset_cache.dependencies import get_asset_service

    return get_asset_service()


def _run(service: AssetService, op: Callable[[AssetService], Awaitable[T]]) -> T:
    async def _main() -> T:
        try:
            return await op(service)
        finally:
            await service.aclose()

    try:
        return asyncio.run(_main())
    except AssetCacheError as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise typer.Exit(exit_code_for(exc)) from exc


def _render_table(headers: Sequence[str], rows: Sequence[tuple[Any, ...]]) -> None:
    table = Table(show_lines=False)
    for h in headers:
        table.add_column(h)
    for row in rows:
        table.add_row(*(str(v) for v in row))
    console.print(table)
    console.print(f"({len(rows)} rows)")


def get(
    key: Annotated[str, typer.Argument(help="Asset key, e.g. settings/flags.json.")],
    category: Annotated[str, typer.Option(help="Asset category used for durable scoping.")] = DEFAULT_CATEGORY,
) -> None:
    """Print an asset's content."""
    result = _run(_get_service(), lambda s: s.fetch(key, category))
    typer.echo(result.content, nl=not result.content.endswith("\n"))
    stale = " [yellow](stale)[/yellow]" if result.stale else ""
    err_console.print(
        f"source={result.source.value} revision={result.revision_id or '-'} size={result.size}{stale}",
        highlight=False,
    )


def list_assets(
    prefix: Annotated[str, typer.Argument(help="Path prefix; empty lists the whole branch.")] = "",
) -> None:
    """List asset keys under a prefix."""
    keys = _run(_get_service(), lambda s: s.list_assets(prefix))
    _render_table(["key"], [(k,) for k in keys])


def history(
    key: Annotated[str, typer.Argument(help="Asset key.")],
) -> None:
    """Show archived versions of an asset, newest first."""
    entries = _run(_get_service(), lambda s: s.history(key))
    _render_table(
        ["archived_at", "created_at", "content_hash", "description"],
        [(e.archived_at.isoformat(), e.created_at.isoformat(), e.content_hash[:12], e.description or "") for e in entries],
    )


def status() -> None:
    """Show which tiers are configured."""
    service = _get_service()
    remote_state = "[green]configured[/green]" if service.is_service_configured() else "[yellow]not configured[/yellow]"
    store_state = "[green]configured[/green]" if service.has_store else "[yellow]none (remote only)[/yellow]"
    console.print(f"Remote: {remote_state}")
    console.print(f"Store:  {store_state}")
    console.print(f"Cache:  ttl={service.cache.ttl_seconds}s enabled={service.cache.enabled}")
    asyncio.run(service.aclose())
