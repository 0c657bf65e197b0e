import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from asset_cache.cli.assets import get, history, list_assets, status
from asset_cache.cli.db import db_app
from asset_cache.config import get_settings

app = typer.Typer(
    name="asset-cache",
    help="Asset cache CLI: read configuration assets through memory, the repository and the durable store.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.add_typer(db_app, name="db")
app.command("get")(get)
app.command("list")(list_assets)
app.command("history")(history)
app.command("status")(status)


@app.callback()
def _configure_logging(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    level = "DEBUG" if verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


def main() -> None:
    app()
