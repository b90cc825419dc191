"""Satu Toko CLI: start the console web UI and manage saved history.

Usage:
    satutoko serve                          # Start the console web UI
    satutoko serve --engine my.engine:scrape
    satutoko history list                   # List saved sessions
    satutoko history show <id>              # Show one session's results
    satutoko history delete <id>            # Delete one session
    satutoko history clear                  # Delete every session

Every option that has an environment variable reads ``SATUTOKO_*``
when not given on the command line.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import click

from satutoko.config import (
    DEFAULT_DB_PATH,
    DEFAULT_STREAM_TIMEOUT,
    ConsoleSettings,
)
from satutoko.history.storage import SQLiteStorage
from satutoko.history.store import HISTORY_CAPACITY, HISTORY_KEY, HistoryStore
from satutoko.session.controller import DEFAULT_LIMIT

T = TypeVar("T")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=log_level, format=LOG_FORMAT)
    logging.getLogger("satutoko").setLevel(log_level)


# =========================================================================
# Output Formatting
# =========================================================================


def format_output(
    data: Any, format_type: str = "table", headers: list[str] | None = None
) -> None:
    """Format and print output based on format type.

    Args:
        data: Data to format (dict or list of dicts)
        format_type: Output format ('table' or 'json')
        headers: Column headers for table format
    """
    if format_type == "json":
        click.echo(json.dumps(data, indent=2))
    elif format_type == "table":
        if isinstance(data, dict):
            for key, value in data.items():
                click.echo(f"{key}: {value}")
        elif isinstance(data, list) and data:
            if headers is None:
                headers = list(data[0].keys())
            click.echo("  ".join(str(h).ljust(15) for h in headers))
            click.echo("-" * (len(headers) * 17))
            for item in data:
                row = [str(item.get(h, ""))[:15] for h in headers]
                click.echo("  ".join(v.ljust(15) for v in row))
        elif not data:
            click.echo("No results")
        else:
            click.echo(str(data))
    else:
        raise ValueError(f"Unknown format: {format_type}")


format_option = click.option(
    "--format",
    "format_type",
    type=click.Choice(["table", "json"]),
    default="table",
    show_default=True,
    help="Output format",
)


# =========================================================================
# Commands
# =========================================================================


@click.group()
@click.version_option(package_name="satu-toko-console")
def cli() -> None:
    """Satu Toko: multi-query marketplace search console."""


@cli.command()
@click.option(
    "--host",
    default="127.0.0.1",
    show_default=True,
    help="Host to bind the server to.",
)
@click.option(
    "--port",
    default=8000,
    show_default=True,
    type=int,
    help="Port to bind the server to.",
)
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_DB_PATH,
    show_default=True,
    envvar="SATUTOKO_DB",
    help="SQLite file holding the session history.",
)
@click.option(
    "--memory",
    is_flag=True,
    help="Keep history in memory only.",
)
@click.option(
    "--engine",
    default=None,
    envvar="SATUTOKO_ENGINE",
    help="Scrape engine as module.path:callable.",
)
@click.option(
    "--stream-timeout",
    type=float,
    default=DEFAULT_STREAM_TIMEOUT,
    show_default=True,
    envvar="SATUTOKO_STREAM_TIMEOUT",
    help="Seconds to wait for a search to finish; 0 disables.",
)
@click.option(
    "--history-capacity",
    type=click.IntRange(min=1),
    default=HISTORY_CAPACITY,
    show_default=True,
    envvar="SATUTOKO_HISTORY_CAPACITY",
    help="Maximum number of saved sessions.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=DEFAULT_LIMIT,
    show_default=True,
    envvar="SATUTOKO_LIMIT",
    help="Products per query.",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
def serve(
    host: str,
    port: int,
    db_path: Path,
    memory: bool,
    engine: str | None,
    stream_timeout: float,
    history_capacity: int,
    limit: int,
    verbose: bool,
) -> None:
    """Start the console web UI."""
    try:
        import uvicorn

        from satutoko.web.app import create_app
    except ImportError as e:
        raise click.ClickException(
            f"Missing dependency: {e}. "
            "Reinstall with: pip install satu-toko-console"
        ) from e

    if engine:
        from satutoko.config import import_engine

        try:
            import_engine(engine)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--engine") from e

    settings = ConsoleSettings(
        db_path=None if memory else db_path,
        history_key=HISTORY_KEY,
        history_capacity=history_capacity,
        stream_timeout=stream_timeout,
        default_limit=limit,
        engine=engine,
    )
    app = create_app(settings)

    configure_logging(verbose)

    click.echo(f"Starting web server at http://{host}:{port}")
    if settings.db_path is None:
        click.echo("History: in memory")
    else:
        click.echo(f"History database: {settings.db_path.absolute()}")
    if not engine:
        click.echo("No scrape engine configured; searches will be rejected")

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info" if verbose else "warning",
    )


# =========================================================================
# History Commands
# =========================================================================


def _with_history(
    ctx: click.Context, action: Callable[[HistoryStore], Awaitable[T]]
) -> T:
    """Open the history database, run ``action`` and close it again."""
    db_path: Path = ctx.obj["db_path"]

    async def run() -> T:
        storage = SQLiteStorage(db_path)
        store = HistoryStore(
            storage, key=ctx.obj["key"], capacity=ctx.obj["capacity"]
        )
        try:
            await store.initialize()
            if store.last_failure is not None:
                raise click.ClickException(store.last_failure.message)
            result = await action(store)
            if store.last_failure is not None:
                raise click.ClickException(store.last_failure.message)
            return result
        finally:
            await storage.close()

    return asyncio.run(run())


@cli.group()
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_DB_PATH,
    show_default=True,
    envvar="SATUTOKO_DB",
    help="SQLite file holding the session history.",
)
@click.option(
    "--key",
    default=HISTORY_KEY,
    show_default=True,
    help="Storage key of the history log.",
)
@click.option(
    "--capacity",
    type=click.IntRange(min=1),
    default=HISTORY_CAPACITY,
    show_default=True,
    envvar="SATUTOKO_HISTORY_CAPACITY",
    help="Maximum number of saved sessions.",
)
@click.pass_context
def history(
    ctx: click.Context, db_path: Path, key: str, capacity: int
) -> None:
    """Inspect and manage saved search sessions."""
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db_path
    ctx.obj["key"] = key
    ctx.obj["capacity"] = capacity


@history.command("list")
@format_option
@click.pass_context
def history_list(ctx: click.Context, format_type: str) -> None:
    """List saved sessions, newest first."""

    async def action(store: HistoryStore) -> list[dict[str, Any]]:
        return [
            {
                "id": entry.id,
                "timestamp": entry.timestamp,
                "platform": entry.platform.value,
                "results": entry.result_count,
                "queries": ", ".join(entry.queries),
            }
            for entry in store.list()
        ]

    rows = _with_history(ctx, action)
    format_output(
        rows,
        format_type,
        headers=["id", "timestamp", "platform", "results", "queries"],
    )


@history.command("show")
@click.argument("entry_id", type=int)
@format_option
@click.pass_context
def history_show(ctx: click.Context, entry_id: int, format_type: str) -> None:
    """Show one saved session with its shops."""

    async def action(store: HistoryStore) -> dict[str, Any] | None:
        entry = store.get(entry_id)
        return None if entry is None else entry.model_dump(mode="json")

    data = _with_history(ctx, action)
    if data is None:
        raise click.ClickException(f"History entry {entry_id} not found")

    if format_type == "json":
        format_output(data, format_type)
        return

    format_output(
        {
            "id": data["id"],
            "timestamp": data["timestamp"],
            "platform": data["platform"],
            "queries": ", ".join(data["queries"]),
            "result_count": data["result_count"],
        }
    )
    click.echo("")
    shops = [
        {
            "shop": shop["shop_name"] or shop["shop_url"],
            "products": sum(len(r["products"]) for r in shop["results"]),
            "url": shop["shop_url"],
        }
        for shop in data["results"]
    ]
    format_output(shops, headers=["shop", "products", "url"])


@history.command("delete")
@click.argument("entry_id", type=int)
@click.pass_context
def history_delete(ctx: click.Context, entry_id: int) -> None:
    """Delete one saved session."""

    async def action(store: HistoryStore) -> bool:
        return await store.delete(entry_id)

    if _with_history(ctx, action):
        click.echo(f"Deleted history entry {entry_id}")
    else:
        click.echo(f"History entry {entry_id} not found")


@history.command("clear")
@click.confirmation_option(prompt="Delete every saved session?")
@click.pass_context
def history_clear(ctx: click.Context) -> None:
    """Delete every saved session."""

    async def action(store: HistoryStore) -> int:
        count = len(store.list())
        await store.clear()
        return count

    count = _with_history(ctx, action)
    click.echo(f"Cleared {count} history entries")


def main() -> None:
    """Entry point for the ``satutoko`` console script."""
    cli()
