"""jpl scan / jpl stats commands."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.table import Table

from jarplane.cli.utils import command_error, load_cli_config
from jarplane.core.errors import JarPlaneError
from jarplane.index.models import ScanStats, StoreStatistics
from jarplane.mcp.context import AppContext


def _stats_table(stats: StoreStatistics) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 1), pad_edge=False)
    table.add_column(style="dim")
    table.add_column(justify="right")
    table.add_row("Classes", str(stats.classes))
    table.add_row("Packages", str(stats.packages))
    table.add_row("Archives", str(stats.archives))
    return table


async def _scan(ctx: AppContext, force: bool, prune: bool) -> tuple[ScanStats, StoreStatistics]:
    stats = await ctx.scanner.scan(force=force, prune=prune)
    return stats, await ctx.queries.get_statistics()


@click.command()
@click.option("--force", is_flag=True, help="Rescan every archive regardless of modification time")
@click.option(
    "--prune",
    is_flag=True,
    help="With --force, drop records of archives that no longer exist",
)
@click.pass_context
def scan_command(ctx: click.Context, force: bool, prune: bool) -> None:
    """Scan the repository once and update the cache."""
    if prune and not force:
        raise click.UsageError("--prune requires --force")

    config = load_cli_config(ctx)
    console = Console()

    try:
        app = AppContext.create(config)
    except JarPlaneError as e:
        raise command_error("scan", e) from e
    try:
        with console.status(f"Scanning {config.repository_path}", spinner="dots"):
            stats, totals = asyncio.run(_scan(app, force, prune))
    except JarPlaneError as e:
        raise command_error("scan", e) from e
    finally:
        app.close()

    console.print(
        f"[green]Scanned {stats.scanned_archives} archives[/green]: "
        f"{stats.new_units} new, {stats.updated_units} updated"
    )
    console.print(_stats_table(totals))


@click.command()
@click.pass_context
def stats_command(ctx: click.Context) -> None:
    """Show cache statistics."""
    config = load_cli_config(ctx)
    try:
        app = AppContext.create(config)
    except JarPlaneError as e:
        raise command_error("stats", e) from e
    try:
        totals = asyncio.run(app.queries.get_statistics())
    except JarPlaneError as e:
        raise command_error("stats", e) from e
    finally:
        app.close()

    console = Console()
    console.print(f"Cache: {config.store_path}")
    console.print(_stats_table(totals))
