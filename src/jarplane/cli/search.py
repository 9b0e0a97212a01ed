"""jpl search command."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from jarplane.cli.utils import command_error, load_cli_config
from jarplane.config.constants import SEARCH_MAX_LIMIT
from jarplane.core.errors import JarPlaneError
from jarplane.mcp.context import AppContext


@click.command()
@click.argument("query")
@click.option(
    "--limit",
    "-n",
    type=click.IntRange(1, SEARCH_MAX_LIMIT),
    default=None,
    help="Maximum number of results",
)
@click.option("--package", "by_package", is_flag=True, help="List classes under a package prefix")
@click.pass_context
def search_command(ctx: click.Context, query: str, limit: int | None, by_package: bool) -> None:
    """Search the cache for classes by name or package.

    QUERY is a substring of the fully-qualified name, or with --package a
    package prefix such as org.apache.commons.
    """
    config = load_cli_config(ctx)
    limit = limit or config.search.default_limit

    try:
        app = AppContext.create(config)
    except JarPlaneError as e:
        raise command_error("search", e) from e
    try:
        if by_package:
            rows = [
                (s.qualified_name, s.archive_path, "")
                for s in asyncio.run(app.queries.search_by_package_prefix(query, limit))
            ]
        else:
            rows = [
                (h.qualified_name, h.archive_path, h.tier.label)
                for h in asyncio.run(app.queries.search_by_name_or_package(query, limit))
            ]
    except JarPlaneError as e:
        raise command_error("search", e) from e
    finally:
        app.close()

    console = Console()
    if not rows:
        console.print(f"No classes match [bold]{escape(query)}[/bold]")
        return

    table = Table(box=None, padding=(0, 1), pad_edge=False)
    table.add_column("Class", style="cyan", no_wrap=True)
    table.add_column("Archive", style="dim")
    if not by_package:
        table.add_column("Match")
    for name, archive, tier in rows:
        if by_package:
            table.add_row(name, archive)
        else:
            table.add_row(name, archive, tier)
    console.print(table)
