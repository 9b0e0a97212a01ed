"""JarPlane CLI - jpl command."""

from pathlib import Path

import click

from jarplane import __version__
from jarplane.cli.scan import scan_command, stats_command
from jarplane.cli.search import search_command
from jarplane.cli.serve import serve_command
from jarplane.core.logging import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="jpl")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--repository",
    type=click.Path(file_okay=False, path_type=Path),
    help="Maven repository root (overrides config)",
)
@click.option(
    "--store",
    type=click.Path(dir_okay=False, path_type=Path),
    help="SQLite cache file (overrides config)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, repository: Path | None, store: Path | None) -> None:
    """JarPlane - class index over a local Maven repository."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["repository"] = repository
    ctx.obj["store"] = store
    configure_logging(level="DEBUG" if verbose else "WARNING")


cli.add_command(serve_command, name="serve")
cli.add_command(scan_command, name="scan")
cli.add_command(search_command, name="search")
cli.add_command(stats_command, name="stats")


if __name__ == "__main__":
    cli()
