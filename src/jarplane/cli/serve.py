"""jpl serve command - run the stdio protocol server."""

import click

from jarplane.cli.utils import command_error, load_cli_config
from jarplane.core.errors import JarPlaneError


@click.command()
@click.pass_context
def serve_command(ctx: click.Context) -> None:
    """Serve line-delimited JSON-RPC on stdin/stdout.

    Logs go to stderr (or the files named in the logging config), never
    to stdout.
    """
    from jarplane.mcp.server import run_server

    config = load_cli_config(ctx)
    try:
        run_server(config)
    except JarPlaneError as e:
        raise command_error("serve", e) from e
    except KeyboardInterrupt:
        click.echo("Stopped", err=True)
