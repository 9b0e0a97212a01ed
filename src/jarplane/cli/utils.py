"""CLI utility functions."""

from __future__ import annotations

from pathlib import Path

import click

from jarplane.config.loader import load_config
from jarplane.config.models import JarPlaneConfig
from jarplane.core.errors import ConfigError, JarPlaneError
from jarplane.core.logging import configure_logging, get_log_file_path, get_logger

log = get_logger(__name__)


def load_cli_config(ctx: click.Context) -> JarPlaneConfig:
    """Load configuration for a command and apply its logging section.

    Group-level --repository/--store options override every other source.

    Raises:
        click.ClickException: If the configuration is invalid
    """
    obj = ctx.ensure_object(dict)
    overrides: dict[str, dict[str, Path]] = {}
    if obj.get("repository") is not None:
        overrides["repository"] = {"path": obj["repository"]}
    if obj.get("store") is not None:
        overrides["store"] = {"path": obj["store"]}

    try:
        config = load_config(**overrides)
    except ConfigError as e:
        raise click.ClickException(e.message) from e

    if obj.get("verbose"):
        configure_logging(level="DEBUG")
    else:
        configure_logging(config=config.logging)
    return config


def command_error(command: str, error: JarPlaneError) -> click.ClickException:
    """Log a command failure and build the message shown to the user.

    The message points at the log file when one is configured.
    """
    log.error("command_failed", command=command, **error.to_dict())
    log_file = get_log_file_path()
    if log_file is not None:
        return click.ClickException(f"{error.message}. See {log_file} for details.")
    return click.ClickException(error.message)
