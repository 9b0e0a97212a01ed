"""Config module exports."""

from jarplane.config.loader import load_config
from jarplane.config.models import (
    JarPlaneConfig,
    LoggingConfig,
    LogOutputConfig,
    RepositoryConfig,
    SearchConfig,
    StoreConfig,
)

__all__ = [
    "load_config",
    "JarPlaneConfig",
    "LoggingConfig",
    "LogOutputConfig",
    "RepositoryConfig",
    "SearchConfig",
    "StoreConfig",
]
