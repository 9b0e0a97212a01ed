"""Core module exports."""

from jarplane.core.errors import (
    ArchiveError,
    ConfigError,
    ErrorCode,
    JarPlaneError,
    StorageError,
)
from jarplane.core.logging import (
    clear_request_id,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)

__all__ = [
    # Errors
    "ArchiveError",
    "ConfigError",
    "ErrorCode",
    "JarPlaneError",
    "StorageError",
    # Logging
    "clear_request_id",
    "configure_logging",
    "get_logger",
    "get_request_id",
    "set_request_id",
]
