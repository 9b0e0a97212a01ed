"""JarPlane error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Store
- 4xxx: Archive
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_PATH_NOT_FOUND = 2004

    # Store (3xxx)
    STORE_OPEN_FAILED = 3001
    STORE_QUERY_FAILED = 3002
    STORE_WRITE_FAILED = 3003
    STORE_NOT_OPEN = 3004

    # Archive (4xxx)
    ARCHIVE_UNREADABLE = 4001
    ARCHIVE_ENTRY_UNREADABLE = 4002


@dataclass(frozen=True, slots=True)
class JarPlaneError(Exception):
    """Base error with structured context for logs and protocol responses."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'STORE_QUERY_FAILED')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(JarPlaneError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def path_not_found(cls, field: str, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PATH_NOT_FOUND,
            message=f"Directory for '{field}' does not exist: {path}",
            details={"field": field, "path": path},
        )


class StorageError(JarPlaneError):
    """Failures opening, querying or writing the class store."""

    @classmethod
    def open_failed(cls, path: str, reason: str) -> "StorageError":
        return cls(
            code=ErrorCode.STORE_OPEN_FAILED,
            message=f"Cannot open class store at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def query_failed(cls, operation: str, reason: str) -> "StorageError":
        return cls(
            code=ErrorCode.STORE_QUERY_FAILED,
            message=f"Store query '{operation}' failed: {reason}",
            retryable=True,
            details={"operation": operation, "reason": reason},
        )

    @classmethod
    def write_failed(cls, archive_path: str, reason: str) -> "StorageError":
        return cls(
            code=ErrorCode.STORE_WRITE_FAILED,
            message=f"Failed to persist units of {archive_path}: {reason}",
            retryable=True,
            details={"archive_path": archive_path, "reason": reason},
        )

    @classmethod
    def not_open(cls, path: str) -> "StorageError":
        return cls(
            code=ErrorCode.STORE_NOT_OPEN,
            message=f"Class store at {path} is not open",
            details={"path": path},
        )


class ArchiveError(JarPlaneError):
    """Unreadable or corrupt archive. Recovered inside the scanner."""

    @classmethod
    def unreadable(cls, archive_path: str, reason: str) -> "ArchiveError":
        return cls(
            code=ErrorCode.ARCHIVE_UNREADABLE,
            message=f"Cannot read archive {archive_path}: {reason}",
            details={"archive_path": archive_path, "reason": reason},
        )

    @classmethod
    def entry_unreadable(cls, archive_path: str, entry: str, reason: str) -> "ArchiveError":
        return cls(
            code=ErrorCode.ARCHIVE_ENTRY_UNREADABLE,
            message=f"Cannot read entry {entry} of {archive_path}: {reason}",
            details={"archive_path": archive_path, "entry": entry, "reason": reason},
        )
