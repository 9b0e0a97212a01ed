"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (JARPLANE__SECTION__KEY)
3. Legacy environment variables (MAVEN_REPO_PATH, CACHE_DB_PATH, LOG_LEVEL)
4. Local YAML (./.jarplane/config.yaml)
5. Global YAML (~/.config/jarplane/config.yaml)
6. Built-in defaults (this file)

Environment Variable Format:
    JARPLANE__<SECTION>__<KEY>=<VALUE>

Examples:
    JARPLANE__LOGGING__LEVEL=DEBUG
    JARPLANE__REPOSITORY__PATH=/opt/maven/repository
    JARPLANE__SEARCH__CASE_SENSITIVE=true
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from jarplane.config.constants import SEARCH_DEFAULT_LIMIT, SEARCH_MAX_LIMIT

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_REPOSITORY_PATH = Path("~/.m2/repository").expanduser()
DEFAULT_STORE_PATH = Path("~/.jarplane/cache.db").expanduser()


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v == "stderr":
            return v
        if v == "stdout":
            raise ValueError("stdout is reserved for protocol responses")
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        JARPLANE__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every scanned archive.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: object) -> object:
        if isinstance(v, str):
            upper = v.strip().upper()
            return "WARNING" if upper == "WARN" else upper
        return v


class RepositoryConfig(BaseModel):
    """Archive repository configuration.

    Env vars:
        JARPLANE__REPOSITORY__PATH: Root of the local Maven repository
        JARPLANE__REPOSITORY__ARCHIVE_EXTENSION: Archive suffix to index
    """

    path: Path = Field(
        default=DEFAULT_REPOSITORY_PATH,
        description="Root directory that is walked for archives.",
    )
    archive_extension: str = Field(
        default=".jar",
        description="File suffix identifying archives. Matched case-sensitively.",
    )
    follow_symlinks: bool = Field(
        default=False,
        description="Descend into symlinked directories. "
        "RISK: symlink cycles are not detected.",
    )

    @field_validator("path")
    @classmethod
    def expand_path(cls, v: Path) -> Path:
        return v.expanduser().resolve()

    @field_validator("archive_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        if not v.startswith(".") or len(v) < 2:
            raise ValueError(f"Archive extension must look like '.jar', got {v!r}")
        return v


class StoreConfig(BaseModel):
    """Embedded store configuration.

    Env vars:
        JARPLANE__STORE__PATH: SQLite file holding the class index
        JARPLANE__STORE__BUSY_TIMEOUT_MS: SQLite busy timeout
        JARPLANE__STORE__MAX_RETRIES: Max retry attempts for locked DB
    """

    path: Path = Field(
        default=DEFAULT_STORE_PATH,
        description="SQLite database file. Parent directory is created on load.",
    )
    busy_timeout_ms: int = Field(
        default=30000,
        description="SQLite busy timeout (ms). How long readers and the writer wait for locks.",
    )
    max_retries: int = Field(
        default=3,
        description="Max retry attempts for locked database errors.",
    )
    retry_base_delay_sec: float = Field(
        default=0.1,
        description="Base delay between retries (exponential backoff).",
    )

    @field_validator("path")
    @classmethod
    def expand_path(cls, v: Path) -> Path:
        return v.expanduser().resolve()


class SearchConfig(BaseModel):
    """Search behaviour.

    Env vars:
        JARPLANE__SEARCH__DEFAULT_LIMIT: Results when the caller gives no limit
        JARPLANE__SEARCH__CASE_SENSITIVE: Match names case-sensitively
    """

    default_limit: int = Field(
        default=SEARCH_DEFAULT_LIMIT,
        ge=1,
        le=SEARCH_MAX_LIMIT,
        description="Default number of search results.",
    )
    case_sensitive: bool = Field(
        default=False,
        description="Case-sensitive substring and prefix matching. "
        "Default folds ASCII case, so 'stringutils' finds StringUtils.",
    )


class JarPlaneConfig(BaseModel):
    """Root configuration for JarPlane.

    All settings can be configured via:
    1. Environment variables: JARPLANE__SECTION__KEY
    2. YAML config files (local or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)

    @property
    def repository_path(self) -> Path:
        return self.repository.path

    @property
    def store_path(self) -> Path:
        return self.store.path

    @property
    def log_level(self) -> str:
        return self.logging.level
