"""Configuration loading with pydantic-settings.

Supports loading configuration from multiple sources with precedence:
1. Direct kwargs (highest priority)
2. Environment variables (JARPLANE__SECTION__KEY)
3. Legacy environment variables (MAVEN_REPO_PATH, CACHE_DB_PATH, LOG_LEVEL)
4. Local config (./.jarplane/config.yaml)
5. Global config (~/.config/jarplane/config.yaml)
6. Built-in defaults (lowest priority)

The loaded configuration is validated before it is handed to the core:
the repository directory must exist and the store directory is created.
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from jarplane.config.models import (
    JarPlaneConfig,
    LoggingConfig,
    RepositoryConfig,
    SearchConfig,
    StoreConfig,
)
from jarplane.core.errors import ConfigError

GLOBAL_CONFIG_PATH = Path("~/.config/jarplane/config.yaml").expanduser()
LOCAL_CONFIG_PATH = Path(".jarplane") / "config.yaml"

# Legacy variable -> (section, key)
LEGACY_ENV_VARS: dict[str, tuple[str, str]] = {
    "MAVEN_REPO_PATH": ("repository", "path"),
    "CACHE_DB_PATH": ("store", "path"),
    "LOG_LEVEL": ("logging", "level"),
}


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top-level YAML value must be a mapping")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _legacy_env_config(environ: Mapping[str, str]) -> dict[str, Any]:
    """Map legacy variables onto the sectioned layout."""
    result: dict[str, Any] = {}
    for var, (section, key) in LEGACY_ENV_VARS.items():
        value = environ.get(var, "").strip()
        if value:
            result.setdefault(section, {})[key] = value
    return result


class _YamlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded YAML config."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._yaml_config = yaml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._yaml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._yaml_config


def _make_settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    """Create a Settings class with instance-based YAML source (thread-safe)."""

    class JarPlaneSettings(BaseSettings):
        """Root config. Env vars: JARPLANE__LOGGING__LEVEL, JARPLANE__STORE__PATH, etc."""

        model_config = SettingsConfigDict(
            env_prefix="JARPLANE__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        logging: LoggingConfig = LoggingConfig()
        repository: RepositoryConfig = RepositoryConfig()
        store: StoreConfig = StoreConfig()
        search: SearchConfig = SearchConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > yaml files
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return JarPlaneSettings


def load_config(
    work_dir: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    validate_paths: bool = True,
    **kwargs: Any,
) -> JarPlaneConfig:
    """Load config: defaults < global yaml < local yaml < legacy env < env vars < kwargs.

    Args:
        work_dir: Directory holding .jarplane/config.yaml. Defaults to cwd.
        environ: Source for legacy variables. Defaults to os.environ.
        validate_paths: Check the repository exists and create the store directory.
        **kwargs: Override values (highest precedence).

    Returns:
        Fully resolved configuration object.

    Raises:
        ConfigError: On invalid YAML, validation errors or a missing repository.
    """
    work_dir = work_dir or Path.cwd()
    environ = os.environ if environ is None else environ

    yaml_config = _load_yaml(GLOBAL_CONFIG_PATH)
    yaml_config = _deep_merge(yaml_config, _load_yaml(work_dir / LOCAL_CONFIG_PATH))
    yaml_config = _deep_merge(yaml_config, _legacy_env_config(environ))

    settings_cls = _make_settings_class(yaml_config)
    try:
        settings = settings_cls(**kwargs)
        config = JarPlaneConfig.model_validate(settings.model_dump())
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e

    if validate_paths:
        _validate_paths(config)
    return config


def _validate_paths(config: JarPlaneConfig) -> None:
    if not config.repository_path.is_dir():
        raise ConfigError.path_not_found("repository.path", str(config.repository_path))
    try:
        config.store_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigError.invalid_value("store.path", config.store_path, str(e)) from e
