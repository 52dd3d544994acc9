"""Configuration management for imglocal."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from imglocal.constants import (
    CONFIG_FILENAME,
    DEFAULT_ASSETS_DIR,
    DEFAULT_ASSETS_MODULE,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_DOWNLOAD_TIMEOUT,
    DEFAULT_IMPORT_SUFFIXES,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOG_RETENTION,
    DEFAULT_LOG_ROTATION,
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_SCAN_EXCLUDE,
    DEFAULT_SCAN_MAX_FILES,
    DEFAULT_USER_AGENT,
    DEFAULT_USER_CONFIG_DIR,
)
from imglocal.exceptions import ConfigurationError


class EnvVarNotFoundError(ValueError):
    """Raised when an environment variable referenced by env: syntax is not found."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name
        super().__init__(f"Environment variable not found: {var_name}")


def resolve_env_value(value: str, strict: bool = True) -> str | None:
    """Resolve env:VAR_NAME syntax to actual environment variable value.

    Args:
        value: The value to resolve. If starts with "env:", looks up environment variable.
        strict: If True, raises EnvVarNotFoundError when variable not found.
                If False, returns None when variable not found.

    Returns:
        The resolved value, or None if env var not found and strict=False.

    Raises:
        EnvVarNotFoundError: If strict=True and environment variable not found.
    """
    if isinstance(value, str) and value.startswith("env:"):
        env_var = value[4:]
        env_value = os.environ.get(env_var)
        if env_value is None:
            if strict:
                raise EnvVarNotFoundError(env_var)
            return None
        return env_value
    return value


class DownloadConfig(BaseModel):
    """Download engine configuration."""

    timeout: float = Field(default=DEFAULT_DOWNLOAD_TIMEOUT, gt=0)
    max_redirects: int = Field(default=DEFAULT_MAX_REDIRECTS, ge=0)
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, ge=1)
    overwrite: bool = False
    user_agent: str = DEFAULT_USER_AGENT  # Supports env:VAR_NAME

    def get_resolved_user_agent(self) -> str:
        """Get User-Agent with env: syntax resolved, falling back to the default."""
        return resolve_env_value(self.user_agent, strict=False) or DEFAULT_USER_AGENT


class AssetsConfig(BaseModel):
    """Where downloaded assets are saved."""

    dir: str = DEFAULT_ASSETS_DIR  # Relative to the project root unless absolute


class ScanConfig(BaseModel):
    """Reference scanning and document discovery configuration."""

    include_vectors: bool = True
    max_files: int = Field(default=DEFAULT_SCAN_MAX_FILES, ge=1)
    exclude: list[str] = Field(default_factory=lambda: list(DEFAULT_SCAN_EXCLUDE))


class DialectConfig(BaseModel):
    """Rewrite strategy selection."""

    strategy: Literal["auto", "path", "import"] = "auto"
    assets_module: str = DEFAULT_ASSETS_MODULE
    # Named imports merged into assets_module once an attribute is rewritten
    component_imports: list[str] = Field(default_factory=list)
    import_suffixes: list[str] = Field(default_factory=lambda: list(DEFAULT_IMPORT_SUFFIXES))


class LogConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = DEFAULT_LOG_LEVEL
    dir: str | None = DEFAULT_LOG_DIR
    rotation: str = DEFAULT_LOG_ROTATION
    retention: str = DEFAULT_LOG_RETENTION


class LocalizerConfig(BaseModel):
    """Main configuration model."""

    download: DownloadConfig = Field(default_factory=DownloadConfig)
    assets: AssetsConfig = Field(default_factory=AssetsConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    dialect: DialectConfig = Field(default_factory=DialectConfig)
    log: LogConfig = Field(default_factory=LogConfig)


class ConfigManager:
    """Configuration manager for loading and merging configs."""

    CONFIG_FILENAME = CONFIG_FILENAME
    DEFAULT_USER_CONFIG_DIR = Path(DEFAULT_USER_CONFIG_DIR).expanduser()

    def __init__(self) -> None:
        self._config: LocalizerConfig | None = None
        self._config_path: Path | None = None

    @property
    def config(self) -> LocalizerConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    @property
    def config_path(self) -> Path | None:
        """Get the path of the loaded configuration file."""
        return self._config_path

    def load(
        self,
        config_path: Path | str | None = None,
        env_override: bool = True,
    ) -> LocalizerConfig:
        """
        Load configuration from file with fallback chain.

        Priority (highest to lowest):
        1. Explicit config_path parameter
        2. IMGLOCAL_CONFIG environment variable
        3. ./imglocal.json (current directory)
        4. ~/.imglocal/config.json (user directory)
        5. Default values

        Raises:
            ConfigurationError: If the file is not valid JSON or fails validation
        """
        config_data: dict[str, Any] = {}

        resolved_path = self._resolve_config_path(config_path, env_override)

        if resolved_path and resolved_path.exists():
            config_data = self._load_json(resolved_path)
            self._config_path = resolved_path
        elif config_path:
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            self._config = LocalizerConfig.model_validate(config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {resolved_path}:\n{e}") from e
        return self._config

    def _resolve_config_path(
        self,
        config_path: Path | str | None,
        env_override: bool,
    ) -> Path | None:
        """Resolve configuration file path based on priority."""
        # 1. Explicit path
        if config_path:
            return Path(config_path)

        # 2. Environment variable
        if env_override:
            env_path = os.environ.get("IMGLOCAL_CONFIG")
            if env_path:
                return Path(env_path)

        # 3. Current directory
        cwd_config = Path.cwd() / self.CONFIG_FILENAME
        if cwd_config.exists():
            return cwd_config

        # 4. User directory
        user_config = self.DEFAULT_USER_CONFIG_DIR / "config.json"
        if user_config.exists():
            return user_config

        return None

    def _load_json(self, path: Path) -> dict[str, Any]:
        """Load JSON configuration file."""
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config root must be an object: {path}")
        return data

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by dot-separated key path.

        Example: config_manager.get("download.timeout")
        """
        value: Any = self.config

        for part in key.split("."):
            if isinstance(value, BaseModel):
                value = getattr(value, part, None)
            elif isinstance(value, dict):
                value = value.get(part)
            else:
                return default

            if value is None:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value by dot-separated key path.

        Example: config_manager.set("download.overwrite", True)
        """
        parts = key.split(".")
        parent: Any = self.config
        for part in parts[:-1]:
            parent = getattr(parent, part)
        setattr(parent, parts[-1], value)

    def merge_cli_args(self, **kwargs: Any) -> None:
        """Merge CLI arguments given as dot-separated keys; None values are ignored."""
        for key, value in kwargs.items():
            if value is not None:
                self.set(key, value)
