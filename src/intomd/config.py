"""Configuration management for into-md."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from intomd.constants import (
    CONFIG_FILENAME,
    DEFAULT_CACHE_DIR,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOG_RETENTION,
    DEFAULT_LOG_ROTATION,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_USER_CONFIG_DIR,
)
from intomd.exceptions import ConfigurationError


class FetchConfig(BaseModel):
    """Request settings shared by the static and render fetchers."""

    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    user_agent: str | None = None


class CacheConfig(BaseModel):
    """Cache configuration."""

    enabled: bool = True
    dir: str = DEFAULT_CACHE_DIR
    ttl_seconds: int = Field(default=DEFAULT_CACHE_TTL_SECONDS, ge=0)

    @property
    def path(self) -> Path:
        return Path(self.dir).expanduser()


class LogConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = DEFAULT_LOG_LEVEL
    dir: str | None = DEFAULT_LOG_DIR
    rotation: str = DEFAULT_LOG_ROTATION
    retention: str = DEFAULT_LOG_RETENTION


class IntoMdConfig(BaseModel):
    """Root configuration."""

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    log: LogConfig = Field(default_factory=LogConfig)


class ConfigManager:
    """Locates, loads and validates the configuration file."""

    CONFIG_FILENAME = CONFIG_FILENAME
    DEFAULT_USER_CONFIG_DIR = Path(DEFAULT_USER_CONFIG_DIR).expanduser()

    def load(self, config_path: Path | str | None = None) -> IntoMdConfig:
        """
        Load configuration from file with fallback chain.

        Priority (highest to lowest):
        1. Explicit config_path parameter
        2. INTOMD_CONFIG environment variable
        3. ./intomd.json (current directory)
        4. ~/.config/into-md/config.json (user directory)
        5. Default values

        Raises:
            ConfigurationError: An explicitly requested file is missing, or the
                file is not valid JSON or does not match the schema
        """
        config_data: dict[str, Any] = {}

        resolved_path = self._resolve_config_path(config_path)
        if resolved_path is not None:
            if not resolved_path.exists():
                raise ConfigurationError(f"Config file not found: {resolved_path}")
            config_data = self._load_json(resolved_path)

        try:
            return IntoMdConfig.model_validate(config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def _resolve_config_path(self, config_path: Path | str | None) -> Path | None:
        """Resolve configuration file path based on priority."""
        if config_path:
            return Path(config_path).expanduser()

        env_path = os.environ.get("INTOMD_CONFIG")
        if env_path:
            return Path(env_path).expanduser()

        cwd_config = Path.cwd() / self.CONFIG_FILENAME
        if cwd_config.exists():
            return cwd_config

        user_config = self.DEFAULT_USER_CONFIG_DIR / "config.json"
        if user_config.exists():
            return user_config

        return None

    def _load_json(self, path: Path) -> dict[str, Any]:
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Unable to read config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a JSON object")
        return data
