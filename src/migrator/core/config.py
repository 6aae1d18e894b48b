"""Configuration management for migrator."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from .exceptions import ConfigError
from .instrumentation import TracingConfig

TRACKING_SCHEMA = "migrator"
BASE_MODULE_NAME = "base"


@dataclass
class DatabaseConfig:
    """Database connection and pool configuration.

    ``url`` wins when set; otherwise the URL is assembled from the parts.
    """

    url: str = ""
    driver: str = "postgresql+psycopg"
    host: str = "localhost"
    port: int = 5432
    user: str = ""
    password: str = ""
    name: str = "postgres"
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: float = 30.0

    def get_url(self) -> URL:
        """Build the SQLAlchemy URL for this configuration.

        Raises:
            ConfigError: If ``url`` cannot be parsed.
        """
        if self.url:
            try:
                return make_url(self.url)
            except ArgumentError as e:
                raise ConfigError(f"Invalid database URL: {e}") from e

        return URL.create(
            self.driver,
            username=self.user or None,
            password=self.password or None,
            host=self.host or None,
            port=self.port,
            database=self.name or None,
        )


@dataclass
class TrackingConfig:
    """Where module versions are recorded."""

    schema: str = TRACKING_SCHEMA
    base_module: str = BASE_MODULE_NAME


@dataclass
class LoggingConfig:
    """Logging sink configuration."""

    level: str = "INFO"
    log_file: Path | None = None
    log_to_stdout: bool = True
    rotation: str = "100 MB"
    retention: int = 5  # rotated files kept
    compression: str = "gz"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e


def _apply_section(target: Any, values: dict[str, Any], section: str) -> None:
    """Copy TOML values onto a config dataclass, rejecting unknown keys."""
    known = {f.name for f in fields(target)}
    for key, value in values.items():
        if key not in known:
            raise ConfigError(f"Unknown setting [{section}] {key}")
        setattr(target, key, value)


@dataclass
class Config:
    """Main application configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    tracing: TracingConfig = field(default_factory=TracingConfig)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        config = cls()
        config.apply_env()
        return config

    @classmethod
    def from_file(cls, path: Path) -> "Config":
        """Load configuration from a TOML file, then apply env overrides.

        Args:
            path: Path to a TOML file with optional [database], [tracking],
                [logging] and [tracing] tables.

        Raises:
            ConfigError: If the file is missing, malformed or has unknown keys.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {path}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file {path}: {e}") from e

        config = cls()
        sections = {
            "database": config.database,
            "tracking": config.tracking,
            "logging": config.logging,
            "tracing": config.tracing,
        }
        for section, values in data.items():
            if section not in sections or not isinstance(values, dict):
                raise ConfigError(f"Unknown config section: {section}")
            _apply_section(sections[section], values, section)

        if config.logging.log_file is not None:
            config.logging.log_file = Path(config.logging.log_file)

        config.apply_env()
        return config

    @classmethod
    def from_env_or_file(cls, path: Path | None = None) -> "Config":
        """Load from ``path`` or ``MIGRATOR_CONFIG`` if given, else from env."""
        if path is None and (env_path := os.environ.get("MIGRATOR_CONFIG")):
            path = Path(env_path)
        if path is not None:
            return cls.from_file(path)
        return cls.from_env()

    def apply_env(self) -> None:
        """Override settings from environment variables."""
        # Database
        if url := os.environ.get("DATABASE_URL"):
            self.database.url = url
        if host := os.environ.get("MIGRATOR_DB_HOST"):
            self.database.host = host
        if port := os.environ.get("MIGRATOR_DB_PORT"):
            self.database.port = _env_int("MIGRATOR_DB_PORT", port)
        if user := os.environ.get("MIGRATOR_DB_USER"):
            self.database.user = user
        if password := os.environ.get("MIGRATOR_DB_PASSWORD"):
            self.database.password = password
        if name := os.environ.get("MIGRATOR_DB_NAME"):
            self.database.name = name

        # Version tracking
        if schema := os.environ.get("MIGRATOR_SCHEMA"):
            self.tracking.schema = schema
        if base_module := os.environ.get("MIGRATOR_BASE_MODULE"):
            self.tracking.base_module = base_module

        # Logging
        if level := os.environ.get("MIGRATOR_LOG_LEVEL"):
            self.logging.level = level.upper()
        if log_file := os.environ.get("MIGRATOR_LOG_FILE"):
            self.logging.log_file = Path(log_file)
        if to_stdout := os.environ.get("MIGRATOR_LOG_TO_STDOUT"):
            self.logging.log_to_stdout = _env_bool(to_stdout)

        # Tracing
        if enabled := os.environ.get("MIGRATOR_TRACING_ENABLED"):
            self.tracing.enabled = _env_bool(enabled)
        if endpoint := os.environ.get("MIGRATOR_TRACING_ENDPOINT"):
            self.tracing.endpoint = endpoint
