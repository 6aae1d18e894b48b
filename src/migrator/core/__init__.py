"""Core types, errors and configuration for migrator."""

from .config import (
    BASE_MODULE_NAME,
    TRACKING_SCHEMA,
    Config,
    DatabaseConfig,
    LoggingConfig,
    TrackingConfig,
)
from .exceptions import (
    BootstrapError,
    CommitError,
    ConfigError,
    MigrationError,
    MigrationExecutionError,
    MigratorError,
    VersionParseError,
)
from .instrumentation import TracingConfig, configure_tracing, shutdown_tracing
from .logging import configure_logging
from .types import ModuleVersion, Version

__all__ = [
    "BASE_MODULE_NAME",
    "TRACKING_SCHEMA",
    "Config",
    "DatabaseConfig",
    "TrackingConfig",
    "LoggingConfig",
    "TracingConfig",
    "configure_logging",
    "configure_tracing",
    "shutdown_tracing",
    "MigratorError",
    "ConfigError",
    "BootstrapError",
    "VersionParseError",
    "MigrationError",
    "MigrationExecutionError",
    "CommitError",
    "Version",
    "ModuleVersion",
]
