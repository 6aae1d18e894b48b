"""migrator - versioned, transactional schema migrations per module.

Each module (an independently versioned unit of schema) has its own
version recorded in a shared tracking table. Migrator applies the
migrations newer than that version, each atomically with its version
bump.

Example:
    from migrator import Migrator, SqlMigration, Version
    from migrator.store import create_engine

    migrations = [SqlMigration(Version(1, 0, 0), "CREATE TABLE t (id INT)")]
    with create_engine(config.database).connect() as connection:
        Migrator("billing", connection, migrations).migrate()

Logging and tracing are configured by the embedding application at startup:

    config = Config.from_env_or_file()
    configure_logging(config.logging)
    configure_tracing(config.tracing)
"""

from .core import (
    BASE_MODULE_NAME,
    TRACKING_SCHEMA,
    BootstrapError,
    CommitError,
    Config,
    ConfigError,
    MigrationError,
    MigrationExecutionError,
    MigratorError,
    ModuleVersion,
    Version,
    VersionParseError,
    configure_logging,
    configure_tracing,
    shutdown_tracing,
)
from .migrations import (
    FunctionMigration,
    Migration,
    Migrator,
    SqlMigration,
    load_package_migrations,
    load_sql_migrations,
    migrate_from_config,
    run_migrations,
)
from .store import VersionStore

__version__ = "0.1.0"

__all__ = [
    "BASE_MODULE_NAME",
    "TRACKING_SCHEMA",
    "Config",
    "Version",
    "ModuleVersion",
    "Migration",
    "SqlMigration",
    "FunctionMigration",
    "Migrator",
    "VersionStore",
    "load_sql_migrations",
    "load_package_migrations",
    "run_migrations",
    "migrate_from_config",
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
]
