"""Migration units, loaders and the runner.

Example:
    from migrator.migrations import Migrator, load_sql_migrations

    migrations = load_sql_migrations("sql/billing")
    with engine.connect() as connection:
        Migrator("billing", connection, migrations).migrate()
"""

from .base import FunctionMigration, Migration, SqlMigration, execute_script
from .loader import load_package_migrations, load_sql_migrations
from .runner import Migrator, migrate_from_config, run_migrations

__all__ = [
    "Migration",
    "SqlMigration",
    "FunctionMigration",
    "execute_script",
    "load_sql_migrations",
    "load_package_migrations",
    "Migrator",
    "run_migrations",
    "migrate_from_config",
]
