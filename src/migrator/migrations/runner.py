"""Migration runner.

Brings one module's schema up to date by applying, in the order supplied,
every migration newer than the module's recorded version. Each migration
and its version bump share one transaction, so the recorded version never
claims work that did not fully land.
"""

from __future__ import annotations

from itertools import pairwise
from typing import TYPE_CHECKING, Sequence

from loguru import logger
from sqlalchemy import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from ..core.config import BASE_MODULE_NAME, TRACKING_SCHEMA
from ..core.exceptions import CommitError, MigrationExecutionError, MigratorError
from ..core.instrumentation import configure_tracing, shutdown_tracing, traced_migration
from ..core.types import Version
from ..store.database import create_engine, is_connectivity_error
from ..store.versions import VersionStore
from .base import Migration

if TYPE_CHECKING:
    from ..core.config import Config


class Migrator:
    """Applies a module's pending migrations, one transaction each.

    Migrations are trusted to arrive in ascending version order; they are
    filtered against the recorded version but never re-sorted. The
    connection must be idle when ``migrate()`` starts and must not be used
    by anyone else while it runs; concurrent runs for the same module must
    be serialized by the caller.

    Example:
        with engine.connect() as connection:
            migrator = Migrator("billing", connection, migrations)
            applied = migrator.migrate()
            print(f"Applied {applied}, now at {migrator.get_version()}")
    """

    def __init__(
        self,
        module_name: str,
        connection: Connection,
        migrations: Sequence[Migration],
        *,
        store: VersionStore | None = None,
        schema: str = TRACKING_SCHEMA,
        base_module: str = BASE_MODULE_NAME,
    ):
        """Initialize the runner.

        Args:
            module_name: Module whose schema is migrated.
            connection: Connection held for the whole run.
            migrations: Migrations in ascending version order.
            store: Version store to use; built from ``connection``,
                ``schema`` and ``base_module`` when omitted.
            schema: Tracking schema for the default store.
            base_module: Base module name for the default store.
        """
        self.module_name = module_name
        self.connection = connection
        self.migrations = list(migrations)
        self.store = store or VersionStore(connection, schema, base_module)

    def initialize_versions(self) -> None:
        """Create or upgrade the version tracking table without migrating."""
        self.store.bootstrap()

    def get_version(self) -> Version:
        """Get the module's recorded version (bootstrapping first)."""
        return self.store.get_version(self.module_name)

    def get_pending_migrations(self, current: Version | None = None) -> list[Migration]:
        """Get migrations newer than ``current``, in supplied order.

        Args:
            current: Version to compare against; read from the store when
                omitted.
        """
        if current is None:
            current = self.get_version()

        pending = [m for m in self.migrations if m.version > current]

        if any(later.version < earlier.version for earlier, later in pairwise(pending)):
            logger.warning(
                f"Pending migrations for {self.module_name!r} are not in ascending "
                f"version order; applying them as supplied: "
                f"{', '.join(str(m.version) for m in pending)}"
            )
        return pending

    def get_latest_version(self) -> Version:
        """Highest version among the supplied migrations, or 0.0.0."""
        return max((m.version for m in self.migrations), default=Version.zero())

    def is_up_to_date(self) -> bool:
        """Whether no supplied migration is newer than the recorded version."""
        return not self.get_pending_migrations()

    def migrate(self) -> int:
        """Apply all pending migrations.

        Stops at the first failure. Migrations committed before it stay
        applied; the failed one is rolled back together with its version
        bump.

        Returns:
            Number of migrations applied.

        Raises:
            MigratorError: If the connection already has a transaction open,
                including one SQLAlchemy began implicitly on an earlier
                ``execute()``.
            BootstrapError: If the tracking table cannot be prepared.
            MigrationExecutionError: If a migration body or version bump fails.
            CommitError: If a migration's transaction fails to commit.
        """
        if self.connection.in_transaction():
            raise MigratorError(
                f"Cannot migrate {self.module_name!r}: the connection already has a "
                "transaction open; commit or roll it back before calling migrate()"
            )

        current = self.get_version()
        pending = self.get_pending_migrations(current)

        if not pending:
            logger.debug(f"{self.module_name!r} at version {current}, no migrations to apply")
            return 0

        applied = 0
        for migration in pending:
            logger.info(f"Migrating {self.module_name!r} to {migration.version} ...")

            with traced_migration(self.module_name, migration.version) as meta:
                meta["kind"] = type(migration).__name__
                self._apply(migration)

            applied += 1
            logger.debug(f"Migration {migration.version} applied successfully")

        logger.info(
            f"Applied {applied} migration(s), {self.module_name!r} now at version "
            f"{pending[-1].version}"
        )
        return applied

    def _apply(self, migration: Migration) -> None:
        """Run one migration and record its version in a single transaction."""
        transaction = self.connection.begin()

        try:
            migration.apply(self.connection)
            self.store.set_version(self.module_name, migration.version)
        except BaseException as e:
            transaction.rollback()
            logger.error(f"Failed migration on version: {migration.version}: {e}")
            if (
                not isinstance(e, Exception)
                or isinstance(e, MigratorError)
                or is_connectivity_error(e)
            ):
                raise
            raise MigrationExecutionError(migration.version, e) from e

        try:
            transaction.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to commit migration on version: {migration.version}: {e}")
            if is_connectivity_error(e):
                raise
            raise CommitError(migration.version, e) from e


def run_migrations(
    engine: Engine,
    module_name: str,
    migrations: Sequence[Migration],
    *,
    schema: str = TRACKING_SCHEMA,
    base_module: str = BASE_MODULE_NAME,
) -> int:
    """Check out one connection from ``engine`` and migrate ``module_name``.

    Returns:
        Number of migrations applied.
    """
    with engine.connect() as connection:
        migrator = Migrator(
            module_name,
            connection,
            migrations,
            schema=schema,
            base_module=base_module,
        )
        return migrator.migrate()


def migrate_from_config(
    config: "Config",
    module_name: str,
    migrations: Sequence[Migration],
) -> int:
    """Build an engine from ``config``, migrate, and dispose of the engine.

    When ``config.tracing`` is enabled, tracing is configured for the run and
    flushed afterwards. Logging is left to the embedding application, which
    calls ``configure_logging(config.logging)`` once at startup.

    Raises:
        ConfigError: If the database configuration is unusable.
    """
    tracer = configure_tracing(config.tracing) if config.tracing.enabled else None
    engine = create_engine(config.database, tracking_schema=config.tracking.schema)
    try:
        return run_migrations(
            engine,
            module_name,
            migrations,
            schema=config.tracking.schema,
            base_module=config.tracking.base_module,
        )
    finally:
        engine.dispose()
        if tracer is not None:
            shutdown_tracing()
