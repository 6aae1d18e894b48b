"""Durable per-module version records.

VersionStore owns the ``version`` table in the tracking schema and knows how
to bring older shapes of that table up to date:

1. A single-module ``version`` table in the default schema (pre-namespace).
2. A ``version`` table in the tracking schema without a ``module`` column.
3. The modern table: schema-qualified, ``module`` as primary key.

Example:
    with engine.connect() as connection:
        store = VersionStore(connection)
        current = store.get_version("billing")
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import sqlalchemy as sa
from alembic.operations import Operations
from alembic.runtime.migration import MigrationContext
from loguru import logger
from sqlalchemy import Connection, MetaData, Table, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateSchema

from ..core.config import BASE_MODULE_NAME, TRACKING_SCHEMA
from ..core.exceptions import BootstrapError
from ..core.instrumentation import traced_bootstrap
from ..core.types import ModuleVersion, Version
from .database import is_connectivity_error
from .schema import (
    MODULE_COLUMN,
    MODULE_NAME_LENGTH,
    PRIMARY_KEY_NAME,
    VERSION_TABLE,
    version_table,
)


class VersionStore:
    """Reads and writes module versions in the tracking table."""

    def __init__(
        self,
        connection: Connection,
        schema: str = TRACKING_SCHEMA,
        base_module: str = BASE_MODULE_NAME,
    ):
        """Initialize with a database connection.

        Args:
            connection: Connection used for every read and write. It must
                not be shared with concurrent callers.
            schema: Tracking schema holding the version table.
            base_module: Module name given to rows of a legacy table that
                predates per-module tracking.
        """
        self.connection = connection
        self.schema = schema
        self.base_module = base_module
        self.table = version_table(schema)

    # -------------------------------------------------------------------------
    # Bootstrap
    # -------------------------------------------------------------------------

    def bootstrap(self) -> None:
        """Ensure the tracking schema and a modern version table exist.

        Idempotent: against a modern table this only inspects the database.

        Raises:
            BootstrapError: If any DDL step fails. Connectivity errors are
                re-raised unchanged.
        """
        try:
            with traced_bootstrap(self.schema) as meta, self._transaction():
                meta["action"] = self._bootstrap()
        except SQLAlchemyError as e:
            if is_connectivity_error(e):
                raise
            logger.error(f"Could not initialize version table in {self.schema!r}: {e}")
            raise BootstrapError(
                f"Could not initialize version table in schema {self.schema!r}: {e}"
            ) from e

    def _bootstrap(self) -> str:
        action = "none"

        if self.schema not in inspect(self.connection).get_schema_names():
            logger.info(f"Creating tracking schema {self.schema!r}")
            self.connection.execute(CreateSchema(self.schema))

        if self._has_legacy_table():
            if self._has_tracked_table():
                raise BootstrapError(
                    f"Both a legacy {VERSION_TABLE!r} table and "
                    f"{self.schema}.{VERSION_TABLE} exist; remove one of them"
                )
            self._relocate_legacy_table()
            action = "relocated"

        if not self._has_tracked_table():
            logger.info(f"Creating version table {self.schema}.{VERSION_TABLE}")
            self.table.create(self.connection)
            return "created"

        if not self._has_module_column():
            self._add_module_column()
            return "upgraded"

        return action

    def _has_legacy_table(self) -> bool:
        inspector = inspect(self.connection)
        if inspector.default_schema_name == self.schema:
            return False
        return inspector.has_table(VERSION_TABLE)

    def _has_tracked_table(self) -> bool:
        return inspect(self.connection).has_table(VERSION_TABLE, schema=self.schema)

    def _has_module_column(self) -> bool:
        columns = inspect(self.connection).get_columns(VERSION_TABLE, schema=self.schema)
        return any(column["name"] == MODULE_COLUMN for column in columns)

    def _relocate_legacy_table(self) -> None:
        """Move the default-schema version table into the tracking schema."""
        logger.info(f"Moving legacy {VERSION_TABLE!r} table into schema {self.schema!r}")

        legacy = Table(VERSION_TABLE, MetaData(), autoload_with=self.connection)
        relocated = legacy.to_metadata(MetaData(), schema=self.schema)
        relocated.create(self.connection)

        columns = [column.name for column in legacy.columns]
        self.connection.execute(
            sa.insert(relocated).from_select(columns, sa.select(legacy))
        )
        legacy.drop(self.connection)

    def _add_module_column(self) -> None:
        """Turn a single-module table into a module-keyed one.

        Existing rows are assigned to the base module.
        """
        logger.info(
            f"Adding {MODULE_COLUMN!r} column to {self.schema}.{VERSION_TABLE}, "
            f"existing rows belong to {self.base_module!r}"
        )
        module_type = sa.String(MODULE_NAME_LENGTH)
        operations = Operations(MigrationContext.configure(self.connection))

        operations.add_column(
            VERSION_TABLE,
            sa.Column(MODULE_COLUMN, module_type, nullable=True),
            schema=self.schema,
        )

        tracked = sa.table(VERSION_TABLE, sa.column(MODULE_COLUMN), schema=self.schema)
        self.connection.execute(sa.update(tracked).values({MODULE_COLUMN: self.base_module}))

        # Native ALTERs on PostgreSQL; SQLite rebuilds the table.
        with operations.batch_alter_table(VERSION_TABLE, schema=self.schema) as batch:
            batch.alter_column(MODULE_COLUMN, existing_type=module_type, nullable=False)
            batch.create_primary_key(PRIMARY_KEY_NAME, [MODULE_COLUMN])

    # -------------------------------------------------------------------------
    # Reads and writes
    # -------------------------------------------------------------------------

    def get_version(self, module: str) -> Version:
        """Get the recorded version of ``module``.

        Bootstraps the tracking table first. A module without a record is
        at version 0.0.0.

        Args:
            module: Module name.

        Returns:
            Recorded Version, or Version(0, 0, 0).
        """
        self.bootstrap()

        query = sa.select(self.table.c.major, self.table.c.minor, self.table.c.patch).where(
            self.table.c.module == module
        )
        with self._transaction():
            row = self.connection.execute(query).first()

        version = Version(*row) if row else Version.zero()
        logger.info(f"Current version of {module!r} is: {version}")
        return version

    def set_version(self, module: str, version: Version) -> None:
        """Record ``version`` for ``module``, inserting or overwriting its row.

        Bootstraps the tracking table first. Migrator calls this inside the
        transaction of the migration being recorded, so the bootstrap, the
        version and the schema change commit together.

        Args:
            module: Module name.
            version: Version now applied.
        """
        self.bootstrap()

        values = {
            MODULE_COLUMN: module,
            "major": version.major,
            "minor": version.minor,
            "patch": version.patch,
        }
        with self._transaction():
            self._upsert(values)
        logger.debug(f"Recorded version {version} for {module!r}")

    def list_versions(self) -> list[ModuleVersion]:
        """Get the recorded version of every module, sorted by module name."""
        self.bootstrap()

        query = sa.select(self.table).order_by(self.table.c.module)
        with self._transaction():
            rows = self.connection.execute(query).all()

        return [
            ModuleVersion(row.module, Version(row.major, row.minor, row.patch))
            for row in rows
        ]

    def _upsert(self, values: dict) -> None:
        dialect = self.connection.dialect.name

        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            result = self.connection.execute(
                sa.update(self.table)
                .where(self.table.c.module == values[MODULE_COLUMN])
                .values(values)
            )
            if result.rowcount == 0:
                self.connection.execute(sa.insert(self.table).values(values))
            return

        statement = insert(self.table).values(values)
        statement = statement.on_conflict_do_update(
            index_elements=[self.table.c.module],
            set_={
                "major": statement.excluded.major,
                "minor": statement.excluded.minor,
                "patch": statement.excluded.patch,
            },
        )
        self.connection.execute(statement)

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Join the caller's transaction, or run in a new one."""
        if self.connection.in_transaction():
            yield
            return

        with self.connection.begin():
            yield
