"""Tests for VersionStore bootstrap and version records."""

import pytest
from sqlalchemy import exc, inspect, text

from migrator.core.exceptions import BootstrapError
from migrator.core.types import ModuleVersion, Version
from migrator.store.schema import PRIMARY_KEY_NAME, VERSION_TABLE
from migrator.store.versions import VersionStore


def _columns(engine, schema=None) -> list[str]:
    with engine.connect() as connection:
        return [c["name"] for c in inspect(connection).get_columns(VERSION_TABLE, schema=schema)]


def _has_table(engine, schema=None) -> bool:
    with engine.connect() as connection:
        return inspect(connection).has_table(VERSION_TABLE, schema=schema)


def _recorded_rows(engine) -> list[tuple]:
    with engine.connect() as connection:
        rows = connection.execute(
            text("SELECT module, major, minor, patch FROM migrator.version ORDER BY module")
        ).all()
    return [tuple(row) for row in rows]


def _create_unkeyed_table(engine, name: str, version: tuple[int, int, int]) -> None:
    """Create a version table in the pre-module shape with one row."""
    with engine.begin() as connection:
        connection.execute(
            text(
                f"CREATE TABLE {name} ("
                "major SMALLINT NOT NULL, minor SMALLINT NOT NULL, patch SMALLINT NOT NULL)"
            )
        )
        connection.execute(
            text(f"INSERT INTO {name} (major, minor, patch) VALUES (:major, :minor, :patch)"),
            dict(zip(("major", "minor", "patch"), version)),
        )


class TestBootstrap:
    """Tests for VersionStore.bootstrap()."""

    def test_fresh_database_creates_table(self, engine, store: VersionStore):
        store.bootstrap()

        assert _has_table(engine, "migrator")
        assert _columns(engine, "migrator") == ["module", "major", "minor", "patch"]
        assert not store.connection.in_transaction()

    def test_bootstrap_is_idempotent(self, store: VersionStore):
        store.bootstrap()
        store.set_version("billing", Version(1, 0, 0))

        store.bootstrap()
        store.bootstrap()

        assert store.list_versions() == [ModuleVersion("billing", Version(1, 0, 0))]

    def test_relocates_legacy_default_schema_table(self, engine, store: VersionStore):
        """A pre-namespace table moves into the schema and belongs to the base module."""
        _create_unkeyed_table(engine, "version", (3, 2, 1))

        assert store.get_version("base") == Version(3, 2, 1)

        assert not _has_table(engine)
        assert _columns(engine, "migrator") == ["major", "minor", "patch", "module"]

    def test_adds_module_column_to_schema_table(self, engine, connection):
        _create_unkeyed_table(engine, "migrator.version", (1, 4, 0))

        store = VersionStore(connection, base_module="core")

        assert store.get_version("core") == Version(1, 4, 0)
        assert store.get_version("base") == Version.zero()
        assert "module" in _columns(engine, "migrator")

    def test_upgraded_table_has_module_primary_key(self, engine, store: VersionStore):
        _create_unkeyed_table(engine, "migrator.version", (2, 0, 0))
        store.bootstrap()

        with engine.connect() as connection:
            pk = inspect(connection).get_pk_constraint(VERSION_TABLE, schema="migrator")
            columns = inspect(connection).get_columns(VERSION_TABLE, schema="migrator")

        assert pk["constrained_columns"] == ["module"]
        assert pk["name"] == PRIMARY_KEY_NAME
        module = next(c for c in columns if c["name"] == "module")
        assert module["nullable"] is False

    def test_upgraded_table_accepts_new_modules(self, engine, store: VersionStore):
        _create_unkeyed_table(engine, "migrator.version", (2, 0, 0))

        store.set_version("search", Version(0, 1, 0))
        store.set_version("base", Version(2, 1, 0))

        assert store.list_versions() == [
            ModuleVersion("base", Version(2, 1, 0)),
            ModuleVersion("search", Version(0, 1, 0)),
        ]

    def test_both_tables_present_fails(self, engine, store: VersionStore):
        _create_unkeyed_table(engine, "version", (1, 0, 0))
        store.bootstrap()
        _create_unkeyed_table(engine, "version", (9, 0, 0))

        with pytest.raises(BootstrapError, match="remove one of them"):
            store.bootstrap()

        assert not store.connection.in_transaction()

    def test_unavailable_schema_raises_bootstrap_error(self, connection):
        """SQLite cannot CREATE SCHEMA, so an unattached schema fails to bootstrap."""
        store = VersionStore(connection, schema="elsewhere")

        with pytest.raises(BootstrapError, match="elsewhere") as exc_info:
            store.bootstrap()

        assert isinstance(exc_info.value.__cause__, exc.SQLAlchemyError)
        assert not connection.in_transaction()

    def test_connectivity_errors_propagate(self, store: VersionStore, monkeypatch):
        def lost():
            raise exc.DisconnectionError("connection reset")

        monkeypatch.setattr(store, "_bootstrap", lost)

        with pytest.raises(exc.DisconnectionError):
            store.bootstrap()

    def test_joins_callers_transaction(self, engine, connection):
        store = VersionStore(connection)
        transaction = connection.begin()

        store.bootstrap()
        transaction.rollback()

        assert not _has_table(engine, "migrator")


class TestVersions:
    """Tests for reading and writing module versions."""

    def test_set_version_bootstraps_fresh_database(self, engine, store: VersionStore):
        store.set_version("billing", Version(1, 0, 0))

        assert _has_table(engine, "migrator")
        assert _recorded_rows(engine) == [("billing", 1, 0, 0)]

    def test_set_version_upgrades_unkeyed_table(self, engine, store: VersionStore):
        _create_unkeyed_table(engine, "migrator.version", (2, 0, 0))

        store.set_version("search", Version(0, 1, 0))

        assert _recorded_rows(engine) == [("base", 2, 0, 0), ("search", 0, 1, 0)]

    def test_set_version_bootstraps_inside_callers_transaction(
        self, engine, connection, store: VersionStore
    ):
        transaction = connection.begin()
        store.set_version("billing", Version(1, 0, 0))
        transaction.rollback()

        assert not _has_table(engine, "migrator")

    def test_unknown_module_is_version_zero(self, store: VersionStore):
        assert store.get_version("never-migrated") == Version(0, 0, 0)

    def test_set_then_get(self, store: VersionStore):
        store.set_version("billing", Version(1, 2, 3))
        assert store.get_version("billing") == Version(1, 2, 3)

    def test_set_version_overwrites(self, store: VersionStore):
        store.set_version("billing", Version(1, 0, 0))
        store.set_version("billing", Version(2, 0, 0))

        assert store.get_version("billing") == Version(2, 0, 0)
        assert len(store.list_versions()) == 1

    def test_modules_are_independent(self, store: VersionStore):
        store.set_version("billing", Version(3, 0, 0))
        store.set_version("auth", Version(1, 0, 0))

        assert store.get_version("billing") == Version(3, 0, 0)
        assert store.get_version("auth") == Version(1, 0, 0)

    def test_list_versions_sorted_by_module(self, store: VersionStore):
        store.set_version("search", Version(0, 2, 0))
        store.set_version("auth", Version(1, 0, 0))

        assert store.list_versions() == [
            ModuleVersion("auth", Version(1, 0, 0)),
            ModuleVersion("search", Version(0, 2, 0)),
        ]

    def test_versions_persist_across_connections(self, engine, store: VersionStore):
        store.set_version("billing", Version(4, 5, 6))

        with engine.connect() as other:
            assert VersionStore(other).get_version("billing") == Version(4, 5, 6)

    def test_set_version_in_rolled_back_transaction_is_discarded(
        self, connection, store: VersionStore
    ):
        store.bootstrap()
        transaction = connection.begin()
        store.set_version("billing", Version(1, 0, 0))
        transaction.rollback()

        assert store.get_version("billing") == Version.zero()

    def test_get_version_logs_current_version(self, store: VersionStore, loguru_messages):
        store.set_version("billing", Version(1, 1, 0))
        store.get_version("billing")

        assert ("INFO", "Current version of 'billing' is: 1.1.0") in loguru_messages
