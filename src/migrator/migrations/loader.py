"""Build migration sequences from SQL files.

Both loaders parse every filename before reading any file, so one badly
named file fails the whole set before the database is touched.

Example:
    migrations = load_sql_migrations("sql/billing")
    Migrator("billing", connection, migrations).migrate()
"""

from __future__ import annotations

from importlib import resources
from os import PathLike
from pathlib import Path

from loguru import logger

from ..core.exceptions import MigratorError
from ..core.types import Version
from .base import SqlMigration


def _check_unique(migrations: list[SqlMigration], origin: str) -> None:
    seen: dict[Version, str | None] = {}
    for migration in migrations:
        if migration.version in seen:
            raise MigratorError(
                f"Duplicate migration version {migration.version} in {origin}: "
                f"{seen[migration.version]} and {migration.source}"
            )
        seen[migration.version] = migration.source


def load_sql_migrations(directory: str | PathLike[str]) -> list[SqlMigration]:
    """Load every ``*.sql`` file in ``directory``, sorted by version.

    Args:
        directory: Directory holding ``v<major>_<minor>_<patch>.sql`` files.

    Returns:
        SqlMigration objects in ascending version order.

    Raises:
        MigratorError: If the directory does not exist or two files share
            a version.
        VersionParseError: If a filename does not encode a version.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise MigratorError(f"Migrations directory not found: {directory}")

    paths = sorted(directory.glob("*.sql"))
    versions = {path: Version.from_filename(path.as_posix()) for path in paths}

    migrations = [
        SqlMigration(versions[path], path.read_text(encoding="utf-8"), str(path))
        for path in paths
    ]
    migrations.sort(key=lambda m: m.version)
    _check_unique(migrations, str(directory))

    logger.debug(f"Loaded {len(migrations)} SQL migration(s) from {directory}")
    return migrations


def load_package_migrations(
    package: str,
    directory: str = "migrations",
) -> list[SqlMigration]:
    """Load SQL migrations shipped as package data.

    Args:
        package: Importable package name, e.g. ``"billing"``.
        directory: Subdirectory of the package holding the SQL files.

    Returns:
        SqlMigration objects in ascending version order.

    Raises:
        MigratorError: If the directory is missing or versions repeat.
        VersionParseError: If a filename does not encode a version.
    """
    root = resources.files(package).joinpath(directory)
    if not root.is_dir():
        raise MigratorError(f"Package {package!r} has no {directory!r} directory")

    entries = sorted(
        (entry for entry in root.iterdir() if entry.name.endswith(".sql")),
        key=lambda entry: entry.name,
    )
    origin = f"{package}/{directory}"
    versions = {
        entry.name: Version.from_filename(f"{origin}/{entry.name}") for entry in entries
    }

    migrations = [
        SqlMigration(
            versions[entry.name],
            entry.read_text(encoding="utf-8"),
            f"{origin}/{entry.name}",
        )
        for entry in entries
    ]
    migrations.sort(key=lambda m: m.version)
    _check_unique(migrations, origin)

    logger.debug(f"Loaded {len(migrations)} SQL migration(s) from {origin}")
    return migrations
