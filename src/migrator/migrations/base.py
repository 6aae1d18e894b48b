"""Migration units.

A migration is anything with a ``version`` and an ``apply(connection)``
method. Two kinds ship with migrator:

- SqlMigration: a literal block of SQL, usually read from a
  ``v<major>_<minor>_<patch>.sql`` file.
- FunctionMigration: arbitrary Python logic run inside the transaction.

``apply`` always runs inside a transaction opened by Migrator and must not
commit or roll back.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import Callable, Protocol, runtime_checkable

from sqlalchemy import Connection

from ..core.types import Version

# Send scripts to the driver verbatim: no parameter interpolation of "%".
_RAW_SQL = {"no_parameters": True}


@runtime_checkable
class Migration(Protocol):
    """A versioned, atomic schema change."""

    @property
    def version(self) -> Version:
        """Target version this migration brings the schema to."""
        ...

    def apply(self, connection: Connection) -> None:
        """Run the migration body on a connection with an open transaction."""
        ...


def split_sqlite_statements(script: str) -> list[str]:
    """Split a SQL script into complete statements for SQLite.

    pysqlite executes one statement per call. Statement boundaries are
    found with sqlite3.complete_statement, so semicolons inside string
    literals, comments and trigger bodies do not split.
    """
    statements: list[str] = []
    buffer = ""
    chunks = script.split(";")

    for index, chunk in enumerate(chunks):
        buffer += chunk
        if index < len(chunks) - 1:
            buffer += ";"
        if sqlite3.complete_statement(buffer):
            if buffer.strip(" \t\r\n;"):
                statements.append(buffer.strip())
            buffer = ""

    if buffer.strip(" \t\r\n;"):
        statements.append(buffer.strip())

    return statements


def execute_script(connection: Connection, script: str) -> None:
    """Execute a multi-statement SQL script on ``connection``."""
    if connection.dialect.name == "sqlite":
        statements = split_sqlite_statements(script)
    else:
        statements = [script] if script.strip() else []

    for statement in statements:
        connection.exec_driver_sql(statement, execution_options=_RAW_SQL)


@dataclass(frozen=True)
class SqlMigration:
    """Migration whose body is a literal block of SQL."""

    version: Version
    sql: str = field(repr=False)
    source: str | None = None

    @classmethod
    def from_filename(cls, filename: str | PathLike[str], sql: str) -> "SqlMigration":
        """Create a migration from SQL text and the file it came from.

        Raises:
            VersionParseError: If the filename does not encode a version.
        """
        return cls(Version.from_filename(filename), sql, str(filename))

    @classmethod
    def from_file(cls, path: str | PathLike[str]) -> "SqlMigration":
        """Read a ``v<major>_<minor>_<patch>.sql`` file.

        The version is parsed before the file is read, so a misnamed file
        fails without touching its contents.
        """
        path = Path(path)
        version = Version.from_filename(path.as_posix())
        return cls(version, path.read_text(encoding="utf-8"), str(path))

    def apply(self, connection: Connection) -> None:
        execute_script(connection, self.sql)


@dataclass(frozen=True)
class FunctionMigration:
    """Migration whose body is a Python callable."""

    version: Version
    up: Callable[[Connection], None] = field(repr=False)
    description: str = ""

    def apply(self, connection: Connection) -> None:
        self.up(connection)
