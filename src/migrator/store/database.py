"""Engine construction and connectivity helpers for migrator."""

from __future__ import annotations

from pathlib import Path

import sqlalchemy as sa
from loguru import logger
from sqlalchemy import event, exc
from sqlalchemy.engine import URL, Engine

from ..core.config import TRACKING_SCHEMA, DatabaseConfig
from ..core.exceptions import ConfigError


def create_engine(
    config: DatabaseConfig,
    *,
    tracking_schema: str = TRACKING_SCHEMA,
) -> Engine:
    """Create a SQLAlchemy engine for ``config``.

    Server databases get a connection pool with pre-ping. SQLite gets
    transactional DDL, foreign keys, and the tracking schema attached as a
    sibling database file, since SQLite has no CREATE SCHEMA.

    Args:
        config: Database configuration.
        tracking_schema: Schema the version table lives in.

    Returns:
        Configured Engine. No connection is opened yet.

    Raises:
        ConfigError: If the URL is invalid or its driver is not installed.
    """
    url = config.get_url()

    try:
        if url.get_backend_name() == "sqlite":
            engine = sa.create_engine(url)
            _configure_sqlite(engine, url, tracking_schema)
        else:
            engine = sa.create_engine(
                url,
                pool_size=config.pool_size,
                max_overflow=config.max_overflow,
                pool_timeout=config.pool_timeout,
                pool_pre_ping=True,
            )
    except (exc.ArgumentError, ImportError) as e:
        raise ConfigError(f"Cannot create engine for {url!r}: {e}") from e

    logger.debug(f"Created engine for {engine.url!r}")
    return engine


def sqlite_attachment_path(url: URL, schema: str) -> str:
    """Database file that stands in for ``schema`` next to a SQLite database."""
    database = url.database
    if not database or database == ":memory:":
        return ":memory:"
    return str(Path(database).with_suffix(f".{schema}.db"))


def _configure_sqlite(engine: Engine, url: URL, schema: str) -> None:
    attachment = sqlite_attachment_path(url, schema)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Stop pysqlite from managing transactions itself; BEGIN is emitted
        # below so DDL participates in the surrounding transaction.
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys = ON")
        dbapi_connection.execute(f'ATTACH DATABASE ? AS "{schema}"', (attachment,))

    @event.listens_for(engine, "begin")
    def _on_begin(connection):
        connection.exec_driver_sql("BEGIN")


def is_connectivity_error(error: BaseException) -> bool:
    """Whether ``error`` means the database itself is unreachable.

    Lost or invalidated connections and pool checkout timeouts qualify;
    SQL errors such as syntax or constraint violations do not.
    """
    if isinstance(error, (exc.DisconnectionError, exc.TimeoutError)):
        return True
    return isinstance(error, exc.DBAPIError) and error.connection_invalidated
