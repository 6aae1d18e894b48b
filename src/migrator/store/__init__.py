"""Data access layer for migrator.

This package provides:
- create_engine: SQLAlchemy engine construction from DatabaseConfig
- VersionStore: bootstrap and read/write of the version tracking table

Example:
    from migrator.store import VersionStore, create_engine

    engine = create_engine(config.database)
    with engine.connect() as connection:
        store = VersionStore(connection)
        store.bootstrap()
"""

from .database import create_engine, is_connectivity_error
from .schema import VERSION_TABLE, version_table
from .versions import VersionStore

__all__ = [
    "create_engine",
    "is_connectivity_error",
    "VERSION_TABLE",
    "version_table",
    "VersionStore",
]
